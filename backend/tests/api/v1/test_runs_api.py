import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopworker.api import deps
from shopworker.db import create_all
from shopworker.db.session import get_db
from shopworker.main import app
from shopworker.repository import job_run_repo


ADMIN = {"X-Shopworker-Admin-Token": "admin-token"}


@pytest.fixture
def client(monkeypatch):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_all(engine)
    SessionTest = sessionmaker(bind=engine, expire_on_commit=False)

    with SessionTest() as db:
        job_run_repo.create_queued(db, run_id="job-1-abcdefghi", job_path="order/tag-skus-when-created",
                                   shop_domain="yarra-test.myshopify.com", topic="orders/create")

    def _get_db():
        with SessionTest() as db:
            yield db

    monkeypatch.setattr(deps.settings, "ADMIN_API_TOKEN", SecretStr("admin-token"))
    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
        engine.dispose()


def test_runs_require_admin_token(client):
    assert client.get("/api/v1/runs").status_code == 401
    assert client.get("/api/v1/runs", headers={"X-Shopworker-Admin-Token": "nope"}).status_code == 401


def test_runs_disabled_without_configured_token(client, monkeypatch):
    monkeypatch.setattr(deps.settings, "ADMIN_API_TOKEN", None)
    assert client.get("/api/v1/runs", headers=ADMIN).status_code == 403


def test_list_and_get_runs(client):
    resp = client.get("/api/v1/runs", headers=ADMIN, params={"job": "order/tag-skus-when-created"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    assert body["items"][0]["status"] == "queued"

    resp = client.get("/api/v1/runs/job-1-abcdefghi", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["topic"] == "orders/create"

    assert client.get("/api/v1/runs/job-0-missing", headers=ADMIN).status_code == 404


def test_status_filter_is_validated(client):
    assert client.get("/api/v1/runs", headers=ADMIN, params={"status": "bogus"}).status_code == 422
    resp = client.get("/api/v1/runs", headers=ADMIN, params={"status": "failed"})
    assert resp.json()["count"] == 0
