from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shopworker.db.model.job_run import JobRun, RunStatus
from shopworker.repository import job_run_repo
from shopworker.services.run_ledger import RunLedger


def _queued(db, run_id, job_path="order/tag-skus", **kw):
    return job_run_repo.create_queued(
        db, run_id=run_id, job_path=job_path, shop_domain="yarra-test.myshopify.com", topic="orders/create", **kw,
    )


def test_create_queued_then_finish(db):
    _queued(db, "job-1-aaaaaaaaa", is_large_payload=True, payload_key="payloads/payload-1-aaaaaaaaa")

    row = job_run_repo.get(db, "job-1-aaaaaaaaa")
    assert row.status == RunStatus.QUEUED.value
    assert row.is_large_payload is True
    assert row.started_at is None

    job_run_repo.mark_running(db, row.id)
    db.expire_all()
    row = job_run_repo.get(db, row.id)
    assert row.status == "running"
    first_start = row.started_at
    assert first_start is not None

    # 重投再次进入 running：started_at 保持第一次的值
    job_run_repo.mark_running(db, row.id)
    db.expire_all()
    assert job_run_repo.get(db, row.id).started_at == first_start

    job_run_repo.mark_finished(db, row.id, status=RunStatus.FAILED, error="boom")
    db.expire_all()
    row = job_run_repo.get(db, row.id)
    assert row.status == "failed"
    assert row.error == "boom"
    assert row.finished_at is not None

    d = row.to_dict()
    assert d["id"] == "job-1-aaaaaaaaa"
    assert d["payload_key"] == "payloads/payload-1-aaaaaaaaa"


def test_list_recent_filters_and_orders(db):
    base = datetime(2026, 10, 1, tzinfo=timezone.utc)
    for i, (path, status) in enumerate([
        ("order/tag-skus", "completed"),
        ("product/retag", "failed"),
        ("order/tag-skus", "failed"),
    ]):
        db.add(JobRun(id=f"job-{i}", job_path=path, status=status, created_at=base + timedelta(minutes=i)))
    db.commit()

    assert [r.id for r in job_run_repo.list_recent(db)] == ["job-2", "job-1", "job-0"]
    assert [r.id for r in job_run_repo.list_recent(db, job_path="order/tag-skus")] == ["job-2", "job-0"]
    assert [r.id for r in job_run_repo.list_recent(db, status="failed", limit=1)] == ["job-2"]


def test_missing_run_is_none(db):
    assert job_run_repo.get(db, "job-0-missing") is None


def test_run_ledger_records_lifecycle(session_factory, db):
    ledger = RunLedger(session_factory)

    ledger.record_queued("job-9-bbbbbbbbb", job_path="report/daily", shop_domain=None,
                         topic="orders/create", is_large_payload=False)
    ledger.record_running("job-9-bbbbbbbbb")
    ledger.record_completed("job-9-bbbbbbbbb")

    row = job_run_repo.get(db, "job-9-bbbbbbbbb")
    assert row.status == "completed"
    assert row.error is None


def test_run_ledger_swallows_database_errors():
    # 没建表的库：写入失败只记日志
    engine = create_engine("sqlite://")
    ledger = RunLedger(sessionmaker(bind=engine))

    ledger.record_queued("job-1-x", job_path="a", shop_domain=None, topic=None, is_large_payload=False)
    ledger.record_failed("job-1-x", "boom")
    engine.dispose()


def test_disabled_ledger_does_nothing():
    calls = []
    ledger = RunLedger(lambda: calls.append(1), enabled=False)
    ledger.record_running("job-1-x")
    assert calls == []
