import json
from pathlib import Path

import pytest

from shopworker.core.security import compute_hmac_base64
from shopworker.registry.job_registry import CORE_ROOT, JobRegistry
from shopworker.shops.shop_config import ShopDirectory


SHOP_DOMAIN = "yarra-test.myshopify.com"


def _shop_record(**overrides) -> dict:
    record = {
        "name": "main",
        "shopify_domain": SHOP_DOMAIN,
        "shopify_token": "shpat_test",
        "shopify_api_secret_key": "hmac-secret",
        "shopworker_webhook_secret": "internal-secret",
    }
    record.update(overrides)
    return record


@pytest.fixture
def shop_record() -> dict:
    return _shop_record()


@pytest.fixture
def shops() -> ShopDirectory:
    return ShopDirectory.from_data({"shops": [_shop_record()]})


# core job 目录随包发布，整个测试会话只扫描一次
@pytest.fixture(scope="session")
def core_registry() -> JobRegistry:
    return JobRegistry.build(CORE_ROOT, None)


@pytest.fixture
def sign():
    """HMAC header value for a raw body, signed with the test shop's secret."""
    def _sign(raw: bytes, secret: str = "hmac-secret") -> str:
        return compute_hmac_base64(secret, raw)
    return _sign


DEFAULT_HANDLER = "def process(context):\n    return {'ok': True, 'payload': context.payload}\n"


@pytest.fixture
def write_job():
    """
    在临时目录里造一个 job：<root>/jobs/<path>/config.json + job.py
    source=None 时不写 job.py
    """
    def _write(root: Path, path: str, config: dict, source=DEFAULT_HANDLER) -> Path:
        job_dir = Path(root) / "jobs" / path
        job_dir.mkdir(parents=True, exist_ok=True)
        (job_dir / "config.json").write_text(json.dumps(config), encoding="utf-8")
        if source is not None:
            (job_dir / "job.py").write_text(source, encoding="utf-8")
        return job_dir
    return _write


@pytest.fixture
def write_trigger():
    def _write(root: Path, name: str, data: dict) -> Path:
        triggers_dir = Path(root) / "triggers"
        triggers_dir.mkdir(parents=True, exist_ok=True)
        path = triggers_dir / f"{name}.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write
