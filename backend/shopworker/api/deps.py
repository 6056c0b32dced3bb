# FastAPI 依赖：gateway 单例 + 管理接口 token 校验

from __future__ import annotations
import functools
from typing import Optional

from fastapi import Header, HTTPException

from shopworker.core.config import settings
from shopworker.core.security import secrets_equal
from shopworker.integrations.storage.blob_store import RedisBlobStore
from shopworker.orchestration.job_dispatch.job_dispatch_task import CeleryRunLauncher
from shopworker.registry.job_registry import get_registry
from shopworker.services.gateway_service import RequestGateway
from shopworker.services.run_ledger import RunLedger
from shopworker.shops.shop_config import get_shop_directory


@functools.lru_cache(maxsize=1)
def get_gateway() -> RequestGateway:
    return RequestGateway(
        registry=get_registry(),
        shops=get_shop_directory(),
        launcher=CeleryRunLauncher(),
        blob_store=RedisBlobStore.from_settings(),
        ledger=RunLedger.from_settings(),
    )


'''
管理接口鉴权：X-Shopworker-Admin-Token 必须等于 ADMIN_API_TOKEN
  - 未配置 ADMIN_API_TOKEN 时管理接口整体关闭（403）
'''
def require_admin_token(x_shopworker_admin_token: Optional[str] = Header(default=None)) -> None:
    expected = settings.ADMIN_API_TOKEN.get_secret_value() if settings.ADMIN_API_TOKEN else None
    if not expected:
        raise HTTPException(status_code=403, detail="Admin API disabled")
    if not secrets_equal(x_shopworker_admin_token, expected):
        raise HTTPException(status_code=401, detail="Invalid admin token")
