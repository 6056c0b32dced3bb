
from fastapi import APIRouter, Depends
from shopworker.api.deps import require_admin_token

# 非受保护路由
from .routes_health import router as health_router

# 需要 admin token 的路由
from .runs import router as runs_router


api_v1 = APIRouter()
api_v1.include_router(health_router)      # /api/v1/health

protected = APIRouter(dependencies=[Depends(require_admin_token)])
protected.include_router(runs_router)

api_v1.include_router(protected)
