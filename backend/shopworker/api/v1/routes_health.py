
# 健康检查

from fastapi import APIRouter
from shopworker.core.config import settings
from shopworker.registry.job_registry import get_registry

router = APIRouter(tags=["health"])

@router.get("/health")
def health():
    registry = get_registry()
    return {
        "status": "ok",
        "app": settings.PROJECT_NAME,
        "env": settings.ENVIRONMENT,
        "jobs": len(registry),
        "job_errors": len(registry.errors),
    }
