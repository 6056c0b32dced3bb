
from contextlib import asynccontextmanager

from fastapi import FastAPI
from shopworker.core.config import settings
from shopworker.core.logging import configure_logging
from shopworker.db import create_all, dispose_engine
from shopworker.api.v1 import api_v1
from shopworker.api.v1.routes_health import router as health_router
from shopworker.api.routes_gateway import router as gateway_router

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # sqlite 开发库没有迁移，启动时直接建表
    if settings.RUN_LEDGER_ENABLED and settings.DATABASE_URL.startswith("sqlite"):
        create_all()
    yield
    dispose_engine()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# 不挂 CORSMiddleware：webrequest job 的 CORS / preflight 由 gateway 自己回答，
# 否则 middleware 会替未知 job 回答 preflight

app.include_router(health_router)                        # /health（探活）
app.include_router(api_v1, prefix=settings.API_PREFIX)   # /api/v1/...

# catch-all 最后注册
app.include_router(gateway_router)
