from typing import Optional

from sqlalchemy.engine import Engine

from .base import Base
from .session import SessionLocal, get_db, get_engine, dispose_engine
from shopworker.db.model import *  # 注册 job_runs 等模型到 Base.metadata


# 本地/sqlite 直接建表；postgres 部署走 `alembic upgrade head`
def create_all(engine: Optional[Engine] = None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())
