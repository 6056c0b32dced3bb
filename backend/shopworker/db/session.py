# run 台账用的 Engine / Session
# engine 延迟到第一次用时才建：RUN_LEDGER_ENABLED=false 的部署完全不碰数据库

from __future__ import annotations
from functools import lru_cache
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from shopworker.core.config import settings


def _engine_kwargs(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # 本地开发用 sqlite 文件库；没有连接池参数
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,   # gateway 闲置很久后第一条 ledger 写入
        "pool_recycle": 1800,
    }


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    url = settings.DATABASE_URL
    return create_engine(url, echo=False, **_engine_kwargs(url))


@lru_cache(maxsize=1)
def get_sessionmaker() -> sessionmaker[Session]:
    return sessionmaker(
        bind=get_engine(),
        autoflush=False,
        expire_on_commit=False,  # ledger / API 读完就关 session
    )


def SessionLocal() -> Session:
    return get_sessionmaker()()


'''
FastAPI 依赖：/api/v1/runs 每个请求一个 session
'''
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_sessionmaker.cache_clear()
    get_engine.cache_clear()
