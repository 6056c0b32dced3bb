# Alembic 迁移入口：只管 shopworker 自己的表（job_runs 等）

from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from shopworker.core.config import settings
from shopworker.db.base import Base
import shopworker.db.model  # noqa: F401  注册全部 ORM 模型


config = context.config

if settings.DATABASE_URL:
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

if config.config_file_name:
    fileConfig(config.config_file_name, disable_existing_loggers=False)
else:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("shopworker.migrations")

target_metadata = Base.metadata


# 同库可能还有 Celery result backend 等别人的表：autogenerate 时不要去 drop 它们
def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table" and reflected and compare_to is None:
        return name in target_metadata.tables
    return True


def _is_sqlite(url: str) -> bool:
    return (url or "").startswith("sqlite")


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    logger.info("migrations.offline url=%s", url.split("@")[-1] if url else "-")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        include_object=include_object,
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            render_as_batch=connection.dialect.name == "sqlite",   # SQLite 只能 batch ALTER
            compare_type=True,
            compare_server_default=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
