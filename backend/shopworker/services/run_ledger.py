"""
Run 台账写入（best-effort）。

台账只是给运维看的记录：写失败只记日志，不影响 gateway 响应和 run 执行。
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopworker.core.config import settings
from shopworker.db.model.job_run import RunStatus
from shopworker.repository import job_run_repo


logger = logging.getLogger(__name__)


class RunLedger:

    def __init__(self, session_factory: Optional[Callable[[], Session]], *, enabled: bool = True) -> None:
        self._session_factory = session_factory
        self.enabled = enabled and session_factory is not None

    @classmethod
    def from_settings(cls) -> "RunLedger":
        if not settings.RUN_LEDGER_ENABLED:
            return cls(None, enabled=False)
        from shopworker.db.session import SessionLocal
        return cls(SessionLocal)

    def _write(self, op: str, run_id: str, fn: Callable[[Session], None]) -> None:
        if not self.enabled:
            return
        db = self._session_factory()
        try:
            fn(db)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("ledger.write_failed op=%s run_id=%s err=%s", op, run_id, e)
        finally:
            db.close()

    def record_queued(
        self,
        run_id: str,
        *,
        job_path: str,
        shop_domain: Optional[str],
        topic: Optional[str],
        is_large_payload: bool,
        payload_key: Optional[str] = None,
    ) -> None:
        self._write("queued", run_id, lambda db: job_run_repo.create_queued(
            db,
            run_id=run_id,
            job_path=job_path,
            shop_domain=shop_domain,
            topic=topic,
            is_large_payload=is_large_payload,
            payload_key=payload_key,
        ))

    def record_running(self, run_id: str) -> None:
        self._write("running", run_id, lambda db: job_run_repo.mark_running(db, run_id))

    def record_completed(self, run_id: str) -> None:
        self._write("completed", run_id,
                    lambda db: job_run_repo.mark_finished(db, run_id, status=RunStatus.COMPLETED))

    def record_failed(self, run_id: str, error: str) -> None:
        self._write("failed", run_id,
                    lambda db: job_run_repo.mark_finished(db, run_id, status=RunStatus.FAILED, error=error))
