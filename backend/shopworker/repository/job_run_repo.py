# job run 台账 repository

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from shopworker.db.model.job_run import JobRun, RunStatus
from shopworker.utils.clock import now_utc


# ---------- Query ----------
def get(db: Session, run_id: str) -> Optional[JobRun]:
    return db.get(JobRun, run_id)


def list_recent(
    db: Session,
    *,
    limit: int = 50,
    job_path: Optional[str] = None,
    status: Optional[str] = None,
) -> list[JobRun]:
    stmt = select(JobRun)
    if job_path:
        stmt = stmt.where(JobRun.job_path == job_path)
    if status:
        stmt = stmt.where(JobRun.status == status)
    stmt = stmt.order_by(JobRun.created_at.desc(), JobRun.id.desc()).limit(limit)
    return list(db.scalars(stmt))


# ---------- Mutations ----------
def create_queued(
    db: Session,
    *,
    run_id: str,
    job_path: str,
    shop_domain: Optional[str],
    topic: Optional[str],
    is_large_payload: bool = False,
    payload_key: Optional[str] = None,
) -> JobRun:
    row = JobRun(
        id=run_id,
        job_path=job_path,
        shop_domain=shop_domain,
        topic=topic,
        status=RunStatus.QUEUED.value,
        is_large_payload=is_large_payload,
        payload_key=payload_key,
        created_at=now_utc(),
    )
    db.add(row)
    db.commit()
    return row


def mark_running(db: Session, run_id: str) -> None:
    # 重投时会再次进入 running；started_at 只记第一次
    now = now_utc()
    db.execute(
        update(JobRun)
        .where(JobRun.id == run_id, JobRun.started_at.is_(None))
        .values(started_at=now)
    )
    db.execute(update(JobRun).where(JobRun.id == run_id).values(status=RunStatus.RUNNING.value))
    db.commit()


def mark_finished(db: Session, run_id: str, *, status: RunStatus, error: Optional[str] = None) -> None:
    db.execute(
        update(JobRun)
        .where(JobRun.id == run_id)
        .values(status=status.value, error=(error or None), finished_at=now_utc())
    )
    db.commit()
