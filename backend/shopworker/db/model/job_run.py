
from __future__ import annotations
import enum
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, Text, DateTime, func, text, Index
from sqlalchemy.orm import Mapped, mapped_column
from shopworker.db.base import Base


class RunStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# run 台账：只做记录/查询，重试和恢复由 Celery 负责
class JobRun(Base):
    __tablename__ = "job_runs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)            # job-<ms>-<rand9>，与 Celery task_id 一致

    job_path:    Mapped[str]           = mapped_column(String(255), nullable=False)
    shop_domain: Mapped[Optional[str]] = mapped_column(String(255))
    topic:       Mapped[Optional[str]] = mapped_column(String(128))
    status:      Mapped[str]           = mapped_column(String(16), nullable=False, server_default=text("'queued'"))

    is_large_payload: Mapped[bool]          = mapped_column(Boolean, nullable=False, server_default=text("false"))
    payload_key:      Mapped[Optional[str]] = mapped_column(String(255))    # 转存 payload 的 blob key
    error:            Mapped[Optional[str]] = mapped_column(Text)

    created_at:  Mapped[datetime]           = mapped_column(DateTime(timezone=True), server_default=func.now())
    started_at:  Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_job_runs_job_path_created_at", "job_path", "created_at"),
        Index("ix_job_runs_status", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_path": self.job_path,
            "shop_domain": self.shop_domain,
            "topic": self.topic,
            "status": self.status,
            "is_large_payload": self.is_large_payload,
            "payload_key": self.payload_key,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
