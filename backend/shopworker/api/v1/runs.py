# run 台账查询（只读）

from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from shopworker.db.session import get_db
from shopworker.repository import job_run_repo

router = APIRouter(prefix="/runs", tags=["runs"])


@router.get("")
def list_runs(
    limit: int = Query(50, ge=1, le=500),
    job: Optional[str] = Query(None, description="job path，例如 product/tag-when-title-updated"),
    status: Optional[str] = Query(None, pattern="^(queued|running|completed|failed)$"),
    db: Session = Depends(get_db),
):
    rows = job_run_repo.list_recent(db, limit=limit, job_path=job, status=status)
    return {"items": [r.to_dict() for r in rows], "count": len(rows)}


@router.get("/{run_id}")
def get_run(run_id: str, db: Session = Depends(get_db)):
    row = job_run_repo.get(db, run_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return row.to_dict()
