
from __future__ import annotations
import time
from datetime import datetime, timezone

def now_utc() -> datetime:
    # job_runs 用 timestamptz，这里保留 tzinfo
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    return int(time.time() * 1000)
