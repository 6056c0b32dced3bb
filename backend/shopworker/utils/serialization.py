from __future__ import annotations

import enum
import json
import math
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping


def _finite(f: float):
    return None if math.isnan(f) or math.isinf(f) else f


def to_jsonable(value: Any):
    """
    Turn a handler result, step result or run param into plain JSON values.

    Celery only carries JSON, and step checkpoints are replayed from JSON, so a
    step must hand back the same shape on first run and on replay.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return _finite(value)
    if isinstance(value, Decimal):
        return _finite(float(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return to_jsonable(value.value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


# payload 大小按紧凑 JSON 的 UTF-8 字节数计算
def compact_json_bytes(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def maybe_json(raw: str) -> Any:
    """JSON-decode when possible, otherwise hand the raw string back."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw
