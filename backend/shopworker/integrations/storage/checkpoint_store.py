"""
Step checkpoint：按 (run_id, step name) 记录已完成 step 的 JSON 结果。
Celery 重投同一个 run 时，已完成的 step 直接返回记录的结果。
"""
from __future__ import annotations

import json, threading
from typing import Any, Dict, Optional, Protocol, Tuple

import redis

from shopworker.core.config import settings


class CheckpointStore(Protocol):
    def get(self, run_id: str, step: str) -> Optional[Tuple[Any]]: ...
    def put(self, run_id: str, step: str, value: Any) -> None: ...
    def clear(self, run_id: str) -> None: ...


'''
get() 返回 1 元组 (value,) 或 None，区分 "step 结果就是 None" 和 "step 未完成"
'''
class RedisCheckpointStore:

    def __init__(self, client: "redis.Redis", *, ttl_sec: Optional[int] = None, namespace: str = "shopworker:ckpt") -> None:
        self._r = client
        self._ttl = ttl_sec if ttl_sec is not None else settings.CHECKPOINT_TTL_SEC
        self._ns = namespace

    @classmethod
    def from_settings(cls) -> "RedisCheckpointStore":
        return cls(redis.Redis.from_url(settings.REDIS_URL))

    def _key(self, run_id: str) -> str:
        return f"{self._ns}:{run_id}"

    def get(self, run_id: str, step: str) -> Optional[Tuple[Any]]:
        raw = self._r.hget(self._key(run_id), step)
        if raw is None:
            return None
        return (json.loads(raw),)

    def put(self, run_id: str, step: str, value: Any) -> None:
        key = self._key(run_id)
        self._r.hset(key, step, json.dumps(value, separators=(",", ":")))
        if self._ttl > 0:
            self._r.expire(key, self._ttl)

    def clear(self, run_id: str) -> None:
        self._r.delete(self._key(run_id))


class InMemoryCheckpointStore:

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, str]] = {}
        self._lock = threading.Lock()

    def get(self, run_id: str, step: str) -> Optional[Tuple[Any]]:
        with self._lock:
            raw = self._data.get(run_id, {}).get(step)
        if raw is None:
            return None
        return (json.loads(raw),)

    def put(self, run_id: str, step: str, value: Any) -> None:
        # 和 Redis 实现一样走 JSON，保证 step 结果可序列化
        with self._lock:
            self._data.setdefault(run_id, {})[step] = json.dumps(value, separators=(",", ":"))

    def clear(self, run_id: str) -> None:
        with self._lock:
            self._data.pop(run_id, None)
