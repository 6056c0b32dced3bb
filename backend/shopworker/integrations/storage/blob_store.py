"""
大 payload 转存（blob store）。

  - RedisBlobStore: 生产实现，key 带 TTL 兜底过期，正常由 dispatcher cleanup 删除
  - InMemoryBlobStore: 测试 / 本地单进程
"""
from __future__ import annotations

import logging, threading
from typing import Dict, Optional, Protocol

import redis

from shopworker.core.config import settings


logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, key: str, data: bytes) -> None: ...
    def get(self, key: str) -> Optional[bytes]: ...
    def delete(self, key: str) -> None: ...


class RedisBlobStore:

    def __init__(self, client: "redis.Redis", *, ttl_sec: Optional[int] = None, namespace: str = "shopworker:blob") -> None:
        self._r = client
        self._ttl = ttl_sec if ttl_sec is not None else settings.BLOB_TTL_SEC
        self._ns = namespace

    @classmethod
    def from_settings(cls) -> "RedisBlobStore":
        return cls(redis.Redis.from_url(settings.REDIS_URL))

    def _key(self, key: str) -> str:
        return f"{self._ns}:{key}"

    def put(self, key: str, data: bytes) -> None:
        self._r.set(self._key(key), data, ex=self._ttl if self._ttl > 0 else None)
        logger.info("blob.put key=%s size=%s", key, len(data))

    def get(self, key: str) -> Optional[bytes]:
        value = self._r.get(self._key(key))
        if value is None:
            return None
        return bytes(value)

    def delete(self, key: str) -> None:
        self._r.delete(self._key(key))
        logger.info("blob.delete key=%s", key)


class InMemoryBlobStore:

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(data)

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
