# run id / payload key 生成

from __future__ import annotations
import secrets, string

from shopworker.utils.clock import epoch_ms

_ALPHABET = string.ascii_lowercase + string.digits


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def new_run_id() -> str:
    # job-<epoch ms>-<9 位小写字母数字>
    return f"job-{epoch_ms()}-{random_suffix()}"


def new_payload_key(prefix: str = "payloads") -> str:
    return f"{prefix.rstrip('/')}/payload-{epoch_ms()}-{random_suffix()}"
