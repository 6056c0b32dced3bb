"""
Step 执行接口：handler 只依赖 run_step(name, fn)。

  - PassThroughStepRunner: 直接调用（同步 job / 测试）
  - DurableStepRunner: 按 (run_id, step name) 记录 JSON 结果；
    Celery 重投同一个 run（task_acks_late + worker 丢失）时，已完成的 step 不再执行。

重试 / 退避不在这里做，交给 Celery。step 里的副作用必须可重复执行。
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Protocol, TypeVar

from shopworker.integrations.storage.checkpoint_store import CheckpointStore
from shopworker.utils.serialization import to_jsonable


logger = logging.getLogger(__name__)

T = TypeVar("T")


class StepRunner(Protocol):
    def run_step(self, name: str, fn: Callable[[], T]) -> T: ...
    def clear(self) -> None: ...


class PassThroughStepRunner:

    def run_step(self, name: str, fn: Callable[[], T]) -> T:
        return fn()

    def clear(self) -> None:
        return None


class DurableStepRunner:

    def __init__(self, checkpoints: CheckpointStore, run_id: str) -> None:
        self._checkpoints = checkpoints
        self.run_id = run_id

    def run_step(self, name: str, fn: Callable[[], Any]) -> Any:
        if not name:
            raise ValueError("step name is required")

        hit = self._checkpoints.get(self.run_id, name)
        if hit is not None:
            logger.info("step.replayed run_id=%s step=%s", self.run_id, name)
            return hit[0]

        logger.info("step.start run_id=%s step=%s", self.run_id, name)
        # 首次执行和重放拿到的都是 JSON 化后的结果
        result = to_jsonable(fn())
        self._checkpoints.put(self.run_id, name, result)
        logger.info("step.done run_id=%s step=%s", self.run_id, name)
        return result

    def clear(self) -> None:
        self._checkpoints.clear(self.run_id)
        logger.info("step.cleared run_id=%s", self.run_id)
