# Celery 入口：gateway 投递 run，worker 执行 JobDispatcher

from __future__ import annotations
import functools, logging
from typing import Any, Dict

from celery import shared_task

from shopworker.integrations.storage.blob_store import RedisBlobStore
from shopworker.integrations.storage.checkpoint_store import RedisCheckpointStore
from shopworker.integrations.notify.failure_notifier import FailureNotifier
from shopworker.orchestration.job_dispatch.dispatcher import JobDispatcher
from shopworker.orchestration.job_dispatch.steps import DurableStepRunner
from shopworker.registry.job_registry import get_registry
from shopworker.services.run_ledger import RunLedger


logger = logging.getLogger(__name__)

TASK_NAME = "shopworker.orchestration.job_dispatch.run_job_workflow"


@functools.lru_cache(maxsize=1)
def build_dispatcher() -> JobDispatcher:
    """Worker 进程内复用：registry / Redis 连接池 / ledger 都只建一次。"""
    checkpoints = RedisCheckpointStore.from_settings()
    return JobDispatcher(
        registry=get_registry(),
        blob_store=RedisBlobStore.from_settings(),
        step_runner_factory=lambda run_id: DurableStepRunner(checkpoints, run_id),
        notifier=FailureNotifier(),
        ledger=RunLedger.from_settings(),
    )


'''
一个 run 一个任务：
   - task_id = run id（job-<ms>-<rand>），重复投递同一个 run 时 checkpoint 跳过已完成的 step
   - 失败直接抛出，Celery 标记 FAILURE；不在这里做 autoretry
'''
@shared_task(name=TASK_NAME)
def run_job_workflow(run_id: str, params: Dict[str, Any]) -> Any:
    return build_dispatcher().run(run_id, params)


class CeleryRunLauncher:
    """Run-creation port used by the gateway: create(id, params)."""

    def create(self, run_id: str, params: Dict[str, Any]) -> str:
        # 确保 celery_app（broker / 路由配置）已加载
        from shopworker.core.celery_app import celery_app  # noqa: F401

        run_job_workflow.apply_async(kwargs={"run_id": run_id, "params": params}, task_id=run_id)
        logger.info("dispatch.enqueued run_id=%s job=%s", run_id, params.get("job_path"))
        return run_id
