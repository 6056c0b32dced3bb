"""
JobDispatcher：一个 run = 一个 Celery 任务，run 内部按 step 串行执行。

  流程（任何一步抛错都走失败分支）：
    1) retrieve-payload   (step)  转存的 payload 从 blob store 取回，否则用 inline payload
    2) load-job-config    (step)  从 registry 重新加载 job config，合并 payload._configOverrides 到 test
    3) 构建 Shopify client（不是 step，每次恢复都重新构建）
    4) 调用 handler process(context)
    5) cleanup            (step)  删除转存的 blob，删除失败只记日志

  失败分支：best-effort 失败通知 → cleanup → 原样 re-raise，让 Celery 标记任务失败。
"""
from __future__ import annotations

import enum, json, logging, os
from typing import Any, Callable, Dict, Mapping, Optional

from shopworker.core.errors import ConfigError
from shopworker.integrations.notify.failure_notifier import FailureNotifier
from shopworker.integrations.shopify.shopify_client import ShopifyClient
from shopworker.integrations.storage.blob_store import BlobStore
from shopworker.orchestration.job_dispatch.context import JobContext, load_secrets_from_env
from shopworker.orchestration.job_dispatch.steps import StepRunner
from shopworker.registry.job_registry import JobRegistry
from shopworker.services.run_ledger import RunLedger
from shopworker.utils.serialization import to_jsonable


logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    CREATED = "Created"
    RETRIEVING_PAYLOAD = "RetrievingPayload"
    LOADING_CONFIG = "LoadingConfig"
    BUILDING_CLIENT = "BuildingClient"
    INVOKING = "Invoking"
    NOTIFYING_FAILURE = "NotifyingFailure"
    CLEANING_UP = "CleaningUp"
    COMPLETED = "Completed"
    FAILED = "Failed"


STEP_RETRIEVE_PAYLOAD = "retrieve-payload"
STEP_LOAD_JOB_CONFIG = "load-job-config"
STEP_CLEANUP = "cleanup"

CONFIG_OVERRIDES_KEY = "_configOverrides"


ClientFactory = Callable[[str, Optional[str], Optional[str]], Any]


def default_client_factory(shop_domain: str, access_token: Optional[str], api_version: Optional[str]) -> ShopifyClient:
    return ShopifyClient(shop_domain, access_token, api_version=api_version)


class JobDispatcher:

    def __init__(
        self,
        *,
        registry: JobRegistry,
        blob_store: BlobStore,
        step_runner_factory: Callable[[str], StepRunner],
        client_factory: ClientFactory = default_client_factory,
        notifier: Optional[FailureNotifier] = None,
        ledger: Optional[RunLedger] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._registry = registry
        self._blobs = blob_store
        self._step_runner_factory = step_runner_factory
        self._client_factory = client_factory
        self._notifier = notifier or FailureNotifier()
        self._ledger = ledger or RunLedger(None, enabled=False)
        self._env = env

    # ---------- 入口 ----------
    def run(self, run_id: str, params: Mapping[str, Any]) -> Any:
        job_path = params.get("job_path") or ""
        shop_domain = params.get("shop_domain") or ""
        shop_config = dict(params.get("shop_config") or {})
        payload_ref = params.get("payload_ref") if params.get("is_large_payload") else None

        state = RunState.CREATED
        logger.info("dispatch.start run_id=%s job=%s shop=%s topic=%s large=%s",
                    run_id, job_path, shop_domain, params.get("topic"), bool(payload_ref))
        self._ledger.record_running(run_id)

        steps = self._step_runner_factory(run_id)
        job_config: Dict[str, Any] = dict(params.get("job_config") or {})   # 失败通知的兜底（reload 前失败时）

        try:
            state = self._transition(run_id, state, RunState.RETRIEVING_PAYLOAD)
            payload = steps.run_step(STEP_RETRIEVE_PAYLOAD, lambda: self._retrieve_payload(params))

            state = self._transition(run_id, state, RunState.LOADING_CONFIG)
            job_config = steps.run_step(STEP_LOAD_JOB_CONFIG, lambda: self._load_job_config(job_path, payload))

            state = self._transition(run_id, state, RunState.BUILDING_CLIENT)
            shopify = self._client_factory(shop_domain, shop_config.get("shopify_token"), job_config.get("apiVersion"))
            job = self._registry.resolve(job_path)

            state = self._transition(run_id, state, RunState.INVOKING)
            env = os.environ if self._env is None else self._env
            context = JobContext(
                shopify=shopify,
                payload=payload,
                shop_config=shop_config,
                job_config=job_config,
                env=env,
                secrets=load_secrets_from_env(env),
                step=steps,
            )
            result = job.handler(context)

        except Exception as e:
            logger.error("dispatch.failed run_id=%s job=%s state=%s err=%s", run_id, job_path, state.value, e)
            state = self._transition(run_id, state, RunState.NOTIFYING_FAILURE)
            self._notifier.notify(
                run_id=run_id,
                job_path=job_path,
                job_config=job_config,
                shop_config=shop_config,
                error=e,
            )
            state = self._transition(run_id, state, RunState.CLEANING_UP)
            try:
                self._cleanup(steps, run_id, payload_ref)
            except Exception:
                # 清理失败不能盖掉 handler 的原始异常
                logger.exception("dispatch.cleanup_failed run_id=%s job=%s", run_id, job_path)
            self._transition(run_id, state, RunState.FAILED)
            self._ledger.record_failed(run_id, str(e))
            raise e

        state = self._transition(run_id, state, RunState.CLEANING_UP)
        self._cleanup(steps, run_id, payload_ref)
        self._transition(run_id, state, RunState.COMPLETED)
        self._ledger.record_completed(run_id)
        self._forget_checkpoints(steps, run_id)
        return to_jsonable(result)

    # ---------- steps ----------
    def _retrieve_payload(self, params: Mapping[str, Any]) -> Any:
        if not params.get("is_large_payload"):
            return params.get("payload")

        ref = params.get("payload_ref") or {}
        key = ref.get("key")
        if not key:
            raise ConfigError("Large payload reference has no key")
        data = self._blobs.get(key)
        if data is None:
            raise ConfigError(f"Large payload not found in blob store: {key}")
        return json.loads(data.decode("utf-8"))

    def _load_job_config(self, job_path: str, payload: Any) -> Dict[str, Any]:
        try:
            config = self._registry.resolve(job_path).definition.to_config_dict()
        except ConfigError as e:
            raise ConfigError(f"Failed to load job config for {job_path}: {e}") from e

        overrides = payload.get(CONFIG_OVERRIDES_KEY) if isinstance(payload, dict) else None
        if isinstance(overrides, dict):
            config["test"] = {**(config.get("test") or {}), **overrides}
        return config

    def _cleanup(self, steps: StepRunner, run_id: str, payload_ref: Optional[Mapping[str, Any]]) -> None:
        def _delete_blob():
            key = (payload_ref or {}).get("key")
            if key:
                try:
                    self._blobs.delete(key)
                except Exception as e:
                    logger.warning("dispatch.cleanup_failed run_id=%s key=%s err=%s", run_id, key, e)
            return {"cleanup": "completed"}

        steps.run_step(STEP_CLEANUP, _delete_blob)

    @staticmethod
    def _forget_checkpoints(steps: StepRunner, run_id: str) -> None:
        # run 已完成，不会再重放；失败的 run 保留 checkpoint 给 Celery 重投用
        try:
            steps.clear()
        except Exception as e:
            logger.warning("dispatch.checkpoint_clear_failed run_id=%s err=%s", run_id, e)

    @staticmethod
    def _transition(run_id: str, current: RunState, target: RunState) -> RunState:
        logger.info("dispatch.state run_id=%s from=%s to=%s", run_id, current.value, target.value)
        return target
