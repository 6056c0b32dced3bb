"""
Webhook 订阅对齐：本地 job 配置（期望） vs 店铺上的订阅（实际）。

  - enable / disable / delete_by_id: 幂等，返回 {"action": ...}，运维重复执行即可收敛
  - job_status / all_jobs_status / find_orphaned_webhooks: 只读

  Shopify 每个店铺每个 topic 只允许一个订阅：同 topic 不同 URL 一律视为冲突，不覆盖。
  list → create/delete 之间不加锁，同一店铺/topic 并发 enable/disable 可能互相覆盖。
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from shopworker.core.config import settings
from shopworker.core.errors import ConfigError, RemoteAPIError
from shopworker.integrations.shopify.shopify_client import ShopifyClient
from shopworker.integrations.shopify.webhook_subscriptions import (
    WebhookSubscription,
    create_webhook_subscription,
    delete_webhook_subscription,
    full_webhook_id,
    list_webhook_subscriptions,
    short_webhook_id,
    to_graphql_topic,
)
from shopworker.registry.identity import build_callback_url, job_paths_match, same_origin_and_path
from shopworker.registry.job_registry import JobRegistry
from shopworker.registry.models import RegisteredJob, WEBREQUEST_TOPIC
from shopworker.shops.shop_config import ShopConfig, ShopDirectory


logger = logging.getLogger(__name__)


ADDRESS_NOT_ALLOWED = "Address is not allowed"
ADDRESS_NOT_ALLOWED_HELP = (
    "The webhook URL is not allowed by Shopify. "
    "Shopify requires webhook URLs to be HTTPS and from a trusted domain. "
    "For testing, expose the worker through a public HTTPS tunnel."
)

STATUS_ENABLED = "Enabled"
STATUS_DISABLED = "Disabled"
STATUS_MANUAL = "Manual"
STATUS_TRIGGER_MISSING = "TRIGGER MISSING"
STATUS_API_ERROR = "API ERROR"
STATUS_CONFIG_ERROR = "CONFIG ERROR"

DELETE_COMMAND = "python scripts/shopworker_webhooks.py delete-webhook {id} --job {job}"


def include_fields_differ(config_fields: Optional[Iterable[str]], active_fields: Optional[Iterable[str]]) -> bool:
    # 任意一边没配置就不算漂移；比较集合，不看顺序
    if not config_fields or not active_fields:
        return False
    return set(config_fields) != set(active_fields)


def default_client_factory(shop: ShopConfig, api_version: Optional[str]) -> ShopifyClient:
    return ShopifyClient(shop.shopify_domain, shop.shopify_token, api_version=api_version)


class WebhookReconciler:

    def __init__(
        self,
        *,
        registry: JobRegistry,
        shops: ShopDirectory,
        client_factory: Callable[[ShopConfig, Optional[str]], Any] = default_client_factory,
        active_crons: Optional[Iterable[str]] = None,
    ) -> None:
        self._registry = registry
        self._shops = shops
        self._client_factory = client_factory
        self._active_crons = list(settings.active_crons if active_crons is None else active_crons)
        self._clients: Dict[str, Any] = {}

    # ================= 基础 =================
    def _client_for_shop(self, shop: ShopConfig) -> Any:
        client = self._clients.get(shop.shopify_domain)
        if client is None:
            client = self._client_factory(shop, None)
            self._clients[shop.shopify_domain] = client
        return client

    def _client_for_job(self, job: RegisteredJob) -> Any:
        return self._client_for_shop(self._shops.for_job(job.definition.shop))

    def _webhook_topic(self, job: RegisteredJob) -> str:
        if not job.definition.trigger:
            raise ConfigError(f"Job {job.path} does not have a trigger configured")
        if job.trigger is None:
            raise ConfigError(job.trigger_error or f"Trigger '{job.definition.trigger}' not found")
        topic = job.trigger.webhook_topic
        if not topic:
            raise ConfigError(f"Trigger '{job.trigger.name}' does not use webhooks")
        if topic.startswith("shopworker/"):
            raise ConfigError(f"Topic {topic} is served by the gateway directly and has no Shopify subscription")
        return topic

    @staticmethod
    def _is_for_job(sub: WebhookSubscription, gql_topic: str, job_path: str) -> bool:
        return sub.topic == gql_topic and sub.is_http and job_paths_match(sub.job_identity, job_path)

    # ================= enable =================
    def enable(self, identity: str, worker_url: Optional[str] = None, *, force: bool = False) -> Dict[str, Any]:
        job = self._registry.resolve(identity)
        topic = self._webhook_topic(job)
        worker_url = worker_url or settings.WORKER_URL
        if not worker_url:
            raise ConfigError("Missing worker URL: pass --worker-url or set WORKER_URL")

        callback_url = build_callback_url(worker_url, job.path)
        gql_topic = to_graphql_topic(topic)
        client = self._client_for_job(job)
        result: Dict[str, Any] = {"job": job.path, "topic": topic, "callbackUrl": callback_url}
        logger.info("reconcile.enable job=%s topic=%s callback=%s force=%s", job.path, topic, callback_url, force)

        # 1) 列出全部订阅 → 按 topic 过滤
        same_topic = [s for s in list_webhook_subscriptions(client) if s.topic == gql_topic]

        # 2) 完全匹配（origin + path + job identity）→ 已启用
        exact = [
            s for s in same_topic
            if s.is_http
            and same_origin_and_path(s.callback_url, callback_url)
            and job_paths_match(s.job_identity, job.path)
        ]
        if exact:
            drift = any(include_fields_differ(job.definition.include_fields, s.include_fields) for s in exact)
            if drift:
                logger.warning("reconcile.include_fields_drift job=%s ids=%s",
                               job.path, [s.short_id for s in exact])
            return {**result, "action": "already_enabled",
                    "subscriptions": [s.to_dict() for s in exact], "includeFieldsDrift": drift}

        # 3) 同 topic 不同 URL → 冲突，不创建；force 也一样，旧订阅交给 disable / delete-webhook
        conflicts = [s for s in same_topic if s not in exact]
        if conflicts:
            logger.warning("reconcile.conflict job=%s topic=%s ids=%s",
                           job.path, topic, [s.short_id for s in conflicts])
            return {
                **result,
                "action": "conflict",
                "conflicts": [s.to_dict() for s in conflicts],
                "hint": DELETE_COMMAND.format(id=conflicts[0].short_id, job=job.path),
            }

        # 4) 创建
        try:
            created = create_webhook_subscription(
                client,
                topic,
                callback_url,
                include_fields=job.definition.include_fields,
                metafield_namespaces=job.definition.metafield_namespaces,
            )
        except RemoteAPIError as e:
            if ADDRESS_NOT_ALLOWED in str(e):
                logger.error("reconcile.address_not_allowed job=%s callback=%s", job.path, callback_url)
                return {**result, "action": "address_not_allowed", "error": str(e),
                        "message": ADDRESS_NOT_ALLOWED_HELP}
            raise

        logger.info("reconcile.created job=%s id=%s", job.path, created.short_id)
        return {**result, "action": "created", "id": created.id}

    # ================= disable =================
    def disable(self, identity: str, worker_url: Optional[str] = None) -> Dict[str, Any]:
        job = self._registry.resolve(identity)
        topic = self._webhook_topic(job)
        gql_topic = to_graphql_topic(topic)
        client = self._client_for_job(job)
        result: Dict[str, Any] = {"job": job.path, "topic": topic}
        worker_url = worker_url or settings.WORKER_URL
        if worker_url:
            result["callbackUrl"] = build_callback_url(worker_url, job.path)

        subs = list_webhook_subscriptions(client)
        # 按 identity 匹配而不是 URL 全等，兼容旧的 ?job= 编码
        matches = [s for s in subs if self._is_for_job(s, gql_topic, job.path)]

        if not matches:
            hint = [s for s in subs if s.topic == gql_topic and s.is_http]
            logger.info("reconcile.disable_noop job=%s same_topic=%s", job.path, len(hint))
            return {**result, "action": "noop", "deleted": [], "failed": [],
                    "sameTopic": [{**s.to_dict(), "jobInUrl": s.job_identity} for s in hint]}

        deleted: List[str] = []
        failed: List[Dict[str, str]] = []
        for s in matches:
            try:
                delete_webhook_subscription(client, s.id)
            except RemoteAPIError as e:
                logger.error("reconcile.delete_failed job=%s id=%s err=%s", job.path, s.short_id, e)
                failed.append({"id": s.id, "error": str(e)})
                continue
            logger.info("reconcile.deleted job=%s id=%s", job.path, s.short_id)
            deleted.append(s.id)

        return {**result, "action": "deleted", "deleted": deleted, "failed": failed}

    # ================= delete by id =================
    def delete_by_id(self, webhook_id: str, *, job: Optional[str] = None) -> Dict[str, Any]:
        # --job 只用来选店铺（job 配置里的 shop），否则用默认店铺
        if job:
            shop = self._shops.for_job(self._registry.resolve(job).definition.shop)
        else:
            shop = self._shops.default_shop()
        gid = full_webhook_id(webhook_id)
        deleted_id = delete_webhook_subscription(self._client_for_shop(shop), gid)
        logger.info("reconcile.deleted_by_id shop=%s id=%s", shop.shopify_domain, short_webhook_id(gid))
        return {"action": "deleted", "id": deleted_id or gid, "shop": shop.shopify_domain}

    # ================= status =================
    def job_status(self, identity: str, *, _subs_cache: Optional[Dict[str, List[WebhookSubscription]]] = None) -> Dict[str, Any]:
        job = self._registry.resolve(identity)
        definition = job.definition
        row: Dict[str, Any] = {
            "job": job.path,
            "title": definition.title,
            "location": definition.location,
            "shop": definition.shop,
            "includeFields": list(definition.include_fields) if definition.include_fields else None,
            "topic": "N/A",
            "status": STATUS_TRIGGER_MISSING,
            "webhookId": "-",
        }

        if not definition.trigger:
            return row
        if job.trigger is None:
            row["topic"] = definition.trigger
            return row

        topic = job.trigger.webhook_topic or definition.trigger
        row["topic"] = topic

        # webrequest：部署即可用
        if topic == WEBREQUEST_TOPIC or job.is_public:
            row["status"] = STATUS_ENABLED
            return row

        if job.is_schedule:
            cron = definition.schedule or "Not configured"
            row["topic"] = f"schedule ({cron})"
            row["status"] = STATUS_ENABLED if cron in self._active_crons else STATUS_DISABLED
            return row

        if not job.trigger.webhook_topic:
            row["status"] = STATUS_MANUAL
            return row

        gql_topic = to_graphql_topic(job.trigger.webhook_topic)
        try:
            shop = self._shops.for_job(definition.shop)
            if _subs_cache is not None and shop.shopify_domain in _subs_cache:
                subs = _subs_cache[shop.shopify_domain]
            else:
                subs = list_webhook_subscriptions(self._client_for_shop(shop))
                if _subs_cache is not None:
                    _subs_cache[shop.shopify_domain] = subs
        except (RemoteAPIError, ConfigError) as e:
            logger.warning("reconcile.status_error job=%s err=%s", job.path, e)
            row["status"] = STATUS_API_ERROR
            row["webhookId"] = "ERR"
            return row

        match = next((s for s in subs if self._is_for_job(s, gql_topic, job.path)), None)
        if match is None:
            row["status"] = STATUS_DISABLED
            return row

        row["status"] = STATUS_ENABLED
        row["webhookId"] = match.short_id
        row["includeFieldsDrift"] = include_fields_differ(definition.include_fields, match.include_fields)
        return row

    def all_jobs_status(self, *, include_core: bool = False) -> Dict[str, Any]:
        cache: Dict[str, List[WebhookSubscription]] = {}
        rows = [self.job_status(job.path, _subs_cache=cache) for job in self._registry.jobs(include_core=include_core)]

        # 加载失败的 job 也要显示出来
        for path, error in self._registry.errors.items():
            location = path.split("/", 1)[0]
            if include_core or location != "core":
                rows.append({"job": path, "title": path, "location": location, "shop": None,
                             "topic": STATUS_CONFIG_ERROR, "status": STATUS_CONFIG_ERROR,
                             "webhookId": "-", "error": error})

        rows.sort(key=lambda r: (r.get("shop") or "", r["job"]))
        # 孤儿检查总是对照全部 job（含 core）
        orphans = self.find_orphaned_webhooks(_subs_cache=cache)
        return {"jobs": rows, "orphans": {shop: [s.to_dict() for s in subs] for shop, subs in orphans.items() if subs}}

    # ================= orphans =================
    def find_orphaned_webhooks(
        self, *, _subs_cache: Optional[Dict[str, List[WebhookSubscription]]] = None,
    ) -> Dict[str, List[WebhookSubscription]]:
        known = self._registry.identities()
        report: Dict[str, List[WebhookSubscription]] = {}

        for shop in self._shops.all_shops():
            try:
                if _subs_cache is not None and shop.shopify_domain in _subs_cache:
                    subs = _subs_cache[shop.shopify_domain]
                else:
                    subs = list_webhook_subscriptions(self._client_for_shop(shop))
            except (RemoteAPIError, ConfigError) as e:
                logger.warning("reconcile.orphan_check_failed shop=%s err=%s", shop.shopify_domain, e)
                continue

            orphans = []
            for s in subs:
                identity = s.job_identity
                # 没有嵌入 job identity 的订阅不是我们建的，跳过
                if not identity:
                    continue
                if not any(job_paths_match(identity, path) for path in known):
                    orphans.append(s)
            if orphans:
                logger.warning("reconcile.orphans shop=%s ids=%s", shop.shopify_domain, [s.short_id for s in orphans])
            report[shop.shopify_domain] = orphans

        return report
