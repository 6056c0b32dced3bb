"""
Request Gateway：所有 webhook / webrequest 投递的入口逻辑（不依赖 FastAPI，便于单测）。

  OPTIONS  公开 job → 204 + CORS；其他一律 405（不暴露 job 是否存在）
  GET      只允许公开（webrequest）job，query 参数即 payload
  POST     公开 job：JSON body 即 payload，无鉴权
           其他 job：必须有 JSON body + X-Shopify-Shop-Domain + X-Shopify-Topic
                    shopworker/webhook → X-Shopworker-Webhook-Secret 共享密钥
                    其他 topic        → X-Shopify-Hmac-Sha256 签名

  公开 job（webrequest）直接调用 handler 并把结果转成 HTTP 响应；
  其他 trigger 一律创建 durable run（Celery），超过阈值的 payload 先转存 blob store；
  trigger 配置里的 realtime 标记不改变这一点。
"""
from __future__ import annotations

import json, logging, os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from shopworker.core.config import settings
from shopworker.core.errors import AuthError, ConfigError, ValidationError, classify_error
from shopworker.core.security import secrets_equal, verify_shopify_hmac
from shopworker.integrations.storage.blob_store import BlobStore
from shopworker.orchestration.job_dispatch.context import JobContext, load_secrets_from_env
from shopworker.orchestration.job_dispatch.dispatcher import ClientFactory, default_client_factory
from shopworker.registry.job_registry import JobRegistry
from shopworker.registry.models import INTERNAL_WEBHOOK_TOPIC, WEBREQUEST_TOPIC, RegisteredJob
from shopworker.services.run_ledger import RunLedger
from shopworker.shops.shop_config import ShopConfig, ShopDirectory
from shopworker.utils.clock import now_utc
from shopworker.utils.ids import new_payload_key, new_run_id
from shopworker.utils.serialization import compact_json_bytes, to_jsonable


logger = logging.getLogger(__name__)


HEADER_SHOP_DOMAIN = "x-shopify-shop-domain"
HEADER_TOPIC = "x-shopify-topic"
HEADER_HMAC = "x-shopify-hmac-sha256"
HEADER_INTERNAL_SECRET = "x-shopworker-webhook-secret"

LEGACY_JOB_PARAM = "job"
JSON_CONTENT_TYPE = "application/json"


class RunLauncher(Protocol):
    def create(self, run_id: str, params: Dict[str, Any]) -> str: ...


@dataclass
class GatewayRequest:
    method: str
    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        self.method = (self.method or "").upper()
        self.headers = {k.lower(): v for k, v in dict(self.headers).items()}

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name.lower())
        return value.strip() if isinstance(value, str) and value.strip() else None


@dataclass
class GatewayResponse:
    status_code: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    def render(self) -> bytes:
        """Body bytes as sent on the wire: str passes through, everything else is JSON."""
        if self.body is None:
            return b""
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str) and not self.headers.get("Content-Type", "").startswith(JSON_CONTENT_TYPE):
            return self.body.encode("utf-8")
        return json.dumps(to_jsonable(self.body), ensure_ascii=False).encode("utf-8")


def error_response(message: str, status_code: int = 500, headers: Optional[Dict[str, str]] = None) -> GatewayResponse:
    return GatewayResponse(
        status_code,
        {"success": False, "error": message},
        {"Content-Type": JSON_CONTENT_TYPE, **(headers or {})},
    )


def cors_headers() -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.CORS_ALLOW_ORIGIN,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Max-Age": "86400",
    }


class RequestGateway:

    def __init__(
        self,
        *,
        registry: JobRegistry,
        shops: ShopDirectory,
        launcher: RunLauncher,
        blob_store: BlobStore,
        client_factory: ClientFactory = default_client_factory,
        ledger: Optional[RunLedger] = None,
        size_threshold: Optional[int] = None,
        key_prefix: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._registry = registry
        self._shops = shops
        self._launcher = launcher
        self._blobs = blob_store
        self._client_factory = client_factory
        self._ledger = ledger or RunLedger(None, enabled=False)
        self.size_threshold = size_threshold if size_threshold is not None else settings.PAYLOAD_SIZE_THRESHOLD
        self.key_prefix = key_prefix or settings.PAYLOAD_KEY_PREFIX
        self._env = env
        self._clock = clock

    # ================= 入口 =================
    def handle(self, req: GatewayRequest) -> GatewayResponse:
        if req.method == "OPTIONS":
            return self._preflight(req)
        if req.method not in ("GET", "POST"):
            return GatewayResponse(405, "Method not allowed", {"Content-Type": "text/plain"})

        job: Optional[RegisteredJob] = None
        try:
            job = self._registry.resolve(self._job_identity(req))
            if req.method == "GET" and not job.is_public:
                return error_response("Method not allowed", 405)
            return self._dispatch(req, job)
        except Exception as e:
            status = classify_error(e)
            if status >= 500:
                logger.exception("gateway.error job=%s status=%s", job.path if job else req.path, status)
            else:
                logger.warning("gateway.rejected job=%s status=%s err=%s", job.path if job else req.path, status, e)
            return error_response(str(e), status, cors_headers() if job is not None and job.is_public else None)

    # ---------- OPTIONS ----------
    def _preflight(self, req: GatewayRequest) -> GatewayResponse:
        try:
            job = self._registry.find(self._job_identity(req))
        except Exception as e:
            logger.info("gateway.preflight_unresolved path=%s err=%s", req.path, e)
            job = None
        if job is not None and job.is_public:
            return GatewayResponse(204, None, cors_headers())
        return GatewayResponse(405, "Method not allowed", {"Content-Type": "text/plain"})

    # ---------- 解析 ----------
    @staticmethod
    def _job_identity(req: GatewayRequest) -> str:
        identity = (req.path or "").strip("/")
        if not identity:
            # 旧格式 ?job=xxx
            identity = (req.query.get(LEGACY_JOB_PARAM) or "").strip("/")
        if not identity:
            raise ConfigError("Job path must be specified in the URL")
        return identity

    @staticmethod
    def _parse_json_body(req: GatewayRequest, *, allow_empty: bool) -> Any:
        if not req.body.strip():
            if allow_empty:
                return {}
            raise ValidationError("Invalid JSON body: request body is empty")
        try:
            return json.loads(req.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ValidationError(f"Invalid JSON body: {e}") from e

    def _parse_public(self, req: GatewayRequest) -> Any:
        if req.method == "GET":
            query = dict(req.query)
            if not (req.path or "").strip("/"):
                query.pop(LEGACY_JOB_PARAM, None)
            return query
        return self._parse_json_body(req, allow_empty=True)

    # ---------- 鉴权 ----------
    @staticmethod
    def _authenticate(req: GatewayRequest, topic: str, shop: ShopConfig) -> None:
        if topic == WEBREQUEST_TOPIC:
            # 公开 topic 只给 webrequest job 用
            raise AuthError("Invalid webhook signature: shopworker/webrequest topic is only accepted by webrequest jobs")

        if topic == INTERNAL_WEBHOOK_TOPIC:
            if not secrets_equal(req.header(HEADER_INTERNAL_SECRET), shop.shopworker_webhook_secret):
                raise AuthError("Invalid shopworker webhook secret")
            return

        if not verify_shopify_hmac(shop.shopify_api_secret_key, req.body, req.header(HEADER_HMAC)):
            raise AuthError("Invalid webhook signature")

    # ================= 分支 =================
    def _dispatch(self, req: GatewayRequest, job: RegisteredJob) -> GatewayResponse:
        if job.is_public:
            payload = self._parse_public(req)
            topic = WEBREQUEST_TOPIC
            shop = self._shops.default_shop()
        else:
            payload = self._parse_json_body(req, allow_empty=False)
            shop_domain = req.header(HEADER_SHOP_DOMAIN)
            if not shop_domain:
                raise ValidationError("Missing X-Shopify-Shop-Domain header")
            topic = req.header(HEADER_TOPIC)
            if not topic:
                raise ValidationError("Missing X-Shopify-Topic header")
            shop = self._shops.find_by_domain(shop_domain)
            if shop is None:
                # 未配置的店铺无法验签
                raise AuthError(f"Invalid webhook signature: no configuration found for shop {shop_domain}")
            self._authenticate(req, topic, shop)

        if job.is_public:
            return self._execute_sync(job, shop, payload)
        return self._start_run(job, shop, topic, payload)

    # ---------- 同步 ----------
    def _execute_sync(self, job: RegisteredJob, shop: ShopConfig, payload: Any) -> GatewayResponse:
        job_config = job.definition.to_config_dict()
        shopify = self._client_factory(shop.shopify_domain, shop.shopify_token, job.definition.api_version)
        env = os.environ if self._env is None else self._env
        context = JobContext(
            shopify=shopify,
            payload=payload,
            shop_config=shop.to_params(),
            job_config=job_config,
            env=env,
            secrets=load_secrets_from_env(env),
            step=None,
        )

        logger.info("gateway.sync_start job=%s shop=%s", job.path, shop.shopify_domain)
        result = job.handler(context)

        status_code = 200
        headers = {"Content-Type": JSON_CONTENT_TYPE, **cors_headers()}
        body = result
        if isinstance(result, dict) and ({"statusCode", "headers", "body"} & result.keys()):
            status_code = int(result.get("statusCode") or 200)
            headers.update({str(k): str(v) for k, v in (result.get("headers") or {}).items()})
            # 没给 body 时整个结果原样返回
            body = result.get("body")
            if body is None:
                body = result

        logger.info("gateway.sync_done job=%s status=%s", job.path, status_code)
        return GatewayResponse(status_code, body, headers)

    # ---------- 异步：创建 durable run ----------
    def _start_run(self, job: RegisteredJob, shop: ShopConfig, topic: str, payload: Any) -> GatewayResponse:
        run_id = new_run_id()
        params: Dict[str, Any] = {
            "shop_domain": shop.shopify_domain,
            "job_path": job.path,
            "shop_config": shop.to_params(),
            "job_config": job.definition.to_config_dict(),
            "topic": topic,
            "timestamp": self._clock().isoformat(),
        }
        params.update(self._offload_if_large(payload))

        payload_key = (params.get("payload_ref") or {}).get("key")
        self._ledger.record_queued(
            run_id,
            job_path=job.path,
            shop_domain=shop.shopify_domain,
            topic=topic,
            is_large_payload=params["is_large_payload"],
            payload_key=payload_key,
        )
        try:
            self._launcher.create(run_id, params)
        except Exception as e:
            self._ledger.record_failed(run_id, f"enqueue failed: {e}")
            raise

        logger.info("gateway.run_created run_id=%s job=%s topic=%s large=%s",
                    run_id, job.path, topic, params["is_large_payload"])
        return GatewayResponse(
            200,
            {"success": True, "message": "Job workflow started successfully", "workflowId": run_id},
            {"Content-Type": JSON_CONTENT_TYPE},
        )

    def _offload_if_large(self, payload: Any) -> Dict[str, Any]:
        data = compact_json_bytes(payload)
        size = len(data)
        # 严格大于阈值才转存；等于阈值仍然 inline
        if size <= self.size_threshold:
            return {"payload": payload, "is_large_payload": False}

        key = new_payload_key(self.key_prefix)
        self._blobs.put(key, data)
        logger.info("gateway.payload_offloaded key=%s size=%s", key, size)
        return {
            "payload_ref": {"key": key, "size": size, "is_large": True},
            "is_large_payload": True,
        }
