"""面向 Admin GraphQL 的轻量 Client，每个店铺一个实例"""
from __future__ import annotations

import time, logging, requests
from typing import Any, Dict, List, Optional
from requests import HTTPError, RequestException

from shopworker.core.config import settings
from shopworker.core.errors import ConfigError, RemoteAPIError
from shopworker.integrations.shopify.graphql_queries import SHOP_PING


logger = logging.getLogger(__name__)


# ---------------- GID 工具 ----------------

def to_gid(resource_type: str, id_: Any) -> str:
    value = str(id_)
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/{resource_type}/{value}"


def from_gid(gid: Optional[str]) -> Optional[str]:
    if not gid:
        return None
    return str(gid).rstrip("/").split("/")[-1]


def type_from_gid(gid: Optional[str]) -> Optional[str]:
    if not gid or not str(gid).startswith("gid://"):
        return None
    parts = str(gid).split("/")
    return parts[3] if len(parts) > 4 else None


'''
递归查找 data 中任意层级的 userErrors（mutation 的业务错误不在顶层 errors 里）
  - 返回所有非空 userErrors 的合并列表
'''
def find_user_errors(value: Any) -> List[dict]:
    found: List[dict] = []
    if isinstance(value, dict):
        for key, item in value.items():
            if key == "userErrors" and isinstance(item, list) and item:
                found.extend(item)
            else:
                found.extend(find_user_errors(item))
    elif isinstance(value, list):
        for item in value:
            found.extend(find_user_errors(item))
    return found


def _format_user_errors(errors: List[dict]) -> str:
    messages = []
    for e in errors:
        field = e.get("field")
        field_str = ".".join(str(f) for f in field) if isinstance(field, list) else field
        messages.append(f"{field_str}: {e.get('message')}" if field_str else str(e.get("message")))
    return "; ".join(messages)


class ShopifyClient:

    '''
    通用 GraphQL POST（带日志 + 埋点）
        - 统一 headers、json 负载、超时、HTTP 错误与 GraphQL 顶层 errors 处理
        - 返回 data（上层自己从 data[...] 取需要的节点）
        异常处理：
           1) HTTP 错误 / 网络异常 → RemoteAPIError（不在本地重试，重试交给 Celery 重投）
           2) 顶层 GraphQL errors → RemoteAPIError
           3) 任意层级 userErrors → RemoteAPIError(user_errors=...)
    '''

    def __init__(
        self,
        shop: str,
        access_token: Optional[str],
        *,
        api_version: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not shop:
            raise ConfigError("Missing shop domain for Shopify client")
        if not access_token:
            raise ConfigError(f"Missing Shopify access token for shop: {shop}")

        self.shop = shop
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.timeout = timeout or settings.SHOPIFY_HTTP_TIMEOUT
        self._token = access_token
        self._session = session or requests.Session()

        # 每个实例打印一次 API 版本
        logger.info("shopify.client.init shop=%s api_version=%s", self.shop, self.api_version)

    @property
    def endpoint(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self._token,
            "User-Agent": "Shopworker/ShopifyClient (+python)",
        }

    def graphql(self, query: str, variables: Optional[dict] = None, *, op_name: str = "") -> Dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        # 不打印 query 全文，仅打 op_name / 变量键
        safe_vars_keys = list(payload["variables"].keys())

        start = time.perf_counter()
        try:
            resp = self._session.post(self.endpoint, headers=self._headers(), json=payload, timeout=self.timeout)
        except RequestException as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            logger.warning("shopify.graphql.request_exception op=%s latency_ms=%s err=%s",
                op_name, latency_ms, type(e).__name__)
            raise RemoteAPIError(f"Shopify request failed: {e}") from e
        latency_ms = int((time.perf_counter() - start) * 1000)

        # HTTP 层错误
        try:
            resp.raise_for_status()
        except HTTPError as e:
            logger.warning("shopify.graphql.http_error op=%s status=%s latency_ms=%s",
                op_name, resp.status_code, latency_ms)
            raise RemoteAPIError(f"Shopify HTTP {resp.status_code}: {resp.text[:500]}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteAPIError(f"GraphQL response is not JSON: status={resp.status_code}") from e

        # 顶层 errors：语法 / 权限问题
        if body.get("errors"):
            logger.error("shopify.graphql.gql_errors op=%s latency_ms=%s errors=%s",
                op_name, latency_ms, body["errors"])
            messages = "; ".join(
                e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in body["errors"]
            )
            raise RemoteAPIError(f"GraphQL errors: {messages}")

        data = body.get("data") or {}
        user_errors = find_user_errors(data)
        if user_errors:
            logger.warning("shopify.graphql.user_errors op=%s latency_ms=%s errors=%s",
                op_name, latency_ms, user_errors)
            raise RemoteAPIError(f"GraphQL user errors: {_format_user_errors(user_errors)}", user_errors=user_errors)

        logger.info("shopify.graphql.ok op=%s latency_ms=%s vars=%s", op_name, latency_ms, safe_vars_keys)
        return data

    # 基础连通性探测
    def ping(self) -> dict:
        return self.graphql(SHOP_PING, op_name="shop.ping")

    def close(self) -> None:
        self._session.close()


def client_for_shop(shop_config, api_version: Optional[str] = None) -> ShopifyClient:
    return ShopifyClient(
        shop_config.shopify_domain,
        shop_config.shopify_token,
        api_version=api_version,
    )
