"""Webhook 订阅：列表（分页）/ 创建 / 删除"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shopworker.core.config import settings
from shopworker.integrations.shopify.graphql_queries import _CREATE_WEBHOOK, _DELETE_WEBHOOK, _LIST_WEBHOOKS
from shopworker.integrations.shopify.shopify_client import from_gid, to_gid
from shopworker.registry.identity import parse_job_from_callback_url


logger = logging.getLogger(__name__)

HTTP_ENDPOINT = "WebhookHttpEndpoint"
WEBHOOK_RESOURCE = "WebhookSubscription"


def to_graphql_topic(topic: str) -> str:
    # products/update -> PRODUCTS_UPDATE
    return topic.upper().replace("/", "_")


def full_webhook_id(webhook_id: str) -> str:
    return to_gid(WEBHOOK_RESOURCE, str(webhook_id).strip())


def short_webhook_id(webhook_id: Optional[str]) -> str:
    return from_gid(webhook_id) or "-"


@dataclass(frozen=True)
class WebhookSubscription:
    id: str
    topic: str
    endpoint_type: Optional[str] = None
    callback_url: Optional[str] = None           # 只有 HTTP endpoint 才有
    include_fields: Tuple[str, ...] = field(default_factory=tuple)
    metafield_namespaces: Tuple[str, ...] = field(default_factory=tuple)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "WebhookSubscription":
        endpoint = node.get("endpoint") or {}
        endpoint_type = endpoint.get("__typename")
        return cls(
            id=node.get("id") or "",
            topic=node.get("topic") or "",
            endpoint_type=endpoint_type,
            callback_url=endpoint.get("callbackUrl") if endpoint_type == HTTP_ENDPOINT else None,
            include_fields=tuple(node.get("includeFields") or ()),
            metafield_namespaces=tuple(node.get("metafieldNamespaces") or ()),
            created_at=node.get("createdAt"),
            updated_at=node.get("updatedAt"),
        )

    @property
    def is_http(self) -> bool:
        return self.endpoint_type == HTTP_ENDPOINT and bool(self.callback_url)

    @property
    def short_id(self) -> str:
        return short_webhook_id(self.id)

    @property
    def job_identity(self) -> Optional[str]:
        # 非 HTTP endpoint（EventBridge / PubSub）不属于任何 job
        if not self.is_http:
            return None
        return parse_job_from_callback_url(self.callback_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shortId": self.short_id,
            "topic": self.topic,
            "endpointType": self.endpoint_type,
            "callbackUrl": self.callback_url,
            "includeFields": list(self.include_fields),
            "metafieldNamespaces": list(self.metafield_namespaces),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


def list_webhook_subscriptions(client, *, page_size: Optional[int] = None) -> List[WebhookSubscription]:
    page_size = page_size or settings.SHOPIFY_WEBHOOKS_PAGE_SIZE
    subs: List[WebhookSubscription] = []
    after: Optional[str] = None

    while True:
        data = client.graphql(_LIST_WEBHOOKS, {"first": page_size, "after": after}, op_name="webhook.list")
        conn = data.get("webhookSubscriptions") or {}
        for edge in conn.get("edges") or []:
            subs.append(WebhookSubscription.from_node(edge.get("node") or {}))

        page = conn.get("pageInfo") or {}
        if not page.get("hasNextPage") or not page.get("endCursor"):
            break
        after = page["endCursor"]

    logger.info("webhook.listed shop=%s count=%s", getattr(client, "shop", "?"), len(subs))
    return subs


def create_webhook_subscription(
    client,
    topic: str,
    callback_url: str,
    *,
    include_fields: Optional[Sequence[str]] = None,
    metafield_namespaces: Optional[Sequence[str]] = None,
) -> WebhookSubscription:
    subscription: Dict[str, Any] = {"callbackUrl": callback_url, "format": "JSON"}
    if include_fields:
        subscription["includeFields"] = list(include_fields)
    if metafield_namespaces:
        subscription["metafieldNamespaces"] = list(metafield_namespaces)

    data = client.graphql(
        _CREATE_WEBHOOK,
        {"topic": to_graphql_topic(topic), "webhookSubscription": subscription},
        op_name="webhook.create",
    )
    node = (data.get("webhookSubscriptionCreate") or {}).get("webhookSubscription") or {}
    return WebhookSubscription.from_node(node)


def delete_webhook_subscription(client, webhook_id: str) -> Optional[str]:
    data = client.graphql(_DELETE_WEBHOOK, {"id": full_webhook_id(webhook_id)}, op_name="webhook.delete")
    return (data.get("webhookSubscriptionDelete") or {}).get("deletedWebhookSubscriptionId")
