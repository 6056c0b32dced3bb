"""Live checks against the configured store; skipped unless shop credentials are present."""

import pytest

from shopworker.core.errors import ConfigError
from shopworker.integrations.shopify.shopify_client import client_for_shop
from shopworker.integrations.shopify.webhook_subscriptions import list_webhook_subscriptions
from shopworker.shops.shop_config import ShopDirectory


def _configured_shop():
    try:
        shops = ShopDirectory.from_settings()
        shop = shops.default_shop()
    except ConfigError:
        return None
    return shop if shop.shopify_token else None


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        _configured_shop() is None,
        reason="Shop credentials are not configured (SHOPWORKER_CONFIG / .shopworker.json).",
    ),
]


@pytest.fixture(scope="module")
def shopify():
    client = client_for_shop(_configured_shop())
    yield client
    client.close()


# 验证 ping() 能拿到店铺信息，说明 token / domain 生效
def test_ping_returns_shop(shopify):
    shop = shopify.ping().get("shop") or {}
    print("[ping]", shop)
    assert shop.get("myshopifyDomain")


# 列出全部 webhook 订阅（只读）
def test_list_webhook_subscriptions(shopify):
    subs = list_webhook_subscriptions(shopify)
    for s in subs:
        print("[webhook]", s.short_id, s.topic, s.callback_url)
    assert all(s.id.startswith("gid://shopify/WebhookSubscription/") for s in subs)
