import json

import pytest
from pydantic import SecretStr

from shopworker.core.errors import ConfigError
from shopworker.shops import shop_config
from shopworker.shops.shop_config import ShopDirectory


def test_flat_single_shop_record():
    shops = ShopDirectory.from_data({"shopify_domain": "a.myshopify.com", "shopify_token": "t", "custom_key": 1})

    shop, = shops.all_shops()
    assert shop.shopify_domain == "a.myshopify.com"
    assert shops.default_shop() is shop
    # 未知字段保留下来，job 可以从 shop_config 里读
    assert shop.to_params()["custom_key"] == 1


def test_legacy_shops_list_and_lookups():
    shops = ShopDirectory.from_data({"shops": [
        {"name": "au", "shopify_domain": "au.myshopify.com"},
        {"name": "nz", "shopify_domain": "NZ.myshopify.com"},
    ]}, default_domain="nz.myshopify.com")

    assert shops.find_by_domain("nz.MYSHOPIFY.com").name == "nz"
    assert shops.find_by_domain("other.myshopify.com") is None
    assert shops.default_shop().name == "nz"
    assert shops.for_job("au").shopify_domain == "au.myshopify.com"
    assert shops.for_job("au.myshopify.com").name == "au"
    assert shops.for_job(None).name == "nz"
    with pytest.raises(ConfigError, match="Shop 'eu' not found"):
        shops.for_job("eu")


def test_empty_config():
    shops = ShopDirectory.from_data({})
    assert shops.all_shops() == []
    with pytest.raises(ConfigError, match="no shops configured"):
        shops.default_shop()


@pytest.mark.parametrize("data", [["not", "a", "mapping"], {"shops": [{"name": "missing domain"}]}])
def test_invalid_config(data):
    with pytest.raises(ConfigError, match="Invalid shop config"):
        ShopDirectory.from_data(data)


def test_to_params_drops_unset_fields():
    shop = ShopDirectory.from_data({"shopify_domain": "a.myshopify.com"}).default_shop()
    assert shop.to_params() == {"shopify_domain": "a.myshopify.com"}


def test_from_settings_prefers_env_secret(monkeypatch, tmp_path):
    path = tmp_path / ".shopworker.json"
    path.write_text(json.dumps({"shopify_domain": "file.myshopify.com"}), encoding="utf-8")
    monkeypatch.setattr(shop_config.settings, "SHOPWORKER_CONFIG_FILE", str(path))
    monkeypatch.setattr(shop_config.settings, "DEFAULT_SHOP_DOMAIN", None)

    monkeypatch.setattr(shop_config.settings, "SHOPWORKER_CONFIG", SecretStr('{"shopify_domain": "env.myshopify.com"}'))
    assert ShopDirectory.from_settings().default_shop().shopify_domain == "env.myshopify.com"

    monkeypatch.setattr(shop_config.settings, "SHOPWORKER_CONFIG", None)
    assert ShopDirectory.from_settings().default_shop().shopify_domain == "file.myshopify.com"


def test_from_settings_bad_json(monkeypatch):
    monkeypatch.setattr(shop_config.settings, "SHOPWORKER_CONFIG", SecretStr("{oops"))
    with pytest.raises(ConfigError, match="Invalid JSON in shop config"):
        ShopDirectory.from_settings()


def test_from_settings_without_any_source(monkeypatch, tmp_path):
    monkeypatch.setattr(shop_config.settings, "SHOPWORKER_CONFIG", None)
    monkeypatch.setattr(shop_config.settings, "SHOPWORKER_CONFIG_FILE", str(tmp_path / "missing.json"))
    assert ShopDirectory.from_settings().all_shops() == []
