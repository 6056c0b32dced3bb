"""
店铺目录：读取 .shopworker.json（或 SHOPWORKER_CONFIG 环境变量）里的店铺凭证。

  支持两种格式：
    - 平铺单店铺: {"shopify_domain": "...", "shopify_token": "...", ...}
    - 旧版多店铺: {"shops": [{...}, {...}]}
"""
from __future__ import annotations

import functools, json, logging
from pathlib import Path
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError

from shopworker.core.config import settings
from shopworker.core.errors import ConfigError


logger = logging.getLogger(__name__)


class ShopConfig(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    shopify_domain: str
    shopify_token: Optional[str] = None
    shopify_api_secret_key: Optional[str] = None     # webhook HMAC 签名密钥
    shopworker_webhook_secret: Optional[str] = None  # 内部 shopworker/webhook 共享密钥
    name: Optional[str] = None

    # 第三方 key（失败通知等）
    resend_api_key: Optional[str] = None
    failure_notification_email: Optional[str] = None

    def to_params(self) -> dict:
        """JSON snapshot stored in run params."""
        return self.model_dump(exclude_none=True)


class ShopDirectory:

    def __init__(self, shops: List[ShopConfig], default_domain: Optional[str] = None) -> None:
        self._shops = list(shops)
        self._default_domain = default_domain

    @classmethod
    def from_data(cls, data: Any, default_domain: Optional[str] = None) -> "ShopDirectory":
        if isinstance(data, Mapping) and isinstance(data.get("shops"), list):
            records = data["shops"]
        elif isinstance(data, Mapping) and data.get("shopify_domain"):
            records = [data]
        elif not data:
            records = []
        else:
            raise ConfigError("Invalid shop config: expected a shop record or {\"shops\": [...]}")

        try:
            shops = [ShopConfig.model_validate(r) for r in records]
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid shop config: {e}") from e
        return cls(shops, default_domain)

    @classmethod
    def from_settings(cls) -> "ShopDirectory":
        raw = settings.SHOPWORKER_CONFIG.get_secret_value() if settings.SHOPWORKER_CONFIG else None
        source = "env"
        if not raw and settings.SHOPWORKER_CONFIG_FILE:
            path = Path(settings.SHOPWORKER_CONFIG_FILE)
            if path.is_file():
                raw = path.read_text(encoding="utf-8")
                source = str(path)

        if not raw:
            logger.warning("shops.config_missing file=%s", settings.SHOPWORKER_CONFIG_FILE)
            return cls([], settings.DEFAULT_SHOP_DOMAIN)

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid JSON in shop config ({source}): {e}") from e

        directory = cls.from_data(data, settings.DEFAULT_SHOP_DOMAIN)
        logger.info("shops.loaded source=%s count=%s", source, len(directory.all_shops()))
        return directory

    # ---------- 查询 ----------
    def all_shops(self) -> List[ShopConfig]:
        return list(self._shops)

    def find_by_domain(self, domain: Optional[str]) -> Optional[ShopConfig]:
        if not domain:
            return None
        wanted = domain.strip().lower()
        return next((s for s in self._shops if s.shopify_domain.lower() == wanted), None)

    def find_by_name(self, name: Optional[str]) -> Optional[ShopConfig]:
        if not name:
            return None
        return next((s for s in self._shops if s.name == name), None)

    def require_by_domain(self, domain: Optional[str]) -> ShopConfig:
        shop = self.find_by_domain(domain)
        if shop is None:
            raise ConfigError(f"No configuration found for shop: {domain}")
        return shop

    def default_shop(self) -> ShopConfig:
        # webrequest 没有 shop header：DEFAULT_SHOP_DOMAIN 优先，否则取第一个
        if self._default_domain:
            return self.require_by_domain(self._default_domain)
        if not self._shops:
            raise ConfigError("Missing shop configuration: no shops configured")
        return self._shops[0]

    def for_job(self, shop_name: Optional[str]) -> ShopConfig:
        """Shop a job is pinned to via its config `shop` key, else the default shop."""
        if shop_name:
            shop = self.find_by_name(shop_name) or self.find_by_domain(shop_name)
            if shop is None:
                raise ConfigError(f"Shop '{shop_name}' not found in shop config")
            return shop
        return self.default_shop()


@functools.lru_cache(maxsize=1)
def get_shop_directory() -> ShopDirectory:
    return ShopDirectory.from_settings()
