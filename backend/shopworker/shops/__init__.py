from .shop_config import ShopConfig, ShopDirectory, get_shop_directory

__all__ = ["ShopConfig", "ShopDirectory", "get_shop_directory"]
