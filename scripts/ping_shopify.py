
from shopworker.integrations.shopify.shopify_client import client_for_shop
from shopworker.shops.shop_config import get_shop_directory

if __name__ == "__main__":
    for shop in get_shop_directory().all_shops():
        cli = client_for_shop(shop)
        print(shop.shopify_domain, cli.ping())


# 运行
# export $(grep -v '^#' .env | xargs)   # 若你用 .env
# python scripts/ping_shopify.py



# 看到每个店铺返回 shop.name / myshopifyDomain 说明域名、版本、token 都 OK
