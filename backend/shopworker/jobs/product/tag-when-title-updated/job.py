"""products/update → 打 title-last-modified-YYYY-MM-DD 标签（同一时间只保留一个）"""
import logging
from datetime import datetime, timezone

from shopworker.integrations.shopify.shopify_client import to_gid

logger = logging.getLogger(__name__)

TAG_PREFIX = "title-last-modified-"

PRODUCT_UPDATE = """
mutation productUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id tags }
    userErrors { field message }
  }
}
""".strip()


def _split_tags(tags):
    # webhook payload 里 tags 是逗号分隔字符串，GraphQL 里是数组
    if isinstance(tags, list):
        return [t for t in tags if t]
    return [t.strip() for t in (tags or "").split(",") if t.strip()]


def process(context):
    product = context.payload

    def prepare():
        product_id = to_gid("Product", product["id"])
        new_tag = TAG_PREFIX + datetime.now(timezone.utc).strftime("%Y-%m-%d")
        existing = _split_tags(product.get("tags"))
        kept = [t for t in existing if not t.startswith(TAG_PREFIX)]
        return {"productId": product_id, "newTag": new_tag, "tags": kept + [new_tag]}

    plan = context.run_step("prepare-tag-data", prepare)

    def update():
        data = context.shopify.graphql(PRODUCT_UPDATE, {"input": {"id": plan["productId"], "tags": plan["tags"]}})
        logger.info("job.product_tagged product=%s tag=%s", plan["productId"], plan["newTag"])
        return {"productId": plan["productId"], "addedTag": plan["newTag"], "tags": data["productUpdate"]["product"]["tags"]}

    return context.run_step("update-product-tags", update)
