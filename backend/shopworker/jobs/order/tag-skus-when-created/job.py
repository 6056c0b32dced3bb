"""orders/create → 把 line item 的 SKU 加到订单标签"""
import logging

from shopworker.integrations.shopify.shopify_client import to_gid

logger = logging.getLogger(__name__)

TAGS_ADD = """
mutation tagsAdd($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
""".strip()


def collect_skus(order):
    skus = []
    for item in order.get("line_items") or []:
        sku = (item.get("sku") or "").strip()
        if sku and sku not in skus:
            skus.append(sku)
    return skus


def process(context):
    order = context.payload
    name = order.get("name") or order.get("id")
    skus = collect_skus(order)
    if not skus:
        logger.info("job.order_no_skus order=%s", name)
        return {"tagged": []}

    current = {t.strip() for t in (order.get("tags") or "").split(",") if t.strip()}
    missing = [s for s in skus if s not in current]
    if not missing:
        logger.info("job.order_tags_present order=%s", name)
        return {"tagged": []}

    order_id = order.get("admin_graphql_api_id") or to_gid("Order", order["id"])
    # tagsAdd 本身幂等，重投安全
    context.run_step("add-sku-tags", lambda: context.shopify.graphql(TAGS_ADD, {"id": order_id, "tags": missing}))
    logger.info("job.order_tagged order=%s tags=%s", name, missing)
    return {"tagged": missing}
