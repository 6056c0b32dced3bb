import logging
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

ORDERS_COUNT = """
query ordersCount($query: String!) {
  ordersCount(query: $query) { count }
}
""".strip()


def process(context):
    days = int((context.job_config.get("test") or {}).get("days") or 1)
    since = (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")

    data = context.run_step(
        "count-orders",
        lambda: context.shopify.graphql(ORDERS_COUNT, {"query": f"created_at:>='{since}'"}),
    )
    count = (data.get("ordersCount") or {}).get("count", 0)
    logger.info("job.daily_order_count shop=%s since=%s count=%s",
                context.shop_config.get("shopify_domain"), since, count)
    return {"since": since, "count": count}
