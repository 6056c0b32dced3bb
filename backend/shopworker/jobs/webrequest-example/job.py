"""
同步 webrequest 示例：返回值直接作为 HTTP 响应。

  - 没有 step（context.step is None），所有操作必须同步完成
  - 返回 {statusCode, headers, body}，缺省 200 / JSON
"""
import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def process(context):
    shop = context.shop_config.get("shopify_domain")
    logger.info("job.webrequest_example shop=%s", shop)

    now = datetime.now(timezone.utc).isoformat()
    return {
        "statusCode": 200,
        "headers": {"X-Processed-By": "Shopworker", "X-Processing-Time": now},
        "body": {
            "success": True,
            "message": "Payload processed successfully",
            "data": {
                "original": context.payload,
                "transformed": {"timestamp": now, "shopDomain": shop, "processedBy": "Shopworker webrequest"},
            },
        },
    }
