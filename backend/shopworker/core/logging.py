import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# 第三方库默认太吵：每个 Shopify / Resend 请求都会打一条连接日志
NOISY_LOGGERS = ("urllib3", "httpx", "kombu", "amqp")


def configure_logging(level: Optional[str] = "INFO") -> logging.Logger:
    """
    gateway (uvicorn), Celery worker, and the operator CLI all call this once at startup.
    uvicorn has usually attached its own handlers already, in which case only the level changes.
    """
    resolved = (level or "INFO").upper()
    root = logging.getLogger()

    if root.handlers:
        root.setLevel(resolved)
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(resolved)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("shopworker")
