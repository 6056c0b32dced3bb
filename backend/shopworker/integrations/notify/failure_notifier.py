"""
Job 失败通知（best-effort）。

发送条件同时满足：
  - job config 里 notifyOnFailure = true
  - shop config 里有 resend_api_key + failure_notification_email
通知本身的任何错误都只记日志，不影响 run 的失败状态。
"""
from __future__ import annotations

import logging, traceback
from typing import Any, Callable, Mapping, Optional

from shopworker.core.errors import NotificationError
from shopworker.integrations.notify.resend_client import ResendClient


logger = logging.getLogger(__name__)


class FailureNotifier:

    def __init__(self, client_factory: Callable[[str], Any] = ResendClient) -> None:
        self._client_factory = client_factory

    def notify(
        self,
        *,
        run_id: str,
        job_path: str,
        job_config: Optional[Mapping[str, Any]],
        shop_config: Optional[Mapping[str, Any]],
        error: BaseException,
    ) -> bool:
        if not job_config or not job_config.get("notifyOnFailure"):
            return False

        shop_config = shop_config or {}
        api_key = shop_config.get("resend_api_key")
        recipient = shop_config.get("failure_notification_email")
        if not api_key or not recipient:
            logger.info("notify.skipped run_id=%s job=%s reason=missing_credentials", run_id, job_path)
            return False

        title = job_config.get("title") or job_path
        shop = shop_config.get("shopify_domain", "")
        subject = f"[Shopworker] Job failed: {title}"
        text = "\n".join([
            f"Job: {title} ({job_path})",
            f"Shop: {shop}",
            f"Run: {run_id}",
            "",
            f"Error: {error}",
            "",
            "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        ])

        try:
            self._client_factory(api_key).send(to=recipient, subject=subject, text=text)
        except NotificationError as e:
            logger.error("notify.failed run_id=%s job=%s err=%s", run_id, job_path, e)
            return False
        except Exception:
            logger.exception("notify.failed run_id=%s job=%s", run_id, job_path)
            return False

        logger.info("notify.sent run_id=%s job=%s to=%s", run_id, job_path, recipient)
        return True
