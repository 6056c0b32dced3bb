"""Resend 邮件 API（只用于 job 失败通知）"""
from __future__ import annotations

import logging, requests
from typing import List, Optional, Sequence, Union
from requests import HTTPError, RequestException

from shopworker.core.config import settings
from shopworker.core.errors import NotificationError


logger = logging.getLogger(__name__)


class ResendClient:

    def __init__(self, api_key: Optional[str], *, session: Optional[requests.Session] = None,
                 api_url: Optional[str] = None, timeout: Optional[int] = None) -> None:
        if not api_key:
            raise NotificationError("Resend API key is required")
        self._api_key = api_key
        self._session = session or requests.Session()
        self.api_url = api_url or settings.RESEND_API_URL
        self.timeout = timeout or settings.RESEND_HTTP_TIMEOUT

    def send(
        self,
        *,
        to: Union[str, Sequence[str]],
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
        sender: Optional[str] = None,
    ) -> dict:
        if not to or not subject:
            raise NotificationError("to and subject are required fields")

        recipients: List[str] = [to] if isinstance(to, str) else list(to)
        email = {"from": sender or settings.NOTIFY_FROM_EMAIL, "to": recipients, "subject": subject}
        if html:
            email["html"] = html
        if text:
            email["text"] = text

        try:
            resp = self._session.post(
                self.api_url,
                headers={"Content-Type": "application/json", "Authorization": f"Bearer {self._api_key}"},
                json=email,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except HTTPError as e:
            raise NotificationError(f"Resend HTTP {resp.status_code}: {resp.text[:300]}") from e
        except RequestException as e:
            raise NotificationError(f"Resend request failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        logger.info("notify.resend.sent to=%s id=%s", ",".join(recipients), body.get("id"))
        return body
