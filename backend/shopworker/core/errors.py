
"""
   Shopworker 统一异常类型。
   gateway 按类型映射 HTTP 状态码；脚本按类型决定退出码。
"""

class ShopworkerError(Exception):
    """Base for all shopworker errors."""

    status_code: int = 500


class ValidationError(ShopworkerError):
    """Missing required header, malformed JSON body, unsupported request shape."""

    status_code = 400


class AuthError(ShopworkerError):
    """HMAC signature or internal shared-secret mismatch."""

    status_code = 401


class ConfigError(ShopworkerError):
    """Unresolvable job / trigger identity, missing shop or credentials."""

    status_code = 500


class RemoteAPIError(ShopworkerError):
    """Transport failure or platform-reported errors from the Shopify Admin API."""

    status_code = 500

    def __init__(self, message: str, *, user_errors: list | None = None):
        super().__init__(message)
        self.user_errors = user_errors or []


class NotificationError(ShopworkerError):
    """Failure notification could not be delivered. Never escalated into run failure."""


# 非 ShopworkerError 的兜底：按错误信息关键字分类（兼容 job 代码里直接 raise 的普通异常）
_BAD_REQUEST_MARKERS = ("Missing", "Invalid JSON")
_UNAUTHORIZED_MARKERS = ("webhook secret", "webhook signature")


def classify_error(exc: BaseException) -> int:
    """Map an exception to the HTTP status the gateway answers with."""
    if isinstance(exc, ShopworkerError):
        return exc.status_code

    message = str(exc)
    if any(m in message for m in _BAD_REQUEST_MARKERS):
        return 400
    if any(m in message for m in _UNAUTHORIZED_MARKERS):
        return 401
    return 500
