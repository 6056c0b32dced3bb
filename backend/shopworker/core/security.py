
import base64, hashlib, hmac
from typing import Optional, Union


# =============== Shopify Webhook 签名：HMAC-SHA256(raw body) 的 base64 ===============
def compute_hmac_base64(secret: str, raw_body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_shopify_hmac(secret: Optional[str], raw_body: bytes, provided_hmac_b64: Optional[str]) -> bool:
    # 缺 secret / 缺 header 一律视为校验失败
    if not secret or not provided_hmac_b64:
        return False
    expected = compute_hmac_base64(secret, raw_body)
    return hmac.compare_digest(provided_hmac_b64.encode("utf-8"), expected.encode("utf-8"))


def secrets_equal(provided: Optional[Union[str, bytes]], expected: Optional[Union[str, bytes]]) -> bool:
    """Byte-for-byte constant time comparison; an unset expected secret never matches."""
    if not provided or not expected:
        return False
    if isinstance(provided, str):
        provided = provided.encode("utf-8")
    if isinstance(expected, str):
        expected = expected.encode("utf-8")
    return hmac.compare_digest(provided, expected)
