import hashlib
import hmac
from typing import Union

BytesLike = Union[bytes, str]


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def sign(payload: BytesLike, secret: BytesLike) -> str:
    """
    HMAC-SHA256 of the exact bytes that go on the wire.

    For POST/PATCH calls ``payload`` is the serialized request body; for the
    decision GET it is the session id. Strings are UTF-8 encoded.
    """
    return hmac.new(_to_bytes(secret), _to_bytes(payload), hashlib.sha256).hexdigest()


def verify_signature(payload: BytesLike, secret: BytesLike, signature: str) -> bool:
    """Constant-time check of an inbound X-HMAC-SIGNATURE header"""
    if not secret or not signature:
        return False
    expected = sign(payload, secret)
    received = signature.strip().split("sha256=")[-1].lower()
    return hmac.compare_digest(expected, received)
