"""
HMAC-SHA256 verification for the `x-hub-signature-256` header Meta attaches
to every webhook delivery.
"""

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=raw_body,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """
    True if `signature` (hex digest, with or without the 'sha256=' prefix)
    matches HMAC-SHA256(secret, payload). Constant-time comparison.
    """
    if not signature or not secret:
        return False

    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]

    expected = compute_signature(secret, payload)
    # bytes, so a non-ASCII header value compares False instead of raising
    return hmac.compare_digest(
        expected.encode("ascii"),
        signature.strip().lower().encode("utf-8"),
    )
