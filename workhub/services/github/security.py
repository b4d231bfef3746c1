"""GitHub webhook signature verification (X-Hub-Signature-256)."""

import hashlib
import hmac
from typing import Optional

SIGNATURE_PREFIX = "sha256="


def compute_signature(payload_body: bytes, secret_token: str) -> str:
    """Return the ``sha256=<hex>`` signature GitHub sends for ``payload_body``."""
    digest = hmac.new(
        secret_token.encode("utf-8"), msg=payload_body, digestmod=hashlib.sha256
    ).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(
    payload_body: bytes, secret_token: Optional[str], signature_header: Optional[str]
) -> bool:
    """
    Verify that the payload was sent from GitHub by validating the SHA256 signature.

    Args:
        payload_body: raw request body bytes
        secret_token: the repository's webhook secret
        signature_header: the X-Hub-Signature-256 header value

    Returns:
        True if the signature is valid, False otherwise (including when no
        secret is configured).
    """
    if not secret_token or not signature_header:
        return False

    expected_signature = compute_signature(payload_body, secret_token)
    return hmac.compare_digest(expected_signature, signature_header)
