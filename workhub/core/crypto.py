"""Encryption of tokens stored at rest.

App installation access tokens and repository GitHub tokens are stored as
Fernet tokens. The Fernet key is derived from ``TOKEN_ENCRYPTION_KEY``.
Fernet output is non-deterministic, so stored tokens cannot be searched by
value; callers that need to find a row by token must decrypt and compare.
"""

import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from workhub.core.config import settings
from workhub.core.logging import get_logger

logger = get_logger(__name__)

# Salt for key derivation (constant, not secret)
_SALT = b"workhub_token_encryption_v1"

__all__ = ["InvalidToken", "encrypt_token", "decrypt_token", "mask_token"]


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    """Build the Fernet instance from settings.

    Falls back to an insecure development key when TOKEN_ENCRYPTION_KEY is unset.
    """
    secret = settings.TOKEN_ENCRYPTION_KEY

    if not secret:
        logger.warning(
            "TOKEN_ENCRYPTION_KEY not set! Using insecure default. "
            "Set TOKEN_ENCRYPTION_KEY in production."
        )
        secret = "dev-only-insecure-key-do-not-use-in-prod"

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_SALT,
        iterations=480000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(secret.encode()))
    return Fernet(key)


def encrypt_token(token: str) -> str:
    """Encrypt a plaintext token for storage."""
    return _get_fernet().encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored token.

    Raises:
        cryptography.fernet.InvalidToken: If the value was not produced with
            the current key or has been tampered with.
    """
    return _get_fernet().decrypt(encrypted_token.encode()).decode()


def mask_token(token: str) -> str:
    """Mask a token for log output (first 4 and last 4 chars)."""
    if len(token) <= 12:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"
