"""
Encryption for stored FedEx credentials.

Uses Fernet (symmetric encryption) with a key derived from SECRET_KEY.
Credentials are only ever written to the database in encrypted form.
"""
import base64
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from shipping_calculator.core.config import settings

logger = logging.getLogger(__name__)

_ENCRYPTION_SALT = b"shipping_calculator_fedex_credentials_v1"

# Derived once per process; the key itself is immutable
_fernet: Optional[Fernet] = None


def _get_fernet() -> Fernet:
    """Get or create Fernet instance with derived key."""
    global _fernet

    if _fernet is None:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=_ENCRYPTION_SALT,
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(settings.SECRET_KEY.encode()))
        _fernet = Fernet(key)

    return _fernet


def encrypt_secret(plaintext: str) -> str:
    """
    Encrypt a credential value.

    Args:
        plaintext: The sensitive value to encrypt

    Returns:
        Fernet token as str
    """
    if not plaintext:
        return ""

    try:
        return _get_fernet().encrypt(plaintext.encode()).decode()
    except Exception as e:
        logger.error(f"Encryption failed: {type(e).__name__}")
        raise ValueError("Failed to encrypt sensitive data") from e


def decrypt_secret(ciphertext: str) -> str:
    """
    Decrypt a credential value.

    Raises:
        ValueError: wrong key or corrupted token
    """
    if not ciphertext:
        return ""

    try:
        return _get_fernet().decrypt(ciphertext.encode()).decode()
    except InvalidToken as e:
        logger.error("Decryption failed: Invalid token (wrong key or corrupted data)")
        raise ValueError("Failed to decrypt data - invalid token") from e
