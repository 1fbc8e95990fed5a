"""Encryption of third-party OAuth tokens at rest (Fernet, key derived with PBKDF2)."""
import base64
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

_SALT = b"searchfit_integration_tokens"
_ITERATIONS = 100000
MIN_KEY_LENGTH = 32


def resolve_encryption_key(settings) -> str:
    """TOKEN_ENCRYPTION_KEY when long enough, else SECRET_KEY."""
    key = settings.token_encryption_key or ""
    return key if len(key) >= MIN_KEY_LENGTH else settings.secret_key


@lru_cache(maxsize=8)
def _get_fernet(secret: str) -> Fernet:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=_SALT, iterations=_ITERATIONS)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode())))


def encrypt_token(plain: str, encryption_key: str) -> str:
    if not plain:
        return ""
    return _get_fernet(encryption_key).encrypt(plain.encode()).decode()


def decrypt_token(cipher: str, encryption_key: str) -> Optional[str]:
    """None when empty or when the key does not match."""
    if not cipher:
        return None
    try:
        return _get_fernet(encryption_key).decrypt(cipher.encode()).decode()
    except (InvalidToken, ValueError):
        return None
