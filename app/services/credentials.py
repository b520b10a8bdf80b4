"""
Credential encryption/decryption and per-brand Shopify secret access.
"""
import base64
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from app.config import settings
from app.models import Brand

logger = logging.getLogger(__name__)


def get_encryption_key() -> bytes:
    """Fernet key derived from ENCRYPTION_KEY (padded/truncated to 32 bytes)"""
    key_bytes = settings.ENCRYPTION_KEY.encode()[:32].ljust(32, b'0')
    return base64.urlsafe_b64encode(key_bytes)

def encrypt_token(token: str) -> str:
    """Encrypt a token"""
    f = Fernet(get_encryption_key())
    return f.encrypt(token.encode()).decode()

def decrypt_token(encrypted: str) -> str:
    """Decrypt a token. Raises InvalidToken if it was encrypted with another key."""
    f = Fernet(get_encryption_key())
    return f.decrypt(encrypted.encode()).decode()


def _decrypt_optional(brand: Brand, field: str) -> Optional[str]:
    encrypted = getattr(brand, field, None)
    if not encrypted:
        return None
    try:
        value = decrypt_token(encrypted).strip()
    except InvalidToken:
        logger.error("Brand %s: stored %s cannot be decrypted (ENCRYPTION_KEY changed?)", brand.id, field)
        return None
    return value or None


def get_brand_access_token(brand: Brand) -> Optional[str]:
    """Decrypted Shopify Admin API token for outbound sync, or None."""
    return _decrypt_optional(brand, "shopify_access_token")


def get_brand_webhook_secrets(brand: Optional[Brand]) -> list[str]:
    """
    Candidate HMAC secrets for a shop, most specific first: the brand's private-app secret,
    then the app-level SHOPIFY_API_SECRET.
    """
    candidates: list[str] = []
    if brand is not None:
        secret = _decrypt_optional(brand, "shopify_webhook_secret")
        if secret:
            candidates.append(secret)
    env_secret = (settings.SHOPIFY_API_SECRET or "").strip()
    if env_secret and env_secret not in candidates:
        candidates.append(env_secret)
    return candidates
