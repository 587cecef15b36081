from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from sfconnect.core.config import get_settings


logger = logging.getLogger("sf.mfa")


def _fernet() -> Optional[Fernet]:
    raw = (get_settings().mfa_encryption_key or "").strip()
    if not raw:
        return None
    return Fernet(raw.encode("utf-8"))


def seal_text(plain: str) -> str:
    """Encrypt when MFA_ENCRYPTION_KEY is configured, else store as-is."""
    f = _fernet()
    if f is None:
        return plain
    return f.encrypt(plain.encode("utf-8")).decode("utf-8")


def unseal_text(stored: Optional[str]) -> str:
    if not stored:
        return ""
    f = _fernet()
    if f is None:
        return stored
    try:
        return f.decrypt(stored.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        # Rows written before encryption was switched on
        logger.debug("stored MFA bundle is not sealed with the configured key; reading as plaintext")
        return stored
