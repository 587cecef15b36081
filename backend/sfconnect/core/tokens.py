import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from sfconnect.core.config import get_settings
from sfconnect.core.secret_store import get_or_create_signing_secret


logger = logging.getLogger("sf.auth")


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    role: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def issue_session_token(
    db: Session,
    user_id: int,
    email: str,
    role: str,
    *,
    now: Optional[datetime] = None,
) -> str:
    settings = get_settings()
    secret = get_or_create_signing_secret(db)
    issued = now or _utcnow()
    return jwt.encode(
        {
            "userId": int(user_id),
            "email": email,
            "role": role,
            "iat": int(issued.timestamp()),
            "exp": int((issued + timedelta(days=settings.session_token_expire_days)).timestamp()),
        },
        secret,
        algorithm=settings.jwt_algorithm,
    )


def _has_canonical_signature(token: str) -> bool:
    # jose decodes base64url leniently; a signature whose unused trailing bits
    # were altered must not verify
    parts = token.split(".")
    if len(parts) != 3:
        return False
    sig = parts[2]
    try:
        raw = base64.urlsafe_b64decode(sig + "=" * (-len(sig) % 4))
    except (binascii.Error, ValueError):
        return False
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") == sig


def verify_session_token(db: Session, token: str) -> Optional[TokenClaims]:
    """
    Return the claims of a valid token, else None.

    Malformed, badly signed, expired and incomplete tokens all yield None so
    callers cannot tell the causes apart. Storage failures still raise.
    """
    settings = get_settings()
    secret = get_or_create_signing_secret(db)
    if not _has_canonical_signature(token or ""):
        logger.info("session token rejected: non-canonical signature")
        return None
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.info("session token rejected: %s", type(exc).__name__)
        return None

    user_id = payload.get("userId")
    email = payload.get("email")
    role = payload.get("role")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    if not isinstance(email, str) or not isinstance(role, str):
        return None
    # jose only checks "exp" when present
    if not isinstance(payload.get("exp"), int):
        return None
    return TokenClaims(user_id=user_id, email=email, role=role)


def extract_token(authorization: Optional[str], cookies: Mapping[str, str]) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    value = cookies.get(get_settings().cookie_session_name)
    return value or None
