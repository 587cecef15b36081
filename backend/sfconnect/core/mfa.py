"""
TOTP second factor: enrollment, backup codes and login-time verification.

Per-user state lives in `User.mfa_state` and the `User.mfa_secret` bundle:

    unenrolled --setup--> pending_verification --enable(code)--> enabled
    enabled --disable(password)--> unenrolled

Setup may be re-run at any time to restart enrollment with a fresh secret.
Backup codes are stored as bcrypt hashes only; the plaintext list is returned
once by `enable` and never again. Each code verifies at most once.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional

import bcrypt
from sqlalchemy.orm import Session

from sfconnect.core.config import get_settings
from sfconnect.core.errors import InvalidCode, InvalidPassword, MfaMisconfigured, MfaNotEnabled, MfaNotSetUp
from sfconnect.core.mfa_bundle import LegacySecretOnly, MfaBundle, MfaBundleError, StoredMfa, decode_bundle, encode_bundle
from sfconnect.core.passwords import verify_password
from sfconnect.db.repository import get_user_by_email, update_user
from sfconnect.models.user import MfaState, User
from sfconnect.utils.totp import build_otpauth_uri, generate_base32_secret, qr_data_url, verify_totp


logger = logging.getLogger("sf.mfa")


@dataclass(frozen=True)
class MfaSetup:
    secret: str
    otpauth_uri: str
    qr_code: str


@dataclass(frozen=True)
class MfaStatus:
    enabled: bool
    backup_codes_remaining: int


def _stored(user: User) -> StoredMfa:
    try:
        return decode_bundle(user.mfa_secret)
    except MfaBundleError:
        logger.error("undecodable MFA data user_id=%s state=%s", user.id, user.mfa_state)
        raise MfaMisconfigured()


def generate_backup_codes(n: int) -> List[str]:
    # 4 random bytes -> 8 uppercase hex chars
    return [secrets.token_hex(4).upper() for _ in range(n)]


def _hash_backup_code(code: str, rounds: int) -> str:
    return bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _backup_code_matches(code: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(code.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def start_setup(db: Session, user: User) -> MfaSetup:
    """Generate a fresh TOTP secret and store it pending confirmation."""
    settings = get_settings()
    secret = generate_base32_secret()
    uri = build_otpauth_uri(issuer=settings.mfa_issuer, account=user.email, secret_b32=secret)
    qr = qr_data_url(uri)

    # An enabled account keeps its flag; the new secret replaces the old one
    # and its backup codes until enable() is confirmed again. No password is
    # asked for here, so the old authenticator stops working immediately.
    state = MfaState.enabled if user.mfa_state == MfaState.enabled else MfaState.pending_verification
    update_user(db, user, mfa_secret=encode_bundle(LegacySecretOnly(secret)), mfa_state=state)
    logger.info("mfa setup started user_id=%s state=%s", user.id, state.value)
    return MfaSetup(secret=secret, otpauth_uri=uri, qr_code=qr)


def enable(db: Session, user: User, code: str, *, now: Optional[int] = None) -> List[str]:
    """Confirm enrollment with a TOTP code; returns the plaintext backup codes."""
    settings = get_settings()
    if user.mfa_state == MfaState.unenrolled or not user.mfa_secret:
        raise MfaNotSetUp()
    stored = _stored(user)
    # Only a secret from start_setup awaits confirmation
    if isinstance(stored, MfaBundle):
        raise MfaNotSetUp()

    result = verify_totp(stored.secret, code, now=now, window=settings.mfa_totp_window)
    if not result.ok:
        logger.info("mfa enable rejected user_id=%s", user.id)
        raise InvalidCode(status_code=400)

    codes = generate_backup_codes(settings.mfa_backup_code_count)
    hashes = tuple(_hash_backup_code(c, settings.backup_code_hash_rounds) for c in codes)
    update_user(
        db,
        user,
        mfa_secret=encode_bundle(MfaBundle(secret=stored.secret, backup_code_hashes=hashes)),
        mfa_state=MfaState.enabled,
    )
    logger.info("mfa enabled user_id=%s backup_codes=%d", user.id, len(codes))
    return codes


def disable(db: Session, user: User, password: str) -> None:
    if not verify_password(password or "", user.hashed_password):
        logger.info("mfa disable rejected (password) user_id=%s", user.id)
        raise InvalidPassword()
    update_user(db, user, mfa_secret=None, mfa_state=MfaState.unenrolled)
    logger.info("mfa disabled user_id=%s", user.id)


def _consume_backup_code(db: Session, user: User, stored: StoredMfa, code: str) -> bool:
    candidate = (code or "").strip().replace(" ", "").replace("-", "").upper()
    if not candidate or not isinstance(stored, MfaBundle):
        return False
    for index, hashed in enumerate(stored.backup_code_hashes):
        if _backup_code_matches(candidate, hashed):
            update_user(db, user, mfa_secret=encode_bundle(stored.without_code(index)))
            logger.info(
                "mfa backup code used user_id=%s remaining=%d",
                user.id,
                len(stored.backup_code_hashes) - 1,
            )
            return True
    return False


def verify_login_code(
    db: Session,
    email: str,
    code: str,
    *,
    is_backup_code: bool = False,
    now: Optional[int] = None,
) -> User:
    """
    Second login step, keyed by email: returns the user once the TOTP or
    backup code checks out. The caller issues the session.
    """
    user = get_user_by_email(db, email)
    if user is None or user.mfa_state != MfaState.enabled:
        raise MfaNotEnabled()
    stored = _stored(user)

    if is_backup_code:
        verified = _consume_backup_code(db, user, stored, code)
    else:
        verified = verify_totp(stored.secret, code, now=now, window=get_settings().mfa_totp_window).ok

    if not verified:
        logger.info("mfa login verification failed user_id=%s backup=%s", user.id, bool(is_backup_code))
        raise InvalidCode()
    return user


def status(user: User) -> MfaStatus:
    if user.mfa_state != MfaState.enabled:
        return MfaStatus(enabled=False, backup_codes_remaining=0)
    return MfaStatus(enabled=True, backup_codes_remaining=len(_stored(user).backup_code_hashes))
