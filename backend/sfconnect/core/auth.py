"""
Login orchestration.

Order is fixed: password check, then the MFA branch, then session issuance.
A user with MFA enabled gets an `MfaChallenge` instead of a session and must
finish through `core.mfa.verify_login_code` followed by `complete_login`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import Session

from sfconnect.core.errors import EmailAlreadyRegistered, InvalidCredentials, InvalidPassword
from sfconnect.core.passwords import hash_password, verify_password
from sfconnect.core.tokens import issue_session_token
from sfconnect.db.repository import create_user, get_user_by_email, log_activity, update_user, utcnow
from sfconnect.models.user import User, UserRole


logger = logging.getLogger("sf.auth")


@dataclass(frozen=True)
class SessionIssued:
    token: str
    user: User


@dataclass(frozen=True)
class MfaChallenge:
    email: str


LoginOutcome = Union[SessionIssued, MfaChallenge]


def role_value(user: User) -> str:
    return user.role.value if hasattr(user.role, "value") else str(user.role)


def public_user(user: User) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name, "role": role_value(user)}


def authenticate_password(db: Session, email: str, password: str) -> User:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        logger.info("login rejected email=%s", email)
        raise InvalidCredentials()
    return user


def complete_login(
    db: Session,
    user: User,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    action: str = "user_login",
) -> SessionIssued:
    update_user(db, user, last_signed_in=utcnow())
    token = issue_session_token(db, user.id, user.email, role_value(user))
    log_activity(db, user.id, action, f"User logged in: {user.email}", ip, user_agent)
    logger.info("session issued user_id=%s via=%s", user.id, action)
    return SessionIssued(token=token, user=user)


def login(
    db: Session,
    email: str,
    password: str,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> LoginOutcome:
    user = authenticate_password(db, email, password)
    if user.mfa_enabled:
        logger.info("login pending second factor user_id=%s", user.id)
        return MfaChallenge(email=user.email)
    return complete_login(db, user, ip=ip, user_agent=user_agent)


def register(
    db: Session,
    email: str,
    password: str,
    name: Optional[str] = None,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> SessionIssued:
    if get_user_by_email(db, email) is not None:
        raise EmailAlreadyRegistered()
    user = create_user(
        db,
        email=email,
        hashed_password=hash_password(password),
        name=name or None,
        role=UserRole.operator,
    )
    token = issue_session_token(db, user.id, user.email, role_value(user))
    log_activity(db, user.id, "user_registered", f"User registered: {email}", ip, user_agent)
    logger.info("user registered user_id=%s", user.id)
    return SessionIssued(token=token, user=user)


def change_password(
    db: Session,
    user: User,
    current_password: str,
    new_password: str,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise InvalidPassword("Current password is incorrect")
    update_user(db, user, hashed_password=hash_password(new_password))
    log_activity(db, user.id, "password_changed", "User changed password", ip, user_agent)


def admin_reset_password(
    db: Session,
    admin: User,
    target: User,
    new_password: str,
    *,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    """Set a password without the current one; always audit-logged."""
    update_user(db, target, hashed_password=hash_password(new_password))
    log_activity(db, admin.id, "password_reset", f"Admin reset password for user ID {target.id}", ip, user_agent)
    logger.warning("password reset by admin admin_id=%s target_id=%s", admin.id, target.id)
