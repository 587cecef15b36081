"""User persistence and audit log helpers used by the auth routes."""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sfconnect.core.errors import EmailAlreadyRegistered, StorageUnavailable
from sfconnect.models.activity_log import ActivityLog
from sfconnect.models.user import User, UserRole


logger = logging.getLogger("sf.db")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    try:
        return db.query(User).filter(User.email == email).first()
    except SQLAlchemyError:
        logger.exception("user lookup by email failed")
        raise StorageUnavailable()


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    try:
        return db.get(User, int(user_id))
    except SQLAlchemyError:
        logger.exception("user lookup by id failed user_id=%s", user_id)
        raise StorageUnavailable()


def list_users(db: Session) -> List[User]:
    try:
        return db.query(User).order_by(User.id.asc()).all()
    except SQLAlchemyError:
        logger.exception("user listing failed")
        raise StorageUnavailable()


def create_user(
    db: Session,
    *,
    email: str,
    hashed_password: str,
    name: Optional[str] = None,
    role: UserRole = UserRole.operator,
    email_verified: bool = False,
) -> User:
    user = User(
        email=email,
        hashed_password=hashed_password,
        name=name,
        role=role,
        email_verified=email_verified,
        last_signed_in=utcnow(),
    )
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        # Lost a race against a concurrent registration of the same email
        raise EmailAlreadyRegistered()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("user creation failed")
        raise StorageUnavailable()
    return user


def update_user(db: Session, user: User, **updates: Any) -> User:
    """Apply a partial update and commit it."""
    for key, value in updates.items():
        if not hasattr(User, key):
            raise AttributeError(f"User has no attribute {key!r}")
        setattr(user, key, value)
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("user update failed user_id=%s", user.id)
        raise StorageUnavailable()
    return user


def delete_user(db: Session, user: User) -> None:
    try:
        db.delete(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("user deletion failed user_id=%s", user.id)
        raise StorageUnavailable()


def log_activity(
    db: Session,
    user_id: Optional[int],
    action: str,
    details: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    """
    Append an audit row. Best effort: the caller's work is already committed
    and a failure here is logged, never raised.
    """
    try:
        db.add(
            ActivityLog(
                user_id=user_id,
                action=action,
                details=details,
                ip_address=(ip_address or None) and ip_address[:45],
                user_agent=user_agent,
            )
        )
        db.commit()
    except Exception:
        try:
            db.rollback()
        except Exception:
            pass
        logger.warning("activity log write failed action=%s user_id=%s", action, user_id, exc_info=True)
