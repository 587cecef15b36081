"""
Server-wide session signing secret, persisted in `setup_config`.

The secret is generated on first use and stored under a unique key, so every
process (and every restart) signs and verifies with the same value. There is
no rotation: replacing the row invalidates all issued session tokens.
"""

import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sfconnect.core.errors import StorageUnavailable
from sfconnect.models.setup_config import SetupConfig


logger = logging.getLogger("sf.auth")

SIGNING_SECRET_KEY = "jwt_secret"
# 48 random bytes -> 64 url-safe chars
SECRET_NBYTES = 48


def _load(db: Session) -> Optional[str]:
    row = db.query(SetupConfig).filter(SetupConfig.config_key == SIGNING_SECRET_KEY).first()
    if row is None or not row.config_value:
        return None
    return row.config_value


def get_or_create_signing_secret(db: Session) -> str:
    """Return the stored signing secret, creating it on the very first call."""
    try:
        existing = _load(db)
    except SQLAlchemyError:
        logger.exception("signing secret read failed")
        raise StorageUnavailable()
    if existing:
        return existing

    candidate = secrets.token_urlsafe(SECRET_NBYTES)
    db.add(
        SetupConfig(
            config_key=SIGNING_SECRET_KEY,
            config_value=candidate,
            config_metadata=json.dumps(
                {"auto_generated": True, "created_at": datetime.now(timezone.utc).isoformat()}
            ),
        )
    )
    try:
        db.commit()
    except IntegrityError:
        # Another process inserted first; its value wins
        db.rollback()
        try:
            winner = _load(db)
        except SQLAlchemyError:
            logger.exception("signing secret re-read failed")
            raise StorageUnavailable()
        if not winner:
            logger.error("signing secret insert conflicted but no stored value was found")
            raise StorageUnavailable()
        return winner
    except SQLAlchemyError:
        db.rollback()
        logger.exception("signing secret insert failed")
        raise StorageUnavailable()

    logger.info("session signing secret auto-generated and stored")
    return candidate
