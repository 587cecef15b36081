import logging
from typing import Optional

from sqlalchemy.orm import Session

from sfconnect.core.config import DEFAULT_BOOTSTRAP_PASSWORD, get_settings
from sfconnect.core.passwords import hash_password
from sfconnect.core.secret_store import get_or_create_signing_secret
from sfconnect.db.repository import create_user, get_user_by_email
from sfconnect.db.session import SessionLocal, engine, init_db
from sfconnect.models.user import UserRole


logger = logging.getLogger("sf.db")


def initialize_database(db: Optional[Session] = None) -> None:
    """
    Create tables, the session signing secret and the bootstrap admin.
    Safe to run on every start; nothing is duplicated.
    """
    own_session = db is None
    if own_session:
        init_db(engine)
        db = SessionLocal()
    else:
        init_db(db.get_bind())

    settings = get_settings()
    try:
        get_or_create_signing_secret(db)

        if get_user_by_email(db, settings.bootstrap_admin_email) is None:
            create_user(
                db,
                email=settings.bootstrap_admin_email,
                hashed_password=hash_password(settings.bootstrap_admin_password),
                name=settings.bootstrap_admin_name,
                role=UserRole.admin,
                email_verified=True,
            )
            logger.info("bootstrap admin created email=%s", settings.bootstrap_admin_email)
            if settings.bootstrap_admin_password == DEFAULT_BOOTSTRAP_PASSWORD:
                logger.warning(
                    "bootstrap admin uses the default password; change it immediately email=%s",
                    settings.bootstrap_admin_email,
                )
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    initialize_database()
