from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from sfconnect.db.base import Base


class SetupConfig(Base):
    """
    Server-wide configuration rows keyed by `config_key`.

    The UNIQUE constraint on `config_key` is what makes first-run creation of
    the session signing secret race safe: a second concurrent insert fails and
    the loser re-reads the stored row.
    """

    __tablename__ = "setup_config"

    id = Column(Integer, primary_key=True, index=True)
    config_key = Column(String(100), unique=True, nullable=False)
    config_value = Column(Text, nullable=True)
    # JSON string for additional data ("metadata" is reserved on declarative models)
    config_metadata = Column("metadata", Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
