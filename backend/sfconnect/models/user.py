from sqlalchemy import Column, Integer, String, DateTime, Enum, Boolean, Text, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from sfconnect.db.base import Base


class UserRole(str, enum.Enum):
    admin = "admin"
    operator = "operator"
    readonly = "readonly"


class MfaState(str, enum.Enum):
    """Second-factor enrollment state.

    unenrolled -> pending_verification (setup) -> enabled (enable)
    enabled -> unenrolled (disable)
    """

    unenrolled = "unenrolled"
    pending_verification = "pending_verification"
    enabled = "enabled"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        # A secret exists exactly when the user is past "unenrolled"
        CheckConstraint(
            "(mfa_state = 'unenrolled' AND mfa_secret IS NULL) "
            "OR (mfa_state <> 'unenrolled' AND mfa_secret IS NOT NULL)",
            name="ck_users_mfa_state_secret",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Case-sensitive key, stored as given
    email = Column(String(320), unique=True, nullable=False, index=True)
    hashed_password = Column(Text, nullable=False)
    name = Column(Text, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.operator)
    email_verified = Column(Boolean, nullable=False, default=False, server_default="0")
    last_signed_in = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # MFA: state plus serialized {secret, backupCodes[]} bundle (see core.mfa_bundle)
    mfa_state = Column(Enum(MfaState), nullable=False, default=MfaState.unenrolled, server_default="unenrolled")
    mfa_secret = Column(Text, nullable=True)

    activity = relationship("ActivityLog", back_populates="user")

    @property
    def mfa_enabled(self) -> bool:
        return self.mfa_state == MfaState.enabled
