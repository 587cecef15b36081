from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from sfconnect.core.auth import role_value
from sfconnect.core.errors import Forbidden, Unauthorized
from sfconnect.core.tokens import extract_token, verify_session_token
from sfconnect.db.repository import get_user_by_id
from sfconnect.db.session import get_db_session  # re-exported for convenience
from sfconnect.models.user import User, UserRole


@dataclass(frozen=True)
class RequestIdentity:
    """What downstream handlers may rely on for authorization decisions."""

    id: int
    email: str
    name: Optional[str]
    role: str


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent")


def get_current_user(
    request: Request,
    db: Session = Depends(get_db_session),
) -> User:
    """Resolve the bearer header or session cookie to a live user. Raises 401 if invalid."""
    token = extract_token(request.headers.get("authorization"), request.cookies)
    if not token:
        raise Unauthorized()

    claims = verify_session_token(db, token)
    if claims is None:
        raise Unauthorized("Invalid or expired token")

    # Role comes from the stored record, not from the token claims
    user = get_user_by_id(db, claims.user_id)
    if not user:
        raise Unauthorized("User not found")

    request.state.user = RequestIdentity(id=user.id, email=user.email, name=user.name, role=role_value(user))
    return user


def require_role(*allowed_roles: UserRole, detail: str = "Insufficient permissions") -> Callable:
    """Create dependency that requires user to have one of the specified roles."""
    def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed_roles:
            raise Forbidden(detail)
        return user
    return role_checker


require_admin = require_role(UserRole.admin, detail="Admin access required")
require_operator = require_role(UserRole.admin, UserRole.operator, detail="Operator or admin access required")
