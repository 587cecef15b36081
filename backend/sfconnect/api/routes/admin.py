from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from sfconnect.api.deps import get_client_ip, get_db_session, get_user_agent, require_admin
from sfconnect.core.auth import admin_reset_password, role_value
from sfconnect.core.errors import UserNotFound
from sfconnect.db.repository import delete_user, get_user_by_id, list_users, log_activity, update_user
from sfconnect.models.user import User, UserRole


router = APIRouter(prefix="/api/admin", tags=["admin"])


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    role: Optional[UserRole] = None
    email_verified: Optional[bool] = Field(default=None, alias="emailVerified")


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(alias="newPassword", min_length=1)


def _target(db: Session, user_id: int) -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise UserNotFound()
    return user


@router.get("/users")
def get_users(
    db: Session = Depends(get_db_session),
    _: User = Depends(require_admin),
) -> Dict[str, Any]:
    """All users without password hashes or MFA material."""
    return {
        "users": [
            {
                "id": u.id,
                "email": u.email,
                "name": u.name,
                "role": role_value(u),
                "emailVerified": bool(u.email_verified),
                "mfaEnabled": u.mfa_enabled,
                "lastSignedIn": u.last_signed_in.isoformat() if u.last_signed_in else None,
                "createdAt": u.created_at.isoformat() if u.created_at else None,
            }
            for u in list_users(db)
        ]
    }


@router.put("/users/{user_id}")
def update_user_admin(
    user_id: int,
    body: UpdateUserRequest,
    request: Request,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    target = _target(db, user_id)
    updates: Dict[str, Any] = {}
    if body.name is not None:
        updates["name"] = body.name
    if body.role is not None:
        updates["role"] = body.role
    if body.email_verified is not None:
        updates["email_verified"] = body.email_verified
    if updates:
        update_user(db, target, **updates)

    log_activity(db, current_user.id, "user_updated", f"Admin updated user ID {user_id}", get_client_ip(request), get_user_agent(request))
    return {"success": True, "message": "User updated successfully"}


@router.delete("/users/{user_id}")
def delete_user_admin(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    if current_user.id == user_id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    delete_user(db, _target(db, user_id))
    log_activity(db, current_user.id, "user_deleted", f"Admin deleted user ID {user_id}", get_client_ip(request), get_user_agent(request))
    return {"success": True, "message": "User deleted successfully"}


@router.post("/users/{user_id}/reset-password")
def reset_password(
    user_id: int,
    body: ResetPasswordRequest,
    request: Request,
    db: Session = Depends(get_db_session),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    admin_reset_password(
        db,
        current_user,
        _target(db, user_id),
        body.new_password,
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return {"success": True, "message": "Password reset successfully"}
