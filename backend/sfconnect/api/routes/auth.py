from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from sfconnect.api.deps import get_client_ip, get_current_user, get_db_session, get_user_agent
from sfconnect.core import auth as gateway
from sfconnect.core.config import get_settings
from sfconnect.db.repository import log_activity
from sfconnect.models.user import User

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1)
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=1)


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.cookie_session_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
        domain=settings.cookie_domain,
        max_age=settings.session_token_expire_days * 24 * 60 * 60,
    )


def session_response(response: Response, issued: gateway.SessionIssued) -> dict:
    set_session_cookie(response, issued.token)
    return {"success": True, "token": issued.token, "user": gateway.public_user(issued.user)}


@router.post("/register")
def register(body: RegisterRequest, request: Request, response: Response, db: Session = Depends(get_db_session)):
    issued = gateway.register(
        db,
        body.email,
        body.password,
        body.name,
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return session_response(response, issued)


@router.post("/login")
def login(body: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db_session)):
    outcome = gateway.login(
        db,
        body.email,
        body.password,
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    if isinstance(outcome, gateway.MfaChallenge):
        return {"mfaRequired": True, "email": outcome.email}
    return session_response(response, outcome)


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db_session), user: User = Depends(get_current_user)):
    # Tokens are stateless; logging out only drops the cookie
    log_activity(db, user.id, "user_logout", f"User logged out: {user.email}", get_client_ip(request), get_user_agent(request))
    settings = get_settings()
    response.delete_cookie(settings.cookie_session_name, path="/", domain=settings.cookie_domain)
    return {"success": True}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"user": gateway.public_user(user)}


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    request: Request,
    db: Session = Depends(get_db_session),
    user: User = Depends(get_current_user),
):
    gateway.change_password(
        db,
        user,
        body.current_password,
        body.new_password,
        ip=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return {"success": True, "message": "Password changed successfully"}
