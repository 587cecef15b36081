from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from sfconnect.api.deps import get_client_ip, get_current_user, get_db_session, get_user_agent
from sfconnect.api.routes.auth import session_response
from sfconnect.core import auth as gateway
from sfconnect.core import mfa
from sfconnect.db.repository import log_activity
from sfconnect.models.user import User

router = APIRouter(prefix="/api/mfa", tags=["mfa"])


class EnableRequest(BaseModel):
    token: str


class DisableRequest(BaseModel):
    password: str


class VerifyRequest(BaseModel):
    email: str = Field(min_length=1)
    token: str
    is_backup_code: bool = Field(default=False, alias="isBackupCode")


@router.post("/setup")
def setup(request: Request, db: Session = Depends(get_db_session), user: User = Depends(get_current_user)):
    result = mfa.start_setup(db, user)
    log_activity(db, user.id, "mfa_setup", "MFA enrollment started", get_client_ip(request), get_user_agent(request))
    return {
        "secret": result.secret,
        "qrCode": result.qr_code,
        "manualEntryKey": result.secret,
    }


@router.post("/enable")
def enable(body: EnableRequest, request: Request, db: Session = Depends(get_db_session), user: User = Depends(get_current_user)):
    codes = mfa.enable(db, user, body.token)
    log_activity(db, user.id, "mfa_enabled", "MFA enabled", get_client_ip(request), get_user_agent(request))
    # Plaintext codes are only ever returned here
    return {"success": True, "backupCodes": codes}


@router.post("/disable")
def disable(body: DisableRequest, request: Request, db: Session = Depends(get_db_session), user: User = Depends(get_current_user)):
    mfa.disable(db, user, body.password)
    log_activity(db, user.id, "mfa_disabled", "MFA disabled", get_client_ip(request), get_user_agent(request))
    return {"success": True}


@router.post("/verify")
def verify(body: VerifyRequest, request: Request, response: Response, db: Session = Depends(get_db_session)):
    """Second login step; no session yet, so it is keyed by email."""
    ip = get_client_ip(request)
    user_agent = get_user_agent(request)
    user = mfa.verify_login_code(db, body.email, body.token, is_backup_code=body.is_backup_code)
    if body.is_backup_code:
        log_activity(db, user.id, "mfa_backup_code_used", "Backup code used for login", ip, user_agent)
    issued = gateway.complete_login(db, user, ip=ip, user_agent=user_agent, action="user_login_mfa")
    return session_response(response, issued)


@router.get("/status")
def status(user: User = Depends(get_current_user)):
    current = mfa.status(user)
    return {"enabled": current.enabled, "backupCodesRemaining": current.backup_codes_remaining}
