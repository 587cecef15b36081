import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from sfconnect.core.config import get_settings
from sfconnect.core.secret_store import SIGNING_SECRET_KEY
from sfconnect.db.session import get_db_session
from sfconnect.models.setup_config import SetupConfig

router = APIRouter(tags=["health"])


def _release() -> str | None:
    return os.getenv("GIT_SHA") or None


@router.get("/health")
def health() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "service": "sfconnect-backend",
        "environment": settings.environment,
        "release": _release(),
        "time": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/readyz")
def readyz(response: Response, db: Session = Depends(get_db_session)) -> dict:
    """
    Readiness check: database reachable and the session signing secret stored.
    Returns 503 when not ready.
    """
    settings = get_settings()
    checks: dict[str, object] = {}
    ok = True

    try:
        db.execute(text("select 1"))
        checks["db"] = "ok"
    except Exception:
        ok = False
        checks["db"] = "error"

    if ok:
        try:
            has_secret = (
                db.query(SetupConfig.id).filter(SetupConfig.config_key == SIGNING_SECRET_KEY).first() is not None
            )
        except Exception:
            has_secret = False
        checks["signing_secret"] = "ok" if has_secret else "missing"
        ok = ok and has_secret

    if not ok:
        response.status_code = 503
    return {
        "status": "ok" if ok else "not_ready",
        "service": "sfconnect-backend",
        "environment": settings.environment,
        "release": _release(),
        "checks": checks,
        "time": datetime.now(timezone.utc).isoformat(),
    }
