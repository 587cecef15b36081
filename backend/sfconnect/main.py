import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from sfconnect.api.routes import admin as admin_routes
from sfconnect.api.routes import auth as auth_routes
from sfconnect.api.routes import health as health_routes
from sfconnect.api.routes import metrics as metrics_routes
from sfconnect.api.routes import mfa as mfa_routes
from sfconnect.core.config import get_settings
from sfconnect.core.errors import StorageUnavailable
from sfconnect.core.security_headers import SecurityHeadersMiddleware
from sfconnect.core.tracing import init_tracing
from sfconnect.seed import initialize_database


def create_app(*, initialize: bool = True) -> FastAPI:
    app = FastAPI(title="SF Connect API")
    settings = get_settings()

    if initialize:
        @app.on_event("startup")
        def _startup_database() -> None:
            initialize_database()

    # Observability: configure logging + optional error tracing
    init_tracing(app)

    # CORS (Outlook add-in runs on Office origins)
    origins = [o.strip() for o in settings.backend_cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SecurityHeadersMiddleware)

    @app.exception_handler(OperationalError)
    async def _database_unreachable(request: Request, exc: OperationalError) -> JSONResponse:
        # Never degrade to "not authenticated" and never leak driver messages
        logging.getLogger("sf.db").error("database unreachable path=%s", request.url.path, exc_info=exc)
        err = StorageUnavailable()
        return JSONResponse(status_code=err.status_code, content={"detail": err.detail})

    # Routers
    app.include_router(health_routes.router)
    app.include_router(metrics_routes.router)
    app.include_router(auth_routes.router)
    app.include_router(mfa_routes.router)
    app.include_router(admin_routes.router)

    return app


app = create_app()
