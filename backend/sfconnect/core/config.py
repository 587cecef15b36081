import os
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, validator
from typing import Optional, Union


DEFAULT_BOOTSTRAP_PASSWORD = "Ch@ngE33#!!!"


class Settings(BaseSettings):
    """
    Application settings with Pydantic validation.
    Loads from environment variables with type checking and validation.

    The session signing secret is not configured here: it is generated on
    first run and kept in the database (see core.secret_store).
    """
    app_name: str = Field(default="SF Connect", env="APP_NAME")
    environment: str = Field(default="development", env="ENVIRONMENT")

    backend_cors_origins: str = Field(
        default="https://localhost:3000,http://localhost:3000,https://outlook.office.com,https://outlook.office365.com",
        env="BACKEND_CORS_ORIGINS"
    )

    database_url: str = Field(
        default="sqlite:///./sfconnect.db",
        env="DATABASE_URL"
    )

    # Session tokens (JWT)
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")
    session_token_expire_days: int = Field(default=7, env="SESSION_TOKEN_EXPIRE_DAYS")

    # Cookie settings
    cookie_domain: Optional[str] = Field(default=None, env="COOKIE_DOMAIN")
    cookie_secure: bool = Field(default=False, env="COOKIE_SECURE")
    cookie_samesite: str = Field(default="lax", env="COOKIE_SAMESITE")
    cookie_session_name: str = Field(default="sf_connect_token", env="COOKIE_SESSION_NAME")

    # bcrypt work factors
    password_hash_rounds: int = Field(default=12, env="PASSWORD_HASH_ROUNDS")
    backup_code_hash_rounds: int = Field(default=10, env="BACKUP_CODE_HASH_ROUNDS")

    # MFA (TOTP)
    mfa_issuer: str = Field(default="SF Connect", env="MFA_ISSUER")
    mfa_totp_window: int = Field(default=2, env="MFA_TOTP_WINDOW")
    mfa_backup_code_count: int = Field(default=10, env="MFA_BACKUP_CODE_COUNT")
    # Optional Fernet key; when set the MFA bundle is encrypted at rest
    mfa_encryption_key: Optional[str] = Field(default=None, env="MFA_ENCRYPTION_KEY")

    # Bootstrap admin created on first run
    bootstrap_admin_email: str = Field(default="admin@sfconnect.local", env="BOOTSTRAP_ADMIN_EMAIL")
    bootstrap_admin_password: str = Field(default=DEFAULT_BOOTSTRAP_PASSWORD, env="BOOTSTRAP_ADMIN_PASSWORD")
    bootstrap_admin_name: str = Field(default="Administrator", env="BOOTSTRAP_ADMIN_NAME")

    # Sentry
    sentry_dsn: Union[str, None] = Field(default=None, env="SENTRY_DSN")
    sentry_env: str = Field(default="development", env="SENTRY_ENV")

    # Prometheus scrape token (required to expose /metrics in production)
    metrics_token: Optional[str] = Field(default=None, env="METRICS_TOKEN")

    debug: bool = Field(default=True, env="DEBUG")

    @validator("database_url")
    def validate_database_url(cls, v: str, values: dict) -> str:
        """Validate database URL; disallow SQLite in production."""
        env = values.get("environment")
        if env == "production" and v.startswith("sqlite"):
            raise ValueError("SQLite is not allowed for DATABASE_URL in production. Use MySQL or PostgreSQL.")
        return v

    @validator("jwt_algorithm")
    def validate_jwt_algorithm(cls, v: str) -> str:
        """The signing secret is symmetric, so only HMAC algorithms make sense."""
        if v not in {"HS256", "HS384", "HS512"}:
            raise ValueError("JWT_ALGORITHM must be one of HS256, HS384, HS512")
        return v

    @validator("password_hash_rounds", "backup_code_hash_rounds")
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        return v

    @validator("debug")
    def validate_debug(cls, v: bool, values: dict) -> bool:
        """Never allow DEBUG=true in production."""
        if values.get("environment") == "production" and v:
            raise ValueError("DEBUG must be false in production.")
        return v

    class Config:
        # Load env file based on ENVIRONMENT; default to development
        env_file = ".env.production" if os.getenv("ENVIRONMENT") == "production" else ".env.development"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Validates all environment variables on first access.
    Raises ValidationError if configuration is invalid.
    """
    return Settings()
