"""
Settings for the API, the worker and the ops scripts.

Values come from the environment (and .env when present). SECRET_KEY has no
default; the process refuses to start without a strong one.
"""
from typing import FrozenSet, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

MIN_SECRET_KEY_LENGTH = 32
MIN_DB_PASSWORD_LENGTH = 12


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    EXPOSE_API_DOCS: bool = True
    # Comma-separated; required in production
    CORS_ORIGINS: Optional[str] = None

    # Postgres, unless DATABASE_URL is given (e.g. sqlite:///./growfit.db)
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "growfit"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600

    REDIS_URL: str = "redis://redis:6379/0"
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"

    SECRET_KEY: str = Field(
        ...,
        description="HS256 signing key, 32+ chars: python -c 'import secrets; print(secrets.token_urlsafe(48))'",
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15, ge=1)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, ge=1)
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)
    MAX_FAILED_LOGIN_ATTEMPTS: int = Field(default=5, ge=1)
    LOCKOUT_DURATION_MINUTES: int = Field(default=30, ge=1)
    # Roles that must submit kids data before their first refresh. Empty disables the gate.
    KIDS_DATA_REQUIRED_ROLES: str = "client"

    # Fernet key for calendar provider tokens at rest
    TOKEN_ENCRYPTION_KEY: Optional[str] = None
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_REDIRECT_URI: str = "http://localhost:3000/calendar/callback"
    OAUTH_STATE_TTL_S: int = 600

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # or "text"

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 100
    RATE_LIMIT_AUTH_PER_MINUTE: int = 10

    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1
    SENTRY_PROFILES_SAMPLE_RATE: float = 0.1

    @field_validator("SECRET_KEY")
    @classmethod
    def _secret_key_length(cls, value: str) -> str:
        if len(value) < MIN_SECRET_KEY_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {MIN_SECRET_KEY_LENGTH} characters")
        return value

    @property
    def kids_data_required_roles(self) -> FrozenSet[str]:
        return frozenset(
            role.strip().lower()
            for role in self.KIDS_DATA_REQUIRED_ROLES.split(",")
            if role.strip()
        )


def validate_production_config(
    *,
    environment: str,
    debug: bool,
    cors_origins: Optional[str],
    postgres_password: Optional[str],
    token_encryption_key: Optional[str] = None,
) -> None:
    """
    Refuse to start production with development defaults.

    postgres_password is None when the connection comes from DATABASE_URL.
    Other environments are not checked.
    """
    if environment != "production":
        return

    problems = []
    if debug:
        problems.append("DEBUG must be False in production")
    if not (cors_origins or "").strip():
        problems.append("CORS_ORIGINS must list the allowed origins in production")
    if postgres_password is not None and (
        postgres_password == "postgres" or len(postgres_password) < MIN_DB_PASSWORD_LENGTH
    ):
        problems.append(
            f"POSTGRES_PASSWORD must not be the default and needs {MIN_DB_PASSWORD_LENGTH}+ characters"
        )
    if not token_encryption_key:
        problems.append("TOKEN_ENCRYPTION_KEY must be set in production")

    if problems:
        raise ValueError("Invalid production configuration: " + "; ".join(problems))


settings = Settings()
