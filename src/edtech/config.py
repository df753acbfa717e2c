"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with the EDTECH_ prefix
(and an optional .env file in the working directory).

Learn: There is deliberately no module-level `settings` object. The app
factory builds one Settings instance at startup and stores it on
app.state; request handlers reach it through the get_settings()
dependency. Tests construct Settings(...) directly with explicit values.

Required: database_url, jwt_secret, access_token_ttl, session_ttl.
TTLs are ISO-8601 durations ("PT24H", "P30D").
"""

from datetime import timedelta

from fastapi import Request
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via EDTECH_* env vars."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8081
    environment: str = "development"
    debug: bool = False

    # Database
    database_url: str

    # Auth
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_ttl: timedelta
    session_ttl: timedelta
    bcrypt_rounds: int = Field(default=12, ge=10, le=16)
    refresh_token_max_attempts: int = Field(default=3, ge=1)
    cookie_secure: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Rate limiting (disabled when redis_url is empty)
    redis_url: str = ""
    rate_limit_rpm: int = 100  # requests per minute per IP
    rate_limit_auth_rpm: int = 10  # login/signup

    model_config = {
        "env_prefix": "EDTECH_",
        "env_file": ".env",
        "extra": "ignore",
    }

    @field_validator("access_token_ttl", "session_ttl")
    @classmethod
    def ttl_not_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("TTL must not be negative")
        return value

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Refuse short signing secrets outside development."""
        if self.environment != "development" and len(self.jwt_secret) < 32:
            raise ValueError(
                "EDTECH_JWT_SECRET must be at least 32 characters in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        return self


def load_settings() -> Settings:
    """Read settings from the environment. Called once at startup."""
    return Settings()


def get_settings(request: Request) -> Settings:
    """FastAPI dependency — the Settings instance the app was built with."""
    return request.app.state.settings
