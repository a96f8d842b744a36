from __future__ import annotations

from typing import Iterable, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Centralise configuration with validation for production hardening."""

    db_engine: str = "postgresql+psycopg"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "academy"
    db_user: str = "academy_user"
    db_pass: str = "supersecret"
    database_url: str | None = None
    db_pool_size: int = Field(default=8, ge=1, le=32)
    db_max_overflow: int = Field(default=0, ge=0, le=32)
    db_pool_timeout: int = Field(default=20, ge=1)
    db_pool_recycle: int = Field(default=1800, ge=30)

    API_ORIGIN: str = "https://localhost:3000"
    JWT_SECRET: str
    CSRF_SECRET: str | None = None
    COOKIE_NAME: str = "academy_session"
    CSRF_COOKIE_NAME: str = "academy_csrf"
    ENV: str = "dev"
    log_level: str = "INFO"

    cors_allowed_origins: list[str] | str = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "https://localhost:3000",
        ],
    )
    cors_allow_headers: list[str] | str = Field(
        default_factory=lambda: [
            "Content-Type",
            "X-CSRF-Token",
            "X-CSRFToken",
            "X-Requested-With",
        ],
    )
    cors_expose_headers: list[str] | str = Field(
        default_factory=lambda: ["X-CSRF-Token", "X-CSRFToken"],
    )

    redis_url: str | None = None
    auth_rate_limit_window_seconds: int = Field(default=60, ge=1)
    auth_rate_limit_max_attempts: int = Field(default=10, ge=1)
    verify_rate_limit_window_seconds: int = Field(default=60, ge=1)
    verify_rate_limit_max_attempts: int = Field(default=60, ge=1)

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_starttls: bool = True
    smtp_timeout: int = 20
    smtp_from_name: str = "Academy Team"
    smtp_from_email: str | None = None
    app_base_url: str | None = None
    brand_color: str = "#1A3366"

    upload_dir: str = "./uploads"
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)
    certificate_prefix: str = "UNIPOD-PROGRAMS"
    certificate_issuer: str = "UNIPOD Prototyping Development Program"
    verify_path: str = "/verify"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("JWT_SECRET")
    @classmethod
    def _ensure_jwt_strength(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 16:
            raise ValueError("JWT_SECRET must be at least 16 characters long")
        if value.lower() in {"changeme", "secret", "supersecret"}:
            raise ValueError("JWT_SECRET cannot use a trivial value")
        return value

    @field_validator("CSRF_SECRET")
    @classmethod
    def _normalize_csrf(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("certificate_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        cleaned = value.strip().strip("-").upper()
        if not cleaned:
            raise ValueError("certificate_prefix cannot be empty")
        return cleaned

    @field_validator(
        "cors_allowed_origins",
        "cors_allow_headers",
        "cors_expose_headers",
        mode="before",
    )
    @classmethod
    def _coerce_csv(cls, value: Iterable[str] | str | None) -> list[str] | None:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return _split_csv(value)
        return [str(item).strip() for item in value if str(item).strip()]

    @model_validator(mode="after")
    def _validate_production_secrets(self) -> "Settings":
        env = (self.ENV or "").lower()
        if env in {"prod", "production"}:
            if self.db_pass == "supersecret":
                raise ValueError("Default DB_PASS is not allowed in production")
            if self.db_user == "academy_user":
                raise ValueError("Default DB_USER is not allowed in production")
            if not self.CSRF_SECRET:
                raise ValueError("CSRF_SECRET is required in production")
        return self

    @property
    def is_production(self) -> bool:
        return (self.ENV or "").lower() in {"prod", "production"}

    @property
    def url(self) -> str:
        return self.database_url or (
            f"{self.db_engine}://{self.db_user}:{self.db_pass}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def public_base_url(self) -> str:
        return (self.app_base_url or self.API_ORIGIN).rstrip("/")

    @property
    def cors_origin_set(self) -> set[str]:
        return set(self.cors_allowed_origins_list())

    def cors_allowed_origins_list(self) -> list[str]:
        if isinstance(self.cors_allowed_origins, list):
            return self.cors_allowed_origins
        return _split_csv(self.cors_allowed_origins or "")

    def cors_allow_headers_list(self) -> list[str]:
        if isinstance(self.cors_allow_headers, list):
            return self.cors_allow_headers
        return _split_csv(self.cors_allow_headers or "")

    def cors_expose_headers_list(self) -> list[str]:
        if isinstance(self.cors_expose_headers, list):
            return self.cors_expose_headers
        return _split_csv(self.cors_expose_headers or "")

    def cors_allow_headers_string(self) -> str:
        return ",".join(self.cors_allow_headers_list())


settings = Settings()
