"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).
Sub-configs are composed onto AppSettings in a model_validator so a single
AppSettings() call reads the whole environment once.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "study-assistant"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "study-assistant"
    jwt_audience: str = "study-assistant.api"
    session_ttl_seconds: int = 7 * 24 * 3600

    # RS256 keys (preferred)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 fallback (used when RS256 keys are absent)
    jwt_secret: str = ""

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sendgrid_api_key: str = ""
    sendgrid_verified_email: str = "noreply@study-assistant.app"
    sendgrid_from_name: str = "AI Study Assistant"


class AISettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    groq_api_key: str = ""
    groq_base_url: str = "https://api.groq.com/openai/v1"
    chat_model: str = "llama-3.3-70b-versatile"
    translate_model: str = "llama-3.1-8b-instant"
    transcription_model: str = "whisper-large-v3"
    request_timeout_seconds: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.groq_api_key)


class TwoFactorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    totp_issuer: str = "AI Study Assistant"
    otp_ttl_seconds: int = 300
    max_failed_attempts: int = 5
    lock_minutes: int = 15
    resend_interval_seconds: int = 30
    # ±steps of 30 s accepted around the current TOTP step
    totp_valid_window: int = 2


class UploadSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    upload_dir: str = "uploads"
    max_upload_bytes: int = 50 * 1024 * 1024


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    rate_limit_enabled: bool = True
    # any `limits` storage URI; production points this at the MongoDB deployment
    rate_limit_storage_uri: str = "memory://"


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "AI Study Assistant"
    client_url: str = "http://localhost:5173"
    backend_url: str = "http://localhost:5000"

    cors_origins: list[str] = ["http://localhost:5173"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    jwt: Optional[JWTSettings] = None
    email: Optional[EmailSettings] = None
    ai: Optional[AISettings] = None
    two_factor: Optional[TwoFactorSettings] = None
    uploads: Optional[UploadSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None
    rate_limit: Optional[RateLimitSettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.ai is None:
            self.ai = AISettings()
        if self.two_factor is None:
            self.two_factor = TwoFactorSettings()
        if self.uploads is None:
            self.uploads = UploadSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        if self.rate_limit is None:
            self.rate_limit = RateLimitSettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
