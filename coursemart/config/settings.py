"""Application settings, read from the environment and an optional .env file."""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "coursemart"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production", "testing"] = "development"

    # Tokens: each actor type signs access and refresh tokens with its own
    # secret, so a learner token never verifies as an administrator's.
    token_algorithm: str = "HS256"
    learner_access_token_secret: str = "dev-learner-access-secret-change-in-production!"
    learner_access_token_expire_minutes: int = Field(default=15, gt=0)
    learner_refresh_token_secret: str = "dev-learner-refresh-secret-change-in-production!"
    learner_refresh_token_expire_days: int = Field(default=10, gt=0)
    admin_access_token_secret: str = "dev-admin-access-secret-change-in-production!!"
    admin_access_token_expire_minutes: int = Field(default=15, gt=0)
    admin_refresh_token_secret: str = "dev-admin-refresh-secret-change-in-production!!"
    admin_refresh_token_expire_days: int = Field(default=10, gt=0)

    # Session cookies
    auth_cookie_secure: bool = True
    auth_cookie_httponly: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    access_cookie_name: str = "accessToken"
    refresh_cookie_name: str = "refreshToken"

    cassandra_hosts: list[str] = ["localhost"]
    cassandra_port: int = 9042
    cassandra_keyspace: str = "coursemart"
    cassandra_username: str | None = None
    cassandra_password: str | None = None
    cassandra_protocol_version: int = 4
    cassandra_connect_timeout: float = 10.0

    # Payment gateway; amounts are sent in minor units of payment_currency
    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None
    razorpay_api_base: str = "https://api.razorpay.com/v1"
    razorpay_timeout_seconds: float = 15.0
    payment_currency: str = "INR"

    # Course image storage
    firebase_enabled: bool = False
    firebase_credentials_path: str | None = None
    firebase_storage_bucket: str | None = Field(
        default=None, description="Bucket name, e.g. project-id.appspot.com"
    )
    firebase_project_id: str | None = None
    upload_max_file_size_mb: int = Field(default=10, gt=0)
    upload_allowed_image_types: list[str] = [
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    ]

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"
    log_format: Literal["json", "console"] = "console"
    log_include_caller_info: bool = True
    log_dir: str = "logs"
    log_file_max_bytes: int = 10 * 1024 * 1024
    log_file_backup_count: int = 5
    log_requests: bool = True
    log_exclude_paths: list[str] = ["/health"]

    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]
    cors_max_age: int = 600

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def firebase_configured(self) -> bool:
        return bool(
            self.firebase_enabled
            and self.firebase_credentials_path
            and self.firebase_storage_bucket
        )

    def token_secret(self, actor: str, kind: str) -> str:
        """Signing secret for an actor prefix ("learner" or "admin")."""
        return getattr(self, f"{actor}_{kind}_token_secret")

    def token_lifetime(self, actor: str, kind: str) -> timedelta:
        if kind == "access":
            return timedelta(minutes=getattr(self, f"{actor}_access_token_expire_minutes"))
        return timedelta(days=getattr(self, f"{actor}_refresh_token_expire_days"))


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
