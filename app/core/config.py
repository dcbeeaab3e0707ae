# app/core/config.py
import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Object storage (S3)
    aws_access_key_id: str
    aws_secret_access_key: str
    aws_region: str
    aws_s3_bucket_name: str

    # Payments (Stripe)
    stripe_secret_key: str
    stripe_webhook_secret: str = ""
    currency: str = "usd"

    # Used to sign session cookies and download links
    secret_key: str

    database_url: str = "sqlite:///./codeshop.db"
    app_url: str = "http://localhost:8000"

    # Upload rules
    max_upload_size_mb: int = 20
    allowed_extensions: str = "zip,rar,7z,tar,gz,tgz"

    download_link_ttl: int = 3600  # seconds
    admin_usernames: str = ""
    log_level: str = "INFO"

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
    )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def allowed_extension_set(self) -> set[str]:
        return {
            ext.strip().lower().lstrip(".")
            for ext in self.allowed_extensions.split(",")
            if ext.strip()
        }

    @property
    def admin_username_set(self) -> set[str]:
        return {name.strip() for name in self.admin_usernames.split(",") if name.strip()}


@lru_cache
def get_settings() -> Settings:
    return Settings()


def setup_logging():
    """Configure logging once for the whole app."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
