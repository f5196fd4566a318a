import os
from enum import StrEnum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


ENVIRONMENT = os.getenv("RENDER_ENV", Environment.DEVELOPMENT)


class Settings(BaseSettings):
    app_name: str = "TruBid - Auctions"
    # when set, takes precedence over the db_* parts (e.g. sqlite+aiosqlite:///./dev.db)
    database_url: str | None = None
    db_user: str = "postgres"
    db_password: str = ""
    db_name: str = "auctions"
    db_host: str = "localhost"
    db_port: int = 5432
    db_echo: bool = False
    testing: str | None = None
    render_env: str = ENVIRONMENT
    log_level: str = "INFO"

    # auction clock
    auction_poll_interval_seconds: int = 60
    # bound for a single storage call, one retry is made after a timeout
    storage_timeout_seconds: float = 5.0

    # notifications
    mail_from: str = "no-reply@trubid.auction"
    sendgrid_api_key: str | None = None
    admin_notification_enabled: bool = True
    frontend_url: str = "http://localhost:5173"

    # firebase (identity + listing image storage)
    firebase_credentials_path: str = "firebase-service-account.json"
    firebase_storage_bucket: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env" if ENVIRONMENT != Environment.PRODUCTION else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )


config = Settings()
