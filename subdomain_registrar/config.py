"""
Configuration settings for the subdomain registrar.

Uses Pydantic Settings to load environment variables for the database
connection, the parent domain and its signing credentials, batch sizing,
lock timeouts, and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("subdomain_registrar", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(5, alias="DB_POOL_MAX_SIZE")
    db_connect_timeout: float = Field(5.0, alias="DB_CONNECT_TIMEOUT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="JSON_LOGS")

    # Namespace
    domain_name: str = Field("example.id", alias="DOMAIN_NAME")
    owner_key: str = Field("", alias="OWNER_KEY")
    payment_key: str = Field("", alias="PAYMENT_KEY")

    # Batching
    max_zonefile_size: int = Field(4096, alias="MAX_ZONEFILE_SIZE")
    lock_timeout_seconds: float = Field(1.0, gt=0, alias="LOCK_TIMEOUT_SECONDS")
    intake_lock_timeout_seconds: float = Field(30.0, gt=0, alias="INTAKE_LOCK_TIMEOUT_SECONDS")

    # "package.module:factory" returning a Collaborators bundle
    collaborators: Optional[str] = Field(None, alias="COLLABORATORS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
