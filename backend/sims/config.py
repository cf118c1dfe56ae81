"""
Application settings.

All environment-derived configuration lives in a single ``Settings`` object
that is built once by ``create_app`` and handed to the engine factory, the
mailer and the services that need it. Values are read from ``SIMS_*``
environment variables or an optional ``.env`` file.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the student information backend."""

    model_config = SettingsConfigDict(
        env_prefix="SIMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./sims.db"

    # Logging
    log_level: str = "INFO"

    # Auth tokens
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"

    # Row-lock the course during enroll (PostgreSQL only; ignored by SQLite)
    strict_capacity: bool = False

    # Email collaborator. Without smtp_host deliveries are only logged.
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    mail_from_name: str = "Student Information System"
    mail_from_address: str = "no-reply@sims.local"
    password_reset_url: str = "http://localhost:3000/reset-password"

    cors_origins: List[str] = ["*"]

    # First admin account, created at start-up when it does not exist yet
    bootstrap_admin_username: Optional[str] = None
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
