from __future__ import annotations

import os

APP_VERSION = "0.1.0"

_DEFAULT_SECRET_KEYS = {"change-me-in-production", ""}


class Settings:
    PROJECT_NAME: str = "BPM Flow"
    API_V1_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")
        if o.strip()
    ]
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "bpmflow")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "bpmflow")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "bpmflow")
    # Full SQLAlchemy URL; takes precedence over the POSTGRES_* parts when set
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

    # Automation steps (webhook / finance / email bridge)
    AUTOMATION_TIMEOUT_SECONDS: float = float(os.getenv("AUTOMATION_TIMEOUT_SECONDS", "30"))
    MAIL_BRIDGE_URL: str = os.getenv("MAIL_BRIDGE_URL", "")
    MAIL_BRIDGE_TOKEN: str = os.getenv("MAIL_BRIDGE_TOKEN", "")

    # Scheduled process trigger loop
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "true").lower() in (
        "1",
        "true",
        "yes",
    )
    SCHEDULER_INTERVAL_SECONDS: int = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))

    # SLA fallback when an activity has no due_date_hours
    DEFAULT_DUE_HOURS: float = float(os.getenv("DEFAULT_DUE_HOURS", "24"))

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
