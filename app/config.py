import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/messaging_permissions"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip().lower() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    environment: str = os.getenv("ENVIRONMENT", "development").strip().lower()
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )

    # External collaborators
    users_service_url: str = os.getenv("USERS_SERVICE_URL", "http://users:8000")
    applications_service_url: str = os.getenv(
        "APPLICATIONS_SERVICE_URL", "http://applications:8000"
    )
    subscriptions_service_url: str = os.getenv(
        "SUBSCRIPTIONS_SERVICE_URL", "http://subscriptions:8000"
    )
    notifications_service_url: str = os.getenv(
        "NOTIFICATIONS_SERVICE_URL", "http://notifications:8000"
    )
    oracle_timeout_seconds: float = float(os.getenv("ORACLE_TIMEOUT_SECONDS", "5"))

    # Messaging permissions
    messaging_request_ttl_days: int = int(os.getenv("MESSAGING_REQUEST_TTL_DAYS", "7"))
    messaging_auto_grant_days: int = int(os.getenv("MESSAGING_AUTO_GRANT_DAYS", "90"))
    messaging_plans: tuple[str, ...] = _csv(
        os.getenv("MESSAGING_PLANS", "pro,enterprise")
    )
    messaging_sweep_day_of_week: str = os.getenv(
        "MESSAGING_SWEEP_CRON_DAY_OF_WEEK", "sun"
    )
    messaging_sweep_hour: int = int(os.getenv("MESSAGING_SWEEP_CRON_HOUR", "0"))


settings = Settings()
