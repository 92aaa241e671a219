from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Punchclock"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "postgresql://punch_user:punch_pass@db:5432/punch_db"

    # Schedules are authored in this zone; weekday and time-of-day lookups use it
    SCHEDULE_TIMEZONE: str = "America/Chicago"

    # 0 = Sunday .. 6 = Saturday
    WEEK_STARTS_ON: int = 1

    # Policy thresholds
    WEEKLY_OVERTIME_HOURS: float = 40.0
    DAILY_OVERTIME_HOURS: float = 8.0
    ON_TIME_GRACE_MINUTES: int = 15
    LOW_ACCURACY_METERS: float = 50.0

    # Dashboard queries give up after this many milliseconds
    AGGREGATION_TIMEOUT_MS: int = 8000

    # Mailgun for manager-note notifications
    MAILGUN_API_KEY: Optional[str] = None
    MAILGUN_DOMAIN: Optional[str] = None
    MAILGUN_FROM_EMAIL: str = "notifications@punchclock.app"
    MAILGUN_FROM_NAME: str = "Punchclock"

    # Outbound webhook for punch events
    PUNCH_WEBHOOK_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
