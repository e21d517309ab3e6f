from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Europe/Rome", alias="TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="tutorbooking", alias="POSTGRES_DB")
    postgres_user: str = Field(default="tutorbooking", alias="POSTGRES_USER")
    postgres_password: str = Field(default="tutorbooking", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")
    admin_emails: str = Field(default="", alias="ADMIN_EMAILS")

    cron_secret: str = Field(default="", alias="CRON_SECRET")
    scheduler_enabled: bool = Field(default=False, alias="SCHEDULER_ENABLED")

    default_call_type: str = Field(default="ripetizione", alias="DEFAULT_CALL_TYPE")
    default_duration_min: int = Field(default=60, alias="DEFAULT_DURATION_MIN")
    availability_range_days: int = Field(default=90, alias="AVAILABILITY_RANGE_DAYS")

    calendar_provider: str = Field(default="stub", alias="CALENDAR_PROVIDER")
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", alias="GOOGLE_CLIENT_SECRET")
    google_refresh_token: str = Field(default="", alias="GOOGLE_REFRESH_TOKEN")
    google_calendar_id: str = Field(default="primary", alias="GOOGLE_CALENDAR_ID")

    mail_provider: str = Field(default="stub", alias="MAIL_PROVIDER")
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=465, alias="SMTP_PORT")
    smtp_user: str = Field(default="", alias="SMTP_USER")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    mail_from: str = Field(default="", alias="MAIL_FROM")
    daily_bookings_to: str = Field(default="", alias="DAILY_BOOKINGS_TO")

    class Config:
        populate_by_name = True

    @property
    def is_production(self) -> bool:
        return self.env.lower() in {"prod", "production"}

    @property
    def admin_email_set(self) -> set[str]:
        return {item.strip().lower() for item in self.admin_emails.split(",") if item.strip()}

    @property
    def digest_recipients(self) -> list[str]:
        raw = self.daily_bookings_to or self.smtp_user
        return [item.strip() for item in raw.split(",") if item.strip()]

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
