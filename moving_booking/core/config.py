from datetime import date

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BUSINESS_NAME: str = "Worry Free Moving"
    BUSINESS_EMAIL: str = "service@worryfreemovers.com"
    BUSINESS_PHONE: str = "330-435-8686"
    BUSINESS_TIMEZONE: str = "America/New_York"
    BOOKING_ID_PREFIX: str = "WF"

    STORE_PROVIDER: str = "json"  # "json" | "memory"
    DATA_DIR: str = "./data"

    BUSINESS_HOURS_START: str = "08:00"
    BUSINESS_HOURS_END: str = "18:00"
    SLOT_MINUTES: int = 30
    WORKING_DAYS: list[int] = [0, 1, 2, 3, 4, 5]  # Monday=0
    BLOCKED_DATES: list[date] = []
    BOOKING_HORIZON_DAYS: int = 180
    DEFAULT_CREW_CAPACITY: int = 1
    # Keys: "YYYY-MM-DD HH:MM", "YYYY-MM-DD" or "HH:MM"
    CREW_CAPACITY_OVERRIDES: dict[str, int] = {}
    JOB_DURATION_HOURS: int = 2

    CALENDAR_PROVIDERS: list[str] = ["mock"]  # "google", "icloud", "mock"
    CALENDAR_TIMEOUT_SECONDS: float = 10.0

    GOOGLE_CALENDAR_ACCESS_TOKEN: str | None = None
    GOOGLE_CALENDAR_IDS: list[str] = ["primary"]
    GOOGLE_CALENDAR_BASE_URL: str = "https://www.googleapis.com/calendar/v3"

    ICLOUD_USERNAME: str | None = None
    ICLOUD_PASSWORD: str | None = None  # app-specific password
    ICLOUD_CALENDAR_URL: str | None = None  # CalDAV collection URL

    EMAIL_TRANSPORT: str = "mock"  # "smtp" | "mock"
    EMAIL_FROM: str | None = None
    EMAIL_CC_LIST: list[str] = []
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: float = 15.0

    REMINDER_SCHEDULER_ENABLED: bool = False
    REMINDER_INTERVAL_SECONDS: int = 3600
    REMINDER_WINDOW_START_HOURS: float = 23.0
    REMINDER_WINDOW_END_HOURS: float = 25.0

    PRICING_CATALOG_PATH: str = "./data/services.json"
    PRICING_REFRESH_SECONDS: int = 300


settings = Settings()
