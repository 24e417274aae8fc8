from datetime import date, time
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "Contract SLA"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./contract_sla.db"

    # Business hours (Monday-Friday window, optional weekend windows as "HH:MM-HH:MM")
    BUSINESS_HOURS_START: str = "08:00"
    BUSINESS_HOURS_END: str = "17:00"
    BUSINESS_HOURS_SATURDAY: Optional[str] = None
    BUSINESS_HOURS_SUNDAY: Optional[str] = None
    BUSINESS_HOLIDAYS: List[str] = []
    BUSINESS_TIMEZONE: str = "America/Sao_Paulo"

    @field_validator("BUSINESS_HOLIDAYS", mode="before")
    @classmethod
    def assemble_holidays(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Caches
    SUPPORT_GROUP_CACHE_TTL_MINUTES: int = 10

    # Dashboard
    RECENT_BREACH_DAYS: int = 7
    RECENT_BREACH_LIMIT: int = 10
    DASHBOARD_TREND_DAYS: int = 30
    COMPLIANCE_WARNING_THRESHOLD: float = 80.0
    COMPLIANCE_CRITICAL_THRESHOLD: float = 60.0
    PENALTY_ALERT_THRESHOLD: float = 2.0

    # Monitoring
    SLOW_REQUEST_THRESHOLD_MS: float = 1000.0  # Log requests slower than this (milliseconds)
    ENABLE_STRUCTURED_LOGGING: bool = True  # Use JSON structured logging
    ENABLE_PROMETHEUS_METRICS: bool = True  # Enable Prometheus metrics collection


settings = Settings()


def _parse_window(value: str) -> tuple:
    start, _, end = value.partition("-")
    return time.fromisoformat(start.strip()), time.fromisoformat(end.strip())


def business_hours_config_from_settings(config: Settings = settings):
    """
    Build the calculator configuration from application settings.

    Args:
        config: Settings instance to read from

    Returns:
        BusinessHoursConfig for the configured weekly schedule
    """
    from contract_sla.services.business_hours import BusinessHoursConfig, BusinessWindow

    weekday = BusinessWindow(
        start=time.fromisoformat(config.BUSINESS_HOURS_START),
        end=time.fromisoformat(config.BUSINESS_HOURS_END)
    )
    weekend = {}
    for day, value in (("saturday", config.BUSINESS_HOURS_SATURDAY), ("sunday", config.BUSINESS_HOURS_SUNDAY)):
        if value:
            start, end = _parse_window(value)
            weekend[day] = BusinessWindow(start=start, end=end)

    return BusinessHoursConfig(
        monday=weekday,
        tuesday=weekday,
        wednesday=weekday,
        thursday=weekday,
        friday=weekday,
        holidays=[date.fromisoformat(h) for h in config.BUSINESS_HOLIDAYS],
        timezone=config.BUSINESS_TIMEZONE,
        **weekend
    )
