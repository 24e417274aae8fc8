"""
Business Hours Module

Calendar arithmetic over a weekly business schedule and a holiday list.
SLA clocks that run in business hours only are measured and projected
with this calculator.

Naive datetimes are wall-clock times in the schedule's timezone. Aware
datetimes are converted to that timezone first, and results are returned
in the caller's timezone.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from pydantic import BaseModel, ValidationError, field_validator, model_validator

from contract_sla.core.exceptions import InvalidBusinessHoursException


logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class BusinessWindow(BaseModel):
    """Opening and closing time of one business day."""
    start: time
    end: time

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_order(self) -> "BusinessWindow":
        if self.start >= self.end:
            raise ValueError(f"business window start {self.start} must be before end {self.end}")
        return self

    @property
    def hours(self) -> float:
        return (
            datetime.combine(date.min, self.end) - datetime.combine(date.min, self.start)
        ).total_seconds() / 3600


_WEEKDAY_WINDOW = BusinessWindow(start=time(8, 0), end=time(17, 0))


class BusinessHoursConfig(BaseModel):
    """Weekly schedule, holidays and timezone. Replaced wholesale on change."""
    monday: Optional[BusinessWindow] = _WEEKDAY_WINDOW
    tuesday: Optional[BusinessWindow] = _WEEKDAY_WINDOW
    wednesday: Optional[BusinessWindow] = _WEEKDAY_WINDOW
    thursday: Optional[BusinessWindow] = _WEEKDAY_WINDOW
    friday: Optional[BusinessWindow] = _WEEKDAY_WINDOW
    saturday: Optional[BusinessWindow] = None
    sunday: Optional[BusinessWindow] = None
    holidays: Tuple[date, ...] = ()
    timezone: str = "America/Sao_Paulo"

    class Config:
        frozen = True

    @field_validator("holidays", mode="before")
    @classmethod
    def sort_holidays(cls, v):
        if isinstance(v, (str, date)):
            v = [v]
        parsed = {date.fromisoformat(d) if isinstance(d, str) else d for d in v}
        return tuple(sorted(parsed))

    def window_for(self, day: date) -> Optional[BusinessWindow]:
        """Business window of a calendar day, None on holidays and closed days."""
        if day in self.holidays:
            return None
        return getattr(self, WEEKDAY_NAMES[day.weekday()])

    def has_business_days(self) -> bool:
        return any(getattr(self, name) is not None for name in WEEKDAY_NAMES)


DEFAULT_BUSINESS_HOURS = BusinessHoursConfig()


def _next_midnight(value: datetime) -> datetime:
    return datetime.combine(value.date() + timedelta(days=1), time.min)


class BusinessHoursCalculator:
    """
    Business-hours aware interval arithmetic.

    Intervals are decomposed day by day and each day is intersected with
    its configured window, so nights, closed weekdays and holidays never
    count as elapsed SLA time.
    """

    def __init__(self, config: BusinessHoursConfig = DEFAULT_BUSINESS_HOURS):
        self._config = config
        self._zone: Optional[ZoneInfo] = None

    @property
    def config(self) -> BusinessHoursConfig:
        return self._config

    def get_config(self) -> BusinessHoursConfig:
        return self._config

    # ------------------------------------------------------------------
    # Timezone handling
    # ------------------------------------------------------------------

    def _timezone(self) -> ZoneInfo:
        if self._zone is None:
            try:
                self._zone = ZoneInfo(self._config.timezone)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise InvalidBusinessHoursException(
                    f"Unknown business timezone: {self._config.timezone}",
                    {"timezone": self._config.timezone}
                ) from e
        return self._zone

    def _to_local(self, value: datetime) -> Tuple[datetime, Optional[tzinfo]]:
        """Return the naive local wall-clock time and the caller's tzinfo."""
        if value.tzinfo is None:
            return value, None
        return value.astimezone(self._timezone()).replace(tzinfo=None), value.tzinfo

    def _from_local(self, value: datetime, caller_tz: Optional[tzinfo]) -> datetime:
        if caller_tz is None:
            return value
        return value.replace(tzinfo=self._timezone()).astimezone(caller_tz)

    # ------------------------------------------------------------------
    # Measuring
    # ------------------------------------------------------------------

    def calculate_business_hours(self, start: datetime, end: datetime) -> float:
        """
        Calculate business hours elapsed between two instants.

        Args:
            start: Interval start
            end: Interval end

        Returns:
            Business hours rounded to 2 decimals, 0 when start >= end
        """
        start, _ = self._to_local(start)
        end, _ = self._to_local(end)
        if start >= end:
            return 0.0

        total = 0.0
        current = start
        while current < end:
            next_day = _next_midnight(current)
            total += self._hours_within_day(current, min(next_day, end))
            current = next_day

        return round(total, 2)

    def _hours_within_day(self, start: datetime, end: datetime) -> float:
        window = self._config.window_for(start.date())
        if window is None:
            return 0.0

        business_start = datetime.combine(start.date(), window.start)
        business_end = datetime.combine(start.date(), window.end)
        effective_start = max(start, business_start)
        effective_end = min(end, business_end)
        if effective_start >= effective_end:
            return 0.0
        return (effective_end - effective_start).total_seconds() / 3600

    def elapsed_hours(self, start: datetime, end: datetime, business_hours_only: bool) -> float:
        """Elapsed SLA time, in business hours or 24x7 hours."""
        if business_hours_only:
            return self.calculate_business_hours(start, end)

        start, _ = self._to_local(start)
        end, _ = self._to_local(end)
        if start >= end:
            return 0.0
        return round((end - start).total_seconds() / 3600, 2)

    # ------------------------------------------------------------------
    # Projecting
    # ------------------------------------------------------------------

    def add_business_hours(self, start: datetime, hours_to_add: float) -> datetime:
        """
        Find the instant at which hours_to_add business hours have elapsed.

        Args:
            start: Instant the clock starts
            hours_to_add: Business hours to consume

        Returns:
            Deadline, in the same timezone awareness as start

        Raises:
            InvalidBusinessHoursException: The schedule has no business day
        """
        if hours_to_add <= 0:
            return start
        if not self._config.has_business_days():
            raise InvalidBusinessHoursException("Business hours schedule has no business days")

        current, caller_tz = self._to_local(start)
        remaining = timedelta(hours=hours_to_add)

        while True:
            window = self._config.window_for(current.date())
            if window is None:
                current = _next_midnight(current)
                continue

            business_start = datetime.combine(current.date(), window.start)
            business_end = datetime.combine(current.date(), window.end)
            if current < business_start:
                current = business_start
            if current >= business_end:
                current = _next_midnight(current)
                continue

            available = business_end - current
            if remaining <= available:
                current += remaining
                break
            remaining -= available
            current = _next_midnight(current)

        return self._from_local(current, caller_tz)

    def calculate_sla_deadline(
        self,
        start: datetime,
        sla_hours: float,
        business_hours_only: bool = False
    ) -> datetime:
        """
        Calculate the contractual deadline of an SLA clock.

        Args:
            start: Instant the clock starts
            sla_hours: Hours allowed by the contract
            business_hours_only: Count business hours only instead of 24x7

        Returns:
            Deadline instant
        """
        if not business_hours_only:
            return start + timedelta(hours=sla_hours)
        return self.add_business_hours(start, sla_hours)

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def is_business_time(self, instant: datetime) -> bool:
        local, _ = self._to_local(instant)
        window = self._config.window_for(local.date())
        if window is None:
            return False
        return window.start <= local.time() < window.end

    def get_next_business_day(self, value: Union[date, datetime]) -> datetime:
        """Opening time of the first business day after value."""
        if not self._config.has_business_days():
            raise InvalidBusinessHoursException("Business hours schedule has no business days")

        caller_tz = None
        if isinstance(value, datetime):
            local, caller_tz = self._to_local(value)
            day = local.date()
        else:
            day = value

        day += timedelta(days=1)
        while True:
            window = self._config.window_for(day)
            if window is not None:
                return self._from_local(datetime.combine(day, window.start), caller_tz)
            day += timedelta(days=1)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def update_config(self, config: Optional[BusinessHoursConfig] = None, **changes) -> BusinessHoursConfig:
        """
        Replace the configuration, or change some of its fields.

        Raises:
            InvalidBusinessHoursException: The resulting configuration is invalid
        """
        if config is None:
            try:
                config = BusinessHoursConfig(**{**self._config.model_dump(), **changes})
            except ValidationError as e:
                raise InvalidBusinessHoursException(
                    "Invalid business hours configuration",
                    {"errors": e.errors(include_url=False)}
                ) from e

        self._config = config
        self._zone = None
        logger.info("Business hours configuration updated")
        return config

    def add_holiday(self, holiday: Union[date, str]) -> None:
        day = date.fromisoformat(holiday) if isinstance(holiday, str) else holiday
        if day in self._config.holidays:
            return
        self._config = self._config.model_copy(
            update={"holidays": tuple(sorted(self._config.holidays + (day,)))}
        )
        logger.info(f"Holiday added: {day.isoformat()}")

    def remove_holiday(self, holiday: Union[date, str]) -> None:
        day = date.fromisoformat(holiday) if isinstance(holiday, str) else holiday
        if day not in self._config.holidays:
            return
        self._config = self._config.model_copy(
            update={"holidays": tuple(d for d in self._config.holidays if d != day)}
        )
        logger.info(f"Holiday removed: {day.isoformat()}")
