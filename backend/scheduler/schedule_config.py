"""
Schedule Configuration
Run schedule and batch settings for price updates, plus cron helpers.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Union
import pytz
from apscheduler.triggers.cron import CronTrigger
from croniter import croniter
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TIMEZONE = "Asia/Tehran"
DEFAULT_CRON_EXPRESSION = "0 6 * * *"

# Crontab weekday numbering (0 and 7 are Sunday)
WEEKDAYS = {
    'sunday': 0,
    'monday': 1,
    'tuesday': 2,
    'wednesday': 3,
    'thursday': 4,
    'friday': 5,
    'saturday': 6,
}
WEEKDAY_NAMES = {number: name for name, number in WEEKDAYS.items()}

_APS_WEEKDAYS = {0: 'sun', 1: 'mon', 2: 'tue', 3: 'wed', 4: 'thu', 5: 'fri', 6: 'sat', 7: 'sun'}
_WEEKDAY_ABBREVIATIONS = {name: number for number, name in _APS_WEEKDAYS.items() if number < 7}
_WEEKDAY_TOKEN = re.compile(r'^(\*|[0-7]|[a-z]{3})(?:-([0-7]|[a-z]{3}))?(?:/(\d+))?$')


def validate_cron_expression(cron_expr: str) -> bool:
    """Validate a standard 5-field cron expression."""
    if not isinstance(cron_expr, str) or len(cron_expr.split()) != 5:
        return False
    try:
        croniter(cron_expr)
        return True
    except (ValueError, TypeError, KeyError):
        return False


def get_next_run_time(cron_expr: str, timezone: str = DEFAULT_TIMEZONE,
                      now: Optional[datetime] = None) -> Optional[datetime]:
    """Get the next run time for a cron expression."""
    try:
        tz = pytz.timezone(timezone)
        start = now.astimezone(tz) if now else datetime.now(tz)
        cron = croniter(cron_expr, start)
        return cron.get_next(datetime)
    except Exception:
        return None


def build_cron_expression(days: List[str], hour: int, minute: int) -> str:
    """Convert a list of weekday names plus a time of day into a cron expression.

    An empty list, or all seven days, produces a daily schedule.
    """
    numbers = sorted({WEEKDAYS[day.lower()] for day in days})
    if not numbers or len(numbers) == len(WEEKDAYS):
        return f"{minute} {hour} * * *"
    return f"{minute} {hour} * * {','.join(str(n) for n in numbers)}"


def parse_cron_expression(cron_expr: str) -> Optional[Dict[str, Union[int, List[str]]]]:
    """Split a simple cron expression back into days, hour and minute.

    Only fixed-time weekly or daily expressions are understood; anything else
    returns None.
    """
    parts = cron_expr.split()
    if len(parts) != 5:
        return None
    minute, hour, day, month, weekday = parts
    if not (minute.isdigit() and hour.isdigit()) or day != '*' or month != '*':
        return None
    if int(minute) > 59 or int(hour) > 23:
        return None

    if weekday == '*':
        days = list(WEEKDAYS)
    else:
        tokens = weekday.split(',')
        if not all(token.isdigit() and int(token) <= 7 for token in tokens):
            return None
        numbers = sorted({int(token) % 7 for token in tokens})
        days = [WEEKDAY_NAMES[number] for number in numbers]

    return {'days': days, 'hour': int(hour), 'minute': int(minute)}


def get_schedule_description(cron_expr: str) -> str:
    """Get a human-readable description of a cron expression."""
    parsed = parse_cron_expression(cron_expr)
    if parsed is None:
        return f'Custom schedule: {cron_expr}'

    at = f"{parsed['hour']:02d}:{parsed['minute']:02d}"
    days = parsed['days']
    if len(days) == len(WEEKDAYS):
        return f'Every day at {at}'
    names = [day.capitalize() for day in days]
    if len(names) == 1:
        return f'Every {names[0]} at {at}'
    return f"Every {', '.join(names[:-1])} and {names[-1]} at {at}"


def to_apscheduler_weekdays(weekday_field: str) -> str:
    """Expand a crontab weekday field into explicit day names for APScheduler.

    APScheduler counts weekdays from Monday, crontab from Sunday, so numeric
    ranges and steps ("0-4", "*/2") cannot be passed through. Every range is
    expanded to a comma-separated list of names, which both agree on.

    Raises:
        ValueError: the field is not a weekday list, range or step
    """
    if weekday_field == '*':
        return '*'

    days: List[str] = []
    for token in weekday_field.lower().split(','):
        match = _WEEKDAY_TOKEN.match(token)
        if match is None:
            raise ValueError(f"Unsupported weekday field: {weekday_field!r}")
        start, end, step = match.groups()
        step_size = int(step) if step else 1
        if start == '*':
            first, last = 0, 6
        else:
            first = _weekday_number(start)
            if end:
                # "sun" closes a range as day 7, like crontab's "5-7"
                last = 7 if end == 'sun' else _weekday_number(end)
            else:
                last = 7 if step else first
        if step_size < 1 or first > last:
            raise ValueError(f"Unsupported weekday field: {weekday_field!r}")
        for number in range(first, last + 1, step_size):
            name = _APS_WEEKDAYS[number]
            if name not in days:
                days.append(name)
    return ','.join(days)


def _weekday_number(value: str) -> int:
    if value.isdigit():
        return int(value)
    if value not in _WEEKDAY_ABBREVIATIONS:
        raise ValueError(f"Unknown weekday: {value!r}")
    return _WEEKDAY_ABBREVIATIONS[value]


def build_cron_trigger(cron_expression: str, timezone: str = DEFAULT_TIMEZONE) -> CronTrigger:
    """Build an APScheduler trigger from a standard 5-field cron expression.

    Raises:
        ValueError: the expression is invalid or APScheduler cannot express it
    """
    if not validate_cron_expression(cron_expression):
        raise ValueError(f"Invalid cron expression: {cron_expression}")
    minute, hour, day, month, day_of_week = cron_expression.split()
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=to_apscheduler_weekdays(day_of_week),
        timezone=pytz.timezone(timezone),
    )


class ScheduleConfig(BaseModel):
    """When price update runs fire and how each run is throttled."""

    model_config = ConfigDict(frozen=True)

    cron_expression: str = DEFAULT_CRON_EXPRESSION
    enabled: bool = True
    max_vendors_per_run: int = Field(default=50, ge=0)  # 0 = unlimited
    delay_between_vendors: float = Field(default=5.0, ge=0)  # seconds
    retry_attempts: int = Field(default=3, ge=0)
    timeout: float = Field(default=60.0, gt=0)  # seconds, per attempt
    timezone: str = DEFAULT_TIMEZONE

    @field_validator('cron_expression')
    @classmethod
    def _check_cron(cls, value: str) -> str:
        value = ' '.join(value.split())
        if not validate_cron_expression(value):
            raise ValueError(f"Invalid cron expression: {value!r}")
        try:
            build_cron_trigger(value)
        except ValueError as e:
            raise ValueError(f"Unsupported cron expression {value!r}: {e}")
        return value

    @field_validator('timezone')
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {value!r}")
        return value

    @classmethod
    def fallback(cls, timezone: str = DEFAULT_TIMEZONE) -> "ScheduleConfig":
        """Schedule used when stored configuration cannot be read: defaults, timer off."""
        return cls(enabled=False, timezone=timezone)

    def get_next_run_time(self, now: Optional[datetime] = None) -> Optional[datetime]:
        return get_next_run_time(self.cron_expression, self.timezone, now=now)

    def describe(self) -> str:
        return get_schedule_description(self.cron_expression)

    def schedule_window(self) -> Optional[Dict[str, Union[int, List[str]]]]:
        """Days/hour/minute view of the cron expression, if it is that simple."""
        return parse_cron_expression(self.cron_expression)

    def same_trigger(self, other: "ScheduleConfig") -> bool:
        return (self.cron_expression == other.cron_expression
                and self.timezone == other.timezone)
