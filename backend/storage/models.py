"""
Storage Models
Pydantic models for the persisted price update and vendor configuration
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scheduler.schedule_config import (
    DEFAULT_TIMEZONE,
    WEEKDAYS,
    ScheduleConfig,
    build_cron_expression,
    parse_cron_expression,
    validate_cron_expression,
)


class VendorPriority(str, Enum):
    """Vendor priority enumeration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class UpdateFrequency(str, Enum):
    """Vendor update frequency enumeration."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class VendorConfig(BaseModel):
    """Per-vendor auto-update settings."""
    model_config = ConfigDict(extra="forbid")

    vendor_id: str = Field(..., min_length=1)
    vendor_name: str = ""
    auto_update_enabled: bool = False
    last_update: Optional[datetime] = None
    update_frequency: UpdateFrequency = UpdateFrequency.DAILY
    priority: VendorPriority = VendorPriority.MEDIUM


class ScheduleWindow(BaseModel):
    """Days of the week plus a time of day."""
    model_config = ConfigDict(extra="forbid")

    days: List[str] = Field(default_factory=list)
    hour: int = Field(default=6, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    @field_validator("days")
    @classmethod
    def _check_days(cls, value: List[str]) -> List[str]:
        days = [day.lower() for day in value]
        unknown = [day for day in days if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return days


class BatchSettings(BaseModel):
    """Batch limits as stored on disk; durations are milliseconds."""
    model_config = ConfigDict(extra="forbid")

    max_vendors_per_run: int = Field(default=50, ge=0)
    delay_between_vendors: int = Field(default=5000, ge=0)
    retry_attempts: int = Field(default=3, ge=0)
    timeout: int = Field(default=60000, gt=0)


class PriceUpdateConfigRecord(BaseModel):
    """The stored price update configuration document."""
    model_config = ConfigDict(extra="forbid")

    global_enabled: bool = False
    schedule: ScheduleWindow = Field(default_factory=ScheduleWindow)
    cron_expression: Optional[str] = None
    timezone: str = DEFAULT_TIMEZONE
    batch_settings: BatchSettings = Field(default_factory=BatchSettings)
    active_vendors: List[str] = Field(default_factory=list)
    last_config_update: Optional[datetime] = None

    @field_validator("cron_expression")
    @classmethod
    def _check_cron(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not validate_cron_expression(value):
            raise ValueError(f"Invalid cron expression: {value!r}")
        return value

    def to_schedule_config(self) -> ScheduleConfig:
        cron_expression = self.cron_expression or build_cron_expression(
            self.schedule.days, self.schedule.hour, self.schedule.minute
        )
        return ScheduleConfig(
            cron_expression=cron_expression,
            enabled=self.global_enabled,
            max_vendors_per_run=self.batch_settings.max_vendors_per_run,
            delay_between_vendors=self.batch_settings.delay_between_vendors / 1000,
            retry_attempts=self.batch_settings.retry_attempts,
            timeout=self.batch_settings.timeout / 1000,
            timezone=self.timezone,
        )

    def merge_schedule_config(self, config: ScheduleConfig) -> "PriceUpdateConfigRecord":
        """Copy of this record carrying the values of `config`.

        Simple weekly/daily expressions are also written back as a
        days/hour/minute window; other expressions keep the old window and
        rely on `cron_expression`.
        """
        window = parse_cron_expression(config.cron_expression)
        schedule = ScheduleWindow(**window) if window else self.schedule
        return self.model_copy(update={
            "global_enabled": config.enabled,
            "schedule": schedule,
            "cron_expression": config.cron_expression,
            "timezone": config.timezone,
            "batch_settings": BatchSettings(
                max_vendors_per_run=config.max_vendors_per_run,
                delay_between_vendors=int(round(config.delay_between_vendors * 1000)),
                retry_attempts=config.retry_attempts,
                timeout=max(1, int(round(config.timeout * 1000))),
            ),
        })
