"""
Price Update Scheduling System
Runs vendor price updates on a cron schedule or on demand, one run at a time.
"""

from .cron_manager import CronManager
from .exceptions import (
    AlreadyRunningError,
    ConfigReadError,
    ConfigWriteError,
    PriceUpdateError,
    VendorFetchError,
    VendorNotFoundError,
)
from .run_session import RunSession, RunStatus, VendorResult
from .schedule_config import ScheduleConfig

__all__ = [
    'CronManager',
    'ScheduleConfig',
    'RunSession',
    'RunStatus',
    'VendorResult',
    'PriceUpdateError',
    'AlreadyRunningError',
    'ConfigReadError',
    'ConfigWriteError',
    'VendorFetchError',
    'VendorNotFoundError',
]
