"""
Scheduler Manager
Owns the recurring price update timer and exposes lifecycle controls.
"""

import threading
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from utils.logging import describe_exception, get_logger

from .cron_manager import CronManager
from .exceptions import AlreadyRunningError, ConfigReadError
from .price_update_scheduler import PriceUpdateScheduler
from .run_session import RunSession
from .schedule_config import ScheduleConfig

logger = get_logger(__name__)


class ManagerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"  # timer never started (schedule disabled)
    RUNNING = "running"
    STOPPED = "stopped"
    SHUTDOWN = "shutdown"


class SchedulerManager:
    """Lifecycle wrapper around PriceUpdateScheduler.

    States: uninitialized -> initialized -> running <-> stopped -> shutdown,
    and initialize() may be called again after shutdown.
    """

    JOB_ID = "price_update"

    def __init__(self, scheduler: PriceUpdateScheduler, config_manager, cron_manager: Optional[CronManager] = None):
        self.scheduler = scheduler
        self.config_manager = config_manager
        self.cron_manager = cron_manager or CronManager(scheduler.get_config().timezone)
        self._state = ManagerState.UNINITIALIZED
        self._lock = threading.RLock()

    @property
    def state(self) -> ManagerState:
        return self._state

    def is_initialized(self) -> bool:
        return self._state in (ManagerState.INITIALIZED, ManagerState.RUNNING, ManagerState.STOPPED)

    def is_scheduler_running(self) -> bool:
        return self._state is ManagerState.RUNNING and self.cron_manager.has_job(self.JOB_ID)

    async def initialize(self):
        """Load the stored schedule and arm the timer if it is enabled.

        Calling it again once initialized is a no-op. If the stored config
        cannot be read the last known good config is used instead.
        """
        with self._lock:
            if self.is_initialized():
                logger.info("Scheduler manager is already initialized")
                return

            logger.info("Initializing price update scheduler...")
            try:
                config = self.config_manager.load_config()
                self.scheduler.update_config(config)
            except ConfigReadError as e:
                config = self.scheduler.get_config()
                logger.error(
                    "Failed to load price update config, using last known good",
                    cron=config.cron_expression,
                    enabled=config.enabled,
                    **describe_exception(e),
                )

            self.cron_manager.start()
            self._state = ManagerState.INITIALIZED
            if config.enabled:
                self.start_scheduler()
            else:
                logger.info("Price update schedule is disabled, timer not started")
            logger.info("Price update scheduler initialized", state=self._state.value)

    def start_scheduler(self) -> bool:
        """Arm the timer. Refuses when not initialized or when the schedule is disabled."""
        with self._lock:
            if not self.is_initialized():
                logger.warning("Cannot start timer: scheduler manager is not initialized")
                return False

            config = self.scheduler.get_config()
            if not config.enabled:
                logger.warning("Price update schedule is disabled, timer not started")
                return False

            if self.is_scheduler_running():
                logger.info("Price update timer is already running")
                return True

            if not self.cron_manager.is_running():
                self.cron_manager.start()
            if not self.cron_manager.add_job(
                self.JOB_ID,
                self._on_tick,
                config.cron_expression,
                timezone=config.timezone,
                max_instances=1,
            ):
                return False

            self._state = ManagerState.RUNNING
            logger.info(
                "Price update timer started",
                cron=config.cron_expression,
                description=config.describe(),
            )
            return True

    def stop_scheduler(self) -> bool:
        """Disarm the timer without touching manager state or a run in progress."""
        with self._lock:
            if self._state is not ManagerState.RUNNING:
                return False
            self.cron_manager.remove_job(self.JOB_ID)
            self._state = ManagerState.STOPPED
            logger.info("Price update timer stopped")
            return True

    def update_config(self, config: ScheduleConfig):
        """Persist a new schedule and apply it to the live timer.

        Raises:
            ConfigWriteError: the config could not be saved; nothing is applied
        """
        self.config_manager.save_config(config)
        self._apply_config(config)

    def reload_config(self) -> ScheduleConfig:
        """Re-read the stored schedule and apply it.

        Raises:
            ConfigReadError: the stored config is unreadable; the live config is kept
        """
        config = self.config_manager.load_config()
        self._apply_config(config)
        logger.info("Price update configuration reloaded")
        return config

    def _apply_config(self, config: ScheduleConfig):
        with self._lock:
            previous = self.scheduler.get_config()
            self.scheduler.update_config(config)

            if not self.is_initialized():
                return

            if self._state is ManagerState.RUNNING:
                if not config.enabled:
                    self.cron_manager.remove_job(self.JOB_ID)
                    self._state = ManagerState.STOPPED
                    logger.info("Price update schedule disabled, timer stopped")
                elif not config.same_trigger(previous):
                    if not self.cron_manager.reschedule_job(self.JOB_ID, config.cron_expression, config.timezone):
                        logger.error("Failed to reschedule price update timer", cron=config.cron_expression)
            elif config.enabled and not previous.enabled:
                self.start_scheduler()

    async def trigger_manual_run(self, vendor_ids: Optional[Iterable[str]] = None) -> RunSession:
        """Run a price update now and record last-update times for successful vendors.

        Raises:
            AlreadyRunningError: a run is already in progress
        """
        session = await self.scheduler.run_price_update(vendor_ids)
        self._record_last_updates(session)
        return session

    async def _on_tick(self):
        """Timer callback. Never raises, so the timer stays armed."""
        if self.scheduler.is_price_update_running():
            current = self.scheduler.get_current_session()
            logger.warning(
                "Scheduled price update skipped, previous run still in progress",
                session_id=current.session_id if current else None,
            )
            return

        logger.info("Scheduled price update triggered")
        try:
            session = await self.scheduler.run_price_update()
            self._record_last_updates(session)
        except AlreadyRunningError:
            logger.warning("Scheduled price update skipped, previous run still in progress")
        except Exception as e:
            logger.error("Scheduled price update crashed", **describe_exception(e))

    def _record_last_updates(self, session: RunSession):
        for result in session.results:
            if not result.success:
                continue
            try:
                self.config_manager.update_vendor_last_update(result.vendor_id, when=result.timestamp)
            except Exception as e:
                logger.error(
                    "Failed to record vendor last update",
                    vendor_id=result.vendor_id,
                    **describe_exception(e),
                )

    async def shutdown(self):
        """Stop the timer and release the cron scheduler."""
        with self._lock:
            if self._state in (ManagerState.UNINITIALIZED, ManagerState.SHUTDOWN):
                return
            logger.info("Shutting down price update scheduler...")
            self.cron_manager.remove_job(self.JOB_ID)
            self.cron_manager.stop()
            self._state = ManagerState.SHUTDOWN
            logger.info("Price update scheduler shutdown completed")

    def get_status(self) -> Dict[str, Any]:
        """Current manager and run state. Pure read."""
        config = self.scheduler.get_config()
        session = self.scheduler.get_current_session()
        next_run = self.cron_manager.get_next_run_time(self.JOB_ID)
        return {
            "state": self._state.value,
            "initialized": self.is_initialized(),
            "scheduler_running": self.is_scheduler_running(),
            "price_update_running": self.scheduler.is_price_update_running(),
            "next_run_time": next_run.isoformat() if next_run else None,
            "config": config.model_dump(),
            "current_session": session.to_dict() if session else None,
        }
