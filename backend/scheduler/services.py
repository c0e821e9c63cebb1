"""
Price update services
Builds the process-wide scheduler objects once and owns their startup and
teardown. The FastAPI app keeps the container on `app.state.price_update`;
the standalone runner keeps it in a local.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings
from storage.config_manager import ConfigManager
from storage.config_store import ConfigStore, create_config_store
from utils.logging import describe_exception, get_logger
from vendors.base import PriceFetcher, VendorDirectory
from vendors.directory import ConfigVendorDirectory
from vendors.http_fetcher import HttpPriceFetcher

from .cron_manager import CronManager
from .price_update_scheduler import PriceUpdateScheduler
from .retry_policy import Backoff, exponential_backoff
from .schedule_config import ScheduleConfig
from .scheduler_manager import SchedulerManager

logger = get_logger(__name__)


@dataclass
class PriceUpdateServices:
    """The single set of price update objects of a process."""
    settings: Settings
    config_manager: ConfigManager
    directory: VendorDirectory
    fetcher: PriceFetcher
    scheduler: PriceUpdateScheduler
    manager: SchedulerManager

    async def start(self) -> bool:
        """Initialize the scheduler manager, retrying a few times.

        Never raises: a scheduler that fails to start must not take the
        application down with it. Returns whether initialization succeeded.
        """
        attempts = self.settings.SCHEDULER_INIT_ATTEMPTS
        for attempt in range(1, attempts + 1):
            try:
                logger.info(f"Initializing price update scheduler (attempt {attempt}/{attempts})")
                await self.manager.initialize()
                status = self.manager.get_status()
                if not status["scheduler_running"]:
                    logger.warning("Scheduler initialized but timer not running, this is normal if disabled")
                return True
            except Exception as e:
                logger.error("Failed to initialize price update scheduler", attempt=attempt, **describe_exception(e))
                if attempt < attempts:
                    await asyncio.sleep(self.settings.SCHEDULER_INIT_RETRY_DELAY)

        logger.error("Max initialization attempts reached, scheduler will not start automatically")
        return False

    async def stop(self):
        """Stop the timer, let an in-flight run finish, then release the fetcher."""
        try:
            await self.manager.shutdown()
            await self._wait_for_run(self.settings.SCHEDULER_SHUTDOWN_TIMEOUT)
        finally:
            await self.fetcher.close()

    async def _wait_for_run(self, timeout: float) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.scheduler.is_price_update_running():
            if loop.time() >= deadline:
                session = self.scheduler.get_current_session()
                logger.warning(
                    "Price update still running at shutdown, closing fetcher anyway",
                    session_id=session.session_id if session else None,
                    waited_seconds=timeout,
                )
                return False
            await asyncio.sleep(0.1)
        return True

    async def restart(self) -> bool:
        """Shut everything down and initialize again."""
        await self.manager.shutdown()
        return await self.start()


def build_services(settings: Settings,
                   store: Optional[ConfigStore] = None,
                   fetcher: Optional[PriceFetcher] = None,
                   directory: Optional[VendorDirectory] = None,
                   backoff: Optional[Backoff] = None) -> PriceUpdateServices:
    """Wire up the price update objects from settings.

    Collaborators can be injected, which is how tests swap in fakes.
    """
    config_manager = ConfigManager(store or create_config_store(settings))
    directory = directory or ConfigVendorDirectory(config_manager)
    fetcher = fetcher or HttpPriceFetcher(
        settings.AUTOMATION_SERVICE_URL,
        api_key=settings.AUTOMATION_API_KEY,
        request_timeout=settings.AUTOMATION_REQUEST_TIMEOUT,
        max_connections=settings.PRICE_UPDATE_CONCURRENCY,
    )
    if backoff is None:
        backoff = exponential_backoff(settings.RETRY_BACKOFF_BASE, max_delay=settings.RETRY_BACKOFF_MAX)

    scheduler = PriceUpdateScheduler(
        directory,
        fetcher,
        # Until a stored config is loaded the timer stays off
        config=ScheduleConfig.fallback(settings.SCHEDULER_TIMEZONE),
        max_concurrency=settings.PRICE_UPDATE_CONCURRENCY,
        history_size=settings.SESSION_HISTORY_SIZE,
        backoff=backoff,
    )
    manager = SchedulerManager(scheduler, config_manager, CronManager(settings.SCHEDULER_TIMEZONE))

    return PriceUpdateServices(
        settings=settings,
        config_manager=config_manager,
        directory=directory,
        fetcher=fetcher,
        scheduler=scheduler,
        manager=manager,
    )
