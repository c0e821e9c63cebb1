import pytest

from scheduler.cron_manager import CronManager
from scheduler.price_update_scheduler import PriceUpdateScheduler
from scheduler.retry_policy import no_backoff
from scheduler.schedule_config import ScheduleConfig
from scheduler.scheduler_manager import SchedulerManager
from storage.config_manager import ConfigManager

from tests.fakes import MemoryConfigStore, ScriptedFetcher, StaticDirectory, make_vendor


@pytest.fixture
def store():
    return MemoryConfigStore()


@pytest.fixture
def config_manager(store):
    return ConfigManager(store)


@pytest.fixture
def vendors():
    return [make_vendor("a"), make_vendor("b"), make_vendor("c")]


@pytest.fixture
def directory(vendors):
    return StaticDirectory(vendors)


@pytest.fixture
def fetcher():
    return ScriptedFetcher()


@pytest.fixture
def scheduler(directory, fetcher):
    return PriceUpdateScheduler(
        directory,
        fetcher,
        config=ScheduleConfig.fallback("UTC"),
        max_concurrency=3,
        backoff=no_backoff,
    )


@pytest.fixture
def manager(scheduler, config_manager):
    return SchedulerManager(scheduler, config_manager, CronManager("UTC"))
