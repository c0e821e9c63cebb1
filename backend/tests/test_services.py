import asyncio

import pytest

from config.settings import Settings
from scheduler.retry_policy import no_backoff
from scheduler.scheduler_manager import ManagerState
from scheduler.services import build_services
from storage.config_manager import ConfigManager
from vendors.directory import ConfigVendorDirectory
from vendors.http_fetcher import HttpPriceFetcher

from tests.fakes import MemoryConfigStore, ScriptedFetcher, make_config


def make_services(store=None, fetcher=None, **settings):
    settings.setdefault("SCHEDULER_TIMEZONE", "UTC")
    return build_services(
        Settings(**settings),
        store=store or MemoryConfigStore(),
        fetcher=fetcher or ScriptedFetcher(),
        backoff=no_backoff,
    )


def test_default_collaborators(tmp_path):
    services = build_services(Settings(CONFIG_DIR=str(tmp_path), AUTOMATION_SERVICE_URL="http://automation:3000/"))
    assert isinstance(services.fetcher, HttpPriceFetcher)
    assert services.fetcher.base_url == "http://automation:3000"
    assert isinstance(services.directory, ConfigVendorDirectory)
    assert services.scheduler.get_config().enabled is False
    assert services.manager.scheduler is services.scheduler


@pytest.mark.asyncio
async def test_start_and_stop():
    store = MemoryConfigStore()
    ConfigManager(store).save_config(make_config())
    fetcher = ScriptedFetcher()
    services = make_services(store=store, fetcher=fetcher)

    assert await services.start() is True
    assert services.manager.state is ManagerState.RUNNING

    await services.stop()
    assert services.manager.state is ManagerState.SHUTDOWN
    assert fetcher.closed


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_run():
    store = MemoryConfigStore()
    ConfigManager(store).save_config(make_config())
    fetcher = ScriptedFetcher()
    fetcher.gate = asyncio.Event()
    services = make_services(store=store, fetcher=fetcher)
    services.config_manager.sync_vendors({"a": "Alpha"})
    services.config_manager.update_vendor_auto_update("a", True)
    await services.start()

    run = asyncio.create_task(services.manager.trigger_manual_run())
    while not fetcher.calls:
        await asyncio.sleep(0.005)
    stopping = asyncio.create_task(services.stop())
    await asyncio.sleep(0.2)

    assert not stopping.done()
    assert not fetcher.closed

    fetcher.gate.set()
    session = await run
    await stopping
    assert session.successful_vendors == 1
    assert fetcher.closed


@pytest.mark.asyncio
async def test_stop_gives_up_waiting_after_timeout():
    fetcher = ScriptedFetcher()
    fetcher.gate = asyncio.Event()
    services = make_services(fetcher=fetcher, SCHEDULER_SHUTDOWN_TIMEOUT=0.05)
    services.config_manager.sync_vendors({"a": "Alpha"})
    services.scheduler.update_config(make_config())

    run = asyncio.create_task(services.scheduler.run_price_update(["a"]))
    while not services.scheduler.is_price_update_running():
        await asyncio.sleep(0.005)
    await services.stop()

    assert fetcher.closed
    assert services.scheduler.is_price_update_running()
    fetcher.gate.set()
    await run


@pytest.mark.asyncio
async def test_restart():
    store = MemoryConfigStore()
    ConfigManager(store).save_config(make_config())
    services = make_services(store=store)
    try:
        await services.start()
        assert await services.restart() is True
        assert services.manager.is_scheduler_running()
    finally:
        await services.stop()


@pytest.mark.asyncio
async def test_start_gives_up_after_attempts(monkeypatch):
    services = make_services(SCHEDULER_INIT_ATTEMPTS=2, SCHEDULER_INIT_RETRY_DELAY=0)
    calls = []

    async def failing_initialize():
        calls.append(1)
        raise RuntimeError("boom")

    monkeypatch.setattr(services.manager, "initialize", failing_initialize)

    assert await services.start() is False
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_vendors_come_from_stored_config():
    services = make_services()
    services.config_manager.sync_vendors({"a": "Alpha", "b": "Beta"})
    services.config_manager.update_vendor_auto_update("b", True)
    services.scheduler.update_config(make_config())

    session = await services.manager.trigger_manual_run()

    assert [result.vendor_id for result in session.results] == ["b"]
    assert services.config_manager.get_vendor_config("b").last_update is not None
