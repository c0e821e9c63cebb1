"""
In-memory stand-ins for the scheduler's collaborators.
"""

import asyncio
import copy
import time
from datetime import datetime
from typing import Dict, List, Optional

from scheduler.exceptions import VendorFetchError
from scheduler.schedule_config import ScheduleConfig
from storage.config_store import ConfigStore
from storage.models import VendorConfig, VendorPriority
from vendors.base import PriceFetcher, PriceResult, VendorDirectory


def make_config(**overrides) -> ScheduleConfig:
    """Fast schedule: no spacing, no retries, short deadline, UTC."""
    values = dict(
        cron_expression="0 6 * * *",
        enabled=True,
        max_vendors_per_run=50,
        delay_between_vendors=0,
        retry_attempts=0,
        timeout=1.0,
        timezone="UTC",
    )
    values.update(overrides)
    return ScheduleConfig(**values)


def make_vendor(vendor_id: str, auto: bool = True, priority: str = "medium",
                last_update: Optional[datetime] = None) -> VendorConfig:
    return VendorConfig(
        vendor_id=vendor_id,
        vendor_name=f"Vendor {vendor_id}",
        auto_update_enabled=auto,
        priority=VendorPriority(priority),
        last_update=last_update,
    )


class MemoryConfigStore(ConfigStore):
    """Keeps documents in attributes; errors can be injected per direction."""

    def __init__(self, config=None, vendors=None):
        self.config = config
        self.vendors = vendors
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None

    def read_config(self):
        if self.read_error:
            raise self.read_error
        return copy.deepcopy(self.config)

    def write_config(self, data):
        if self.write_error:
            raise self.write_error
        self.config = copy.deepcopy(data)

    def read_vendor_configs(self):
        if self.read_error:
            raise self.read_error
        return copy.deepcopy(self.vendors)

    def write_vendor_configs(self, data):
        if self.write_error:
            raise self.write_error
        self.vendors = copy.deepcopy(data)


class StaticDirectory(VendorDirectory):
    def __init__(self, vendors: Optional[List[VendorConfig]] = None, error: Optional[Exception] = None):
        self.vendors = list(vendors or [])
        self.error = error

    async def list_vendors(self) -> List[VendorConfig]:
        if self.error:
            raise self.error
        return list(self.vendors)


class ScriptedFetcher(PriceFetcher):
    """Fetcher whose per-vendor behaviour is a list of steps, one per call.

    Steps: "ok", "fail" or "hang". Vendors without a script (or whose script
    ran out) succeed. If `gate` is set every fetch waits on it first.
    """

    def __init__(self, script: Optional[Dict[str, List[str]]] = None,
                 items: int = 5, delay: float = 0.0):
        self.script = {vendor_id: list(steps) for vendor_id, steps in (script or {}).items()}
        self.items = items
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []
        self.started_at: List[float] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def fetch(self, vendor_id: str, timeout: Optional[float] = None) -> PriceResult:
        self.calls.append(vendor_id)
        self.started_at.append(time.monotonic())
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            steps = self.script.get(vendor_id)
            step = steps.pop(0) if steps else "ok"
            if self.gate is not None:
                await self.gate.wait()
            if step == "hang":
                await asyncio.sleep(3600)
            if step == "fail":
                raise VendorFetchError(vendor_id, f"{vendor_id} is down")
            if self.delay:
                await asyncio.sleep(self.delay)
            return PriceResult(vendor_id=vendor_id, items_updated=self.items, vendor_name=f"Vendor {vendor_id}")
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True
