"""
Price Update Scheduler
Runs one batch of vendor price fetches with bounded concurrency, retry and a
per-attempt timeout, and records the outcome in a RunSession.
"""

import asyncio
import threading
import time
from typing import Iterable, List, Optional, Tuple

from storage.models import VendorConfig
from utils.logging import RunLogger, describe_exception, get_logger, performance_logger
from vendors.base import PriceFetcher, VendorDirectory

from .exceptions import AlreadyRunningError
from .retry_policy import Backoff, RetryPolicy, exponential_backoff
from .run_session import RunSession, RunStatus, SessionHistory, VendorResult
from .schedule_config import ScheduleConfig

logger = get_logger(__name__)


def select_vendors_for_run(vendors: List[VendorConfig], max_vendors: int = 0) -> List[VendorConfig]:
    """Pick the vendors an unfiltered run should update.

    Only auto-update vendors qualify. High priority goes first; within a
    priority the vendor that has waited longest (never updated counts as
    longest) goes first. `max_vendors` of 0 means no cap.
    """
    def sort_key(vendor: VendorConfig):
        last = vendor.last_update.timestamp() if vendor.last_update else float("-inf")
        return (-vendor.priority.rank, last)

    selected = sorted((v for v in vendors if v.auto_update_enabled), key=sort_key)
    if max_vendors > 0:
        selected = selected[:max_vendors]
    return selected


class PriceUpdateScheduler:
    """Executes price update runs, at most one at a time.

    All shared state (the run flag, the current session, the history and the
    live config) is guarded by one lock. Sessions handed out to callers are
    deep copies taken under that lock.
    """

    def __init__(self,
                 directory: VendorDirectory,
                 fetcher: PriceFetcher,
                 config: Optional[ScheduleConfig] = None,
                 max_concurrency: int = 3,
                 history_size: int = 10,
                 backoff: Optional[Backoff] = None):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.directory = directory
        self.fetcher = fetcher
        self.max_concurrency = max_concurrency
        self.backoff = backoff if backoff is not None else exponential_backoff()

        self._state_lock = threading.Lock()
        self._config = config or ScheduleConfig()
        self._running = False
        self._current: Optional[RunSession] = None
        self._history = SessionHistory(history_size)

    def get_config(self) -> ScheduleConfig:
        with self._state_lock:
            return self._config

    def update_config(self, config: ScheduleConfig):
        """Replace the settings used by subsequent runs. A run in progress keeps its own."""
        with self._state_lock:
            self._config = config
        logger.info(
            "Price update configuration updated",
            cron=config.cron_expression,
            enabled=config.enabled,
            max_vendors_per_run=config.max_vendors_per_run,
            retry_attempts=config.retry_attempts,
            timeout=config.timeout,
        )

    def is_price_update_running(self) -> bool:
        with self._state_lock:
            return self._running

    def get_current_session(self) -> Optional[RunSession]:
        with self._state_lock:
            return self._current.snapshot() if self._current else None

    def get_session_history(self) -> List[RunSession]:
        with self._state_lock:
            return [session.snapshot() for session in self._history.recent()]

    def get_session(self, session_id: str) -> Optional[RunSession]:
        with self._state_lock:
            session = self._history.get(session_id)
            return session.snapshot() if session else None

    async def run_price_update(self, vendor_ids: Optional[Iterable[str]] = None) -> RunSession:
        """Run a price update for the given vendors, or for all auto-update vendors.

        Args:
            vendor_ids: Explicit vendors to update. None or empty means a full
                batch of auto-update vendors, capped at max_vendors_per_run.

        Returns:
            Snapshot of the finished session. Individual vendor failures are
            recorded in it; the session is only `failed` when the run itself
            could not proceed.

        Raises:
            AlreadyRunningError: another run is in progress
        """
        requested = list(dict.fromkeys(vendor_ids)) if vendor_ids else None

        with self._state_lock:
            if self._running:
                raise AlreadyRunningError(self._current.snapshot() if self._current else None)
            self._running = True
            config = self._config
            session = RunSession.start()
            self._current = session
            self._history.push(session)

        run_log = RunLogger(session.session_id)
        run_log.info(
            "Starting price update session",
            vendor_filter=len(requested) if requested else None,
        )

        try:
            targets, unknown = await self._resolve_targets(requested, config)

            with self._state_lock:
                session.total_vendors = len(targets) + len(unknown)
                for vendor_id in unknown:
                    session.add_result(VendorResult(
                        vendor_id=vendor_id,
                        success=False,
                        attempts=0,
                        error=f"Unknown vendor: {vendor_id}",
                    ))
            if unknown:
                run_log.warning("Skipping unknown vendors", vendor_ids=unknown)
            run_log.info(f"Found {len(targets)} vendors to update")

            await self._dispatch(session, targets, config, run_log)

            with self._state_lock:
                session.finish(RunStatus.COMPLETED)
            run_log.info(
                "Price update session completed",
                successful=session.successful_vendors,
                failed=session.failed_vendors,
                items_updated=session.total_items_updated,
            )
            performance_logger.log_run_performance(
                session.session_id,
                vendors=session.processed_vendors,
                successful=session.successful_vendors,
                items_updated=session.total_items_updated,
                duration=session.duration_ms / 1000,
            )
        except asyncio.CancelledError:
            self._fail(session, "Price update cancelled")
            run_log.warning("Price update session cancelled")
            raise
        except Exception as e:
            self._fail(session, str(e) or type(e).__name__)
            run_log.error("Price update session failed", **describe_exception(e))
        finally:
            with self._state_lock:
                self._running = False

        with self._state_lock:
            return session.snapshot()

    async def _resolve_targets(self, requested: Optional[List[str]],
                               config: ScheduleConfig) -> Tuple[List[VendorConfig], List[str]]:
        """Return (vendors to fetch, requested ids the directory does not know)."""
        vendors = await self.directory.list_vendors()
        if requested is None:
            return select_vendors_for_run(vendors, config.max_vendors_per_run), []

        by_id = {vendor.vendor_id: vendor for vendor in vendors}
        targets = [by_id[vendor_id] for vendor_id in requested if vendor_id in by_id]
        unknown = [vendor_id for vendor_id in requested if vendor_id not in by_id]
        return targets, unknown

    async def _dispatch(self, session: RunSession, targets: List[VendorConfig],
                        config: ScheduleConfig, run_log: RunLogger):
        """Start one fetch per target, at most max_concurrency at a time and
        at least delay_between_vendors apart."""
        policy = RetryPolicy.from_config(config, backoff=self.backoff)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = []

        try:
            for index, vendor in enumerate(targets):
                await semaphore.acquire()
                if index > 0 and config.delay_between_vendors > 0:
                    await asyncio.sleep(config.delay_between_vendors)
                run_log.debug(f"Processing vendor {index + 1}/{len(targets)}", vendor_id=vendor.vendor_id)
                tasks.append(asyncio.create_task(
                    self._process_vendor(session, vendor, policy, semaphore, run_log)
                ))
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def _process_vendor(self, session: RunSession, vendor: VendorConfig, policy: RetryPolicy,
                              semaphore: asyncio.Semaphore, run_log: RunLogger):
        vendor_id = vendor.vendor_id
        try:
            with self._state_lock:
                session.mark_in_flight(vendor_id)

            started = time.monotonic()
            outcome = await policy.run(
                lambda: self.fetcher.fetch(vendor_id, timeout=policy.attempt_timeout)
            )
            duration_ms = int((time.monotonic() - started) * 1000)

            price = outcome.value if outcome.success else None
            result = VendorResult(
                vendor_id=vendor_id,
                vendor_name=getattr(price, "vendor_name", "") or vendor.vendor_name,
                success=outcome.success,
                attempts=outcome.attempts,
                duration_ms=duration_ms,
                error=outcome.error,
                items_updated=getattr(price, "items_updated", 0) or 0,
            )
            with self._state_lock:
                session.add_result(result)
            run_log.log_vendor_result(vendor_id, result.success, result.attempts, duration_ms, result.error)
        finally:
            semaphore.release()

    def _fail(self, session: RunSession, error: str):
        with self._state_lock:
            if session.is_running:
                session.finish(RunStatus.FAILED, error=error)
