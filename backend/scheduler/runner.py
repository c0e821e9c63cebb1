"""
Standalone Scheduler Runner
Runs the price update timer without the HTTP API:

    python -m scheduler.runner
"""

import asyncio
import signal
import sys

from config.settings import settings
from utils.logging import setup_logging, get_logger

from .services import build_services

logger = get_logger(__name__)


async def run_until_signalled(services) -> None:
    """Start the services and block until SIGINT/SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler, sig)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(stop_event.set))

    started = await services.start()
    if not started:
        logger.error("Price update scheduler failed to start")
        await services.stop()
        return

    logger.info("Price update scheduler running", status=services.manager.get_status()["state"])
    try:
        await stop_event.wait()
    finally:
        await services.stop()
        logger.info("Scheduler stopped")


async def main():
    """Main entry point for the runner"""
    setup_logging()
    logger.info("Price update scheduler starting...")

    services = build_services(settings)
    await run_until_signalled(services)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)
