"""
Logging configuration and utilities
"""

import logging
import logging.config
from typing import Any, Dict, Optional
import structlog

from config.settings import settings


def setup_logging():
    """Set up application logging configuration."""

    # Configure standard library logging
    logging_config = settings.get_log_config()
    logging.config.dictConfig(logging_config)

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if settings.is_development()
            else structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class RunLogger:
    """Logger bound to a single price update run."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.logger = get_logger("price_update.run")

    def info(self, message: str, **kwargs):
        """Log info message with run context."""
        self.logger.info(message, session_id=self.session_id, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with run context."""
        self.logger.warning(message, session_id=self.session_id, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with run context."""
        self.logger.error(message, session_id=self.session_id, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message with run context."""
        self.logger.debug(message, session_id=self.session_id, **kwargs)

    def log_vendor_result(self, vendor_id: str, success: bool, attempts: int,
                          duration_ms: int, error: Optional[str] = None):
        """Log the final outcome of one vendor."""
        if success:
            self.logger.info(
                "Vendor prices updated",
                session_id=self.session_id,
                vendor_id=vendor_id,
                attempts=attempts,
                duration_ms=duration_ms,
            )
        else:
            self.logger.warning(
                "Vendor price update failed",
                session_id=self.session_id,
                vendor_id=vendor_id,
                attempts=attempts,
                duration_ms=duration_ms,
                error=error,
            )


class PerformanceLogger:
    """Logger for performance monitoring."""

    def __init__(self):
        self.logger = get_logger("performance")

    def log_run_performance(self, session_id: str, vendors: int, successful: int,
                            items_updated: int, duration: float):
        """Log throughput of a finished price update run."""
        rate = vendors / duration if duration > 0 else 0

        self.logger.info(
            "Price update performance",
            session_id=session_id,
            vendors=vendors,
            items_updated=items_updated,
            duration_seconds=round(duration, 2),
            vendors_per_minute=round(rate * 60, 2),
            success_rate=round(successful / vendors * 100, 2) if vendors > 0 else 0
        )

    def log_request_time(self, endpoint: str, method: str, duration: float, status_code: int):
        """Log API request performance."""
        self.logger.info(
            "API request completed",
            endpoint=endpoint,
            method=method,
            duration_ms=round(duration * 1000, 2),
            status_code=status_code
        )


def describe_exception(exc: BaseException) -> Dict[str, Any]:
    """Flatten an exception into log-friendly fields."""
    return {"error_type": type(exc).__name__, "error": str(exc) or repr(exc)}


# Create global logger instances
app_logger = get_logger("app")
performance_logger = PerformanceLogger()
