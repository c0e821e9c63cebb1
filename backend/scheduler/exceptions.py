"""
Price update errors.
Only scheduler-level violations and config I/O failures are raised to callers;
per-vendor failures end up as data in the run session.
"""

from typing import Optional


class PriceUpdateError(Exception):
    """Base class for price update errors."""


class AlreadyRunningError(PriceUpdateError):
    """A run was requested while another one is active."""

    def __init__(self, session=None):
        self.session = session
        session_id = getattr(session, "session_id", None)
        message = "Price update is already running"
        if session_id:
            message = f"{message} (session {session_id})"
        super().__init__(message)


class VendorFetchError(PriceUpdateError):
    """Fetching prices for a single vendor failed."""

    def __init__(self, vendor_id: str, message: str, status: Optional[int] = None):
        self.vendor_id = vendor_id
        self.status = status
        super().__init__(message)


class ConfigReadError(PriceUpdateError):
    """Stored configuration is missing its backing store or is corrupt."""


class ConfigWriteError(PriceUpdateError):
    """Configuration could not be persisted."""


class VendorNotFoundError(PriceUpdateError, KeyError):
    """Operation referenced a vendor id that is not configured."""

    def __init__(self, vendor_id: str):
        self.vendor_id = vendor_id
        super().__init__(vendor_id)

    def __str__(self) -> str:
        return f"Vendor {self.vendor_id} not found"


class SessionClosedError(PriceUpdateError):
    """A finished run session was mutated."""
