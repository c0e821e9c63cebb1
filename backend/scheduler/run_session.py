"""
Run Session
Lifecycle record of one price update run and its per-vendor outcomes.
"""

import copy
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from .exceptions import SessionClosedError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


@dataclass
class VendorResult:
    """Outcome of fetching prices for one vendor"""
    vendor_id: str
    success: bool
    attempts: int
    duration_ms: int = 0
    error: Optional[str] = None
    vendor_name: str = ""
    items_updated: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "success": self.success,
            "error": self.error,
            "attempts": self.attempts,
            "duration_ms": self.duration_ms,
            "items_updated": self.items_updated,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class RunSession:
    """One price update run.

    `processed_vendors` is derived from `results`, so the two can never
    disagree. Once the status is terminal the session is frozen.
    """
    session_id: str
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    status: RunStatus = RunStatus.RUNNING
    total_vendors: int = 0
    results: List[VendorResult] = field(default_factory=list)
    in_flight: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def start(cls) -> "RunSession":
        session_id = f"price_update_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"
        return cls(session_id=session_id)

    @property
    def processed_vendors(self) -> int:
        return len(self.results)

    @property
    def successful_vendors(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed_vendors(self) -> int:
        return self.processed_vendors - self.successful_vendors

    @property
    def total_items_updated(self) -> int:
        return sum(result.items_updated for result in self.results)

    @property
    def duration_ms(self) -> int:
        end = self.finished_at or utcnow()
        return int((end - self.started_at).total_seconds() * 1000)

    @property
    def is_running(self) -> bool:
        return self.status is RunStatus.RUNNING

    def mark_in_flight(self, vendor_id: str):
        self._ensure_open()
        self.in_flight.append(vendor_id)

    def add_result(self, result: VendorResult):
        self._ensure_open()
        if result.vendor_id in self.in_flight:
            self.in_flight.remove(result.vendor_id)
        self.results.append(result)

    def finish(self, status: RunStatus, error: Optional[str] = None):
        if not status.is_terminal:
            raise ValueError(f"Cannot finish a session with status {status.value}")
        self._ensure_open()
        self.status = status
        self.error = error
        self.finished_at = utcnow()
        self.in_flight = []

    def snapshot(self) -> "RunSession":
        return copy.deepcopy(self)

    def _ensure_open(self):
        if self.status.is_terminal:
            raise SessionClosedError(f"Session {self.session_id} is already {self.status.value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
            "total_vendors": self.total_vendors,
            "processed_vendors": self.processed_vendors,
            "successful_vendors": self.successful_vendors,
            "failed_vendors": self.failed_vendors,
            "total_items_updated": self.total_items_updated,
            "in_flight": list(self.in_flight),
            "error": self.error,
            "results": [result.to_dict() for result in self.results],
        }


class SessionHistory:
    """Recent sessions, newest first. Not thread-safe on its own; the
    scheduler guards it with its state lock."""

    def __init__(self, max_size: int = 10):
        self._sessions: Deque[RunSession] = deque(maxlen=max_size)

    def push(self, session: RunSession):
        self._sessions.appendleft(session)

    def latest(self) -> Optional[RunSession]:
        return self._sessions[0] if self._sessions else None

    def get(self, session_id: str) -> Optional[RunSession]:
        for session in self._sessions:
            if session.session_id == session_id:
                return session
        return None

    def recent(self) -> List[RunSession]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)
