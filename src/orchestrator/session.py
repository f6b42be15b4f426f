"""
Scan session record and its status lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional


class ScanStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = {ScanStatus.COMPLETED, ScanStatus.CANCELLED, ScanStatus.FAILED}

_ALLOWED_TRANSITIONS: dict[ScanStatus, set[ScanStatus]] = {
    ScanStatus.IDLE: {ScanStatus.RUNNING},
    ScanStatus.RUNNING: {ScanStatus.COMPLETED, ScanStatus.CANCELLED, ScanStatus.FAILED},
    ScanStatus.COMPLETED: {ScanStatus.IDLE, ScanStatus.RUNNING},
    ScanStatus.CANCELLED: {ScanStatus.IDLE, ScanStatus.RUNNING},
    ScanStatus.FAILED: {ScanStatus.IDLE, ScanStatus.RUNNING},
}


def can_transition(current: ScanStatus, target: ScanStatus) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, set())


@dataclass
class ScanSession:
    """Singleton scan state persisted as one named record.

    ``chunks_done`` holds the indices of chunks already committed for
    ``scan_id`` so a replayed chunk is ignored.
    """

    status: ScanStatus = ScanStatus.IDLE
    mode: Optional[str] = None
    dry_run: bool = False
    total: int = 0
    processed: int = 0
    applied: int = 0
    failed: int = 0
    results: list[dict[str, Any]] = field(default_factory=list)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    updated_at: Optional[str] = None
    error: Optional[str] = None
    scan_id: str = ""
    chunk_count: int = 0
    chunks_done: list[int] = field(default_factory=list)

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        ratio = Decimal(self.processed * 100) / Decimal(self.total)
        return min(100, max(0, int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))))

    @property
    def is_running(self) -> bool:
        return self.status == ScanStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        data = {item.name: getattr(self, item.name) for item in fields(self)}
        data["status"] = self.status.value
        data["results"] = list(self.results)
        data["chunks_done"] = list(self.chunks_done)
        data["percentage"] = self.percentage
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ScanSession":
        if not data:
            return cls()
        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        try:
            values["status"] = ScanStatus(values.get("status", ScanStatus.IDLE.value))
        except ValueError:
            values["status"] = ScanStatus.IDLE
        return cls(**values)
