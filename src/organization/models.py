"""
Decision value type and scan mode constants.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

ACTION_ASSIGN = "assign"
ACTION_CREATE = "create"
ACTION_SKIP = "skip"
ACTIONS = (ACTION_ASSIGN, ACTION_CREATE, ACTION_SKIP)

MODE_ORGANIZE_UNASSIGNED = "organize_unassigned"
MODE_REANALYZE_ALL = "reanalyze_all"
MODE_REORGANIZE_ALL = "reorganize_all"
SCAN_MODES = (MODE_ORGANIZE_UNASSIGNED, MODE_REANALYZE_ALL, MODE_REORGANIZE_ALL)


@dataclass(frozen=True)
class Decision:
    """Normalized classification for one media item.

    Produced by the response normalizer or the type router and never mutated
    afterwards; the resolver returns a new instance when it remaps.
    """

    action: str
    folder_id: Optional[int] = None
    folder_path: Optional[str] = None
    new_folder_path: Optional[str] = None
    confidence: float = 0.0
    reason: str = ""

    def __post_init__(self) -> None:
        if self.action not in ACTIONS:
            raise ValueError(f"Unknown decision action: {self.action!r}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence out of range: {self.confidence}")
        if self.action == ACTION_ASSIGN and self.folder_id is None:
            raise ValueError("assign decision requires folder_id")
        if self.action == ACTION_CREATE and not (self.new_folder_path or "").strip():
            raise ValueError("create decision requires new_folder_path")
        if self.action == ACTION_SKIP and not self.reason.strip():
            raise ValueError("skip decision requires a reason")

    @classmethod
    def skip(cls, reason: str, confidence: float = 0.0) -> "Decision":
        return cls(action=ACTION_SKIP, confidence=confidence, reason=reason or "skipped")

    @property
    def target_path(self) -> Optional[str]:
        if self.action == ACTION_CREATE:
            return self.new_folder_path
        return self.folder_path

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Decision":
        return cls(
            action=data["action"],
            folder_id=data.get("folder_id"),
            folder_path=data.get("folder_path"),
            new_folder_path=data.get("new_folder_path"),
            confidence=float(data.get("confidence") or 0.0),
            reason=data.get("reason") or "",
        )
