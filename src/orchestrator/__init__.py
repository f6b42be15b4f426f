"""
Scan orchestration package.
"""

from .scan import ApplyStats, ScanOrchestrator
from .session import ScanSession, ScanStatus, can_transition
from .task_queue import ChunkQueue

__all__ = [
    "ApplyStats",
    "ChunkQueue",
    "ScanOrchestrator",
    "ScanSession",
    "ScanStatus",
    "can_transition",
]
