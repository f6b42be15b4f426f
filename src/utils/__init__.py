"""
Utility helpers for the media organizer.
"""

from .errors import (
    AlreadyRunning,
    BackupError,
    ConfigurationError,
    ConflictError,
    FatalError,
    InvalidModeError,
    OrganizerError,
    ParseError,
    ProviderError,
    ScanRunningError,
    StorageError,
)
from .logging_setup import setup_logging
from .resource_monitor import ResourceMonitor

__all__ = [
    "setup_logging",
    "ResourceMonitor",
    "OrganizerError",
    "ConfigurationError",
    "ProviderError",
    "ParseError",
    "ConflictError",
    "StorageError",
    "BackupError",
    "FatalError",
    "AlreadyRunning",
    "ScanRunningError",
    "InvalidModeError",
]
