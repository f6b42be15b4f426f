"""
Error taxonomy for scan orchestration and the decision pipeline.
"""

from __future__ import annotations

from typing import Optional


class OrganizerError(Exception):
    """Base class for all media organizer errors."""


class ConfigurationError(OrganizerError):
    """Provider or component is not configured; raised before a scan starts."""


class ProviderError(OrganizerError):
    """Transport, authentication or timeout failure talking to an AI provider."""

    def __init__(self, message: str, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider = provider


class ParseError(OrganizerError):
    """A provider reply could not be turned into a decision."""


class ConflictError(OrganizerError):
    """A proposed folder path inverts a chain that already exists."""

    def __init__(self, proposed_path: str, existing_path: str, existing_id: int) -> None:
        super().__init__(f"{proposed_path} inverts existing folder {existing_path}")
        self.proposed_path = proposed_path
        self.existing_path = existing_path
        self.existing_id = existing_id


class StorageError(OrganizerError):
    """A folder store write failed."""


class BackupError(StorageError):
    """Backup snapshot is missing or could not be written."""


class FatalError(OrganizerError):
    """Session-level infrastructure failure; the scan moves to failed."""


class AlreadyRunning(OrganizerError):
    """A scan is already running for this install."""


class ScanRunningError(OrganizerError):
    """Operation is not allowed while a scan is running."""


class InvalidModeError(OrganizerError, ValueError):
    """Unknown scan mode."""
