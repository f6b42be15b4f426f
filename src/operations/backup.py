"""
Folder and assignment snapshots taken around destructive reorganization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from database import LibraryStore, StateStore
from utils.errors import BackupError, FatalError, StorageError

BACKUP_RECORD = "backup_snapshot"


@dataclass
class RestoreStats:
    """Summary of a backup restore."""

    folders_restored: int
    assignments_restored: int
    assignment_errors: int = 0


@dataclass(frozen=True)
class BackupInfo:
    """Read-only description of the stored snapshot."""

    exists: bool
    timestamp: Optional[str] = None
    folder_count: int = 0
    assignment_count: int = 0
    age_seconds: Optional[float] = None


class BackupManager:
    """Export, restore and discard the singleton folder snapshot."""

    def __init__(
        self,
        library: LibraryStore,
        state: StateStore,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.library = library
        self.state = state
        self.logger = logger or logging.getLogger("media_organizer")

    def export(self) -> dict[str, Any]:
        """Write the full tree and its assignments, replacing any earlier snapshot."""
        try:
            folders = self.library.get_folder_tree()
            assignments = {}
            for folder in folders:
                items = self.library.get_assignments(folder.id)
                if items:
                    assignments[str(folder.id)] = items
            snapshot = {
                "folders": [
                    {
                        "id": folder.id,
                        "name": folder.name,
                        "slug": folder.slug,
                        "description": folder.description,
                        "parent": folder.parent,
                        "sort_order": folder.sort_order,
                    }
                    for folder in folders
                ],
                "assignments": assignments,
                "timestamp": datetime.utcnow().isoformat(),
            }
            self.state.put_record(BACKUP_RECORD, snapshot)
        except (StorageError, FatalError) as exc:
            raise BackupError(f"Backup export failed: {exc}") from exc
        self.logger.info(
            "Backup exported: %s folders, %s assignments",
            len(snapshot["folders"]),
            sum(len(items) for items in assignments.values()),
        )
        return snapshot

    def restore(self) -> RestoreStats:
        """Recreate the snapshot's folders parent-first and re-apply assignments.

        The store may hand out new IDs, so assignments are mapped through the
        old-to-new ID table built while folders are recreated.
        """
        snapshot = self.state.get_record(BACKUP_RECORD)
        if not snapshot:
            raise BackupError("No backup snapshot to restore")
        self.library.delete_all_folders()

        id_map: dict[int, int] = {}
        for folder in _parent_first(snapshot.get("folders", [])):
            parent = folder.get("parent")
            new_parent = id_map.get(parent) if parent is not None else None
            id_map[folder["id"]] = self.library.create_folder(
                folder["name"],
                parent=new_parent,
                slug=folder.get("slug") or None,
                description=folder.get("description") or "",
                sort_order=folder.get("sort_order") or 0,
            )

        restored = errors = 0
        for old_id, items in snapshot.get("assignments", {}).items():
            new_id = id_map.get(int(old_id))
            if new_id is None:
                errors += len(items)
                continue
            for item_id in items:
                try:
                    self.library.assign(int(item_id), new_id)
                    restored += 1
                except StorageError as exc:
                    errors += 1
                    self.logger.warning("Restore assignment failed for item %s: %s", item_id, exc)

        stats = RestoreStats(
            folders_restored=len(id_map),
            assignments_restored=restored,
            assignment_errors=errors,
        )
        self.logger.info(
            "Backup restored: %s folders, %s assignments, %s errors",
            stats.folders_restored,
            stats.assignments_restored,
            stats.assignment_errors,
        )
        return stats

    def has_backup(self) -> bool:
        return self.state.has_record(BACKUP_RECORD)

    def get_backup_info(self) -> BackupInfo:
        snapshot = self.state.get_record(BACKUP_RECORD)
        if not snapshot:
            return BackupInfo(exists=False)
        timestamp = snapshot.get("timestamp")
        age = None
        if timestamp:
            try:
                age = (datetime.utcnow() - datetime.fromisoformat(timestamp)).total_seconds()
            except ValueError:
                age = None
        return BackupInfo(
            exists=True,
            timestamp=timestamp,
            folder_count=len(snapshot.get("folders", [])),
            assignment_count=sum(len(items) for items in snapshot.get("assignments", {}).values()),
            age_seconds=age,
        )

    def cleanup(self) -> bool:
        removed = self.state.delete_record(BACKUP_RECORD)
        if removed:
            self.logger.info("Backup snapshot removed")
        return removed


def _parent_first(folders: list[dict]) -> list[dict]:
    """Order folders so every parent precedes its children.

    Folders whose parent is missing from the snapshot, or that sit on a
    cycle, are promoted to the root.
    """
    known = {folder["id"] for folder in folders}
    ordered: list[dict] = []
    placed: set[int] = set()
    pending = list(folders)
    while pending:
        remaining = []
        for folder in pending:
            parent = folder.get("parent")
            if parent is None or parent not in known or parent in placed:
                if parent is not None and parent not in known:
                    folder = dict(folder, parent=None)
                ordered.append(folder)
                placed.add(folder["id"])
            else:
                remaining.append(folder)
        if len(remaining) == len(pending):
            ordered.extend(dict(folder, parent=None) for folder in remaining)
            break
        pending = remaining
    return ordered
