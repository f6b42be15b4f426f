"""
Backup and restore operations for the folder tree.
"""

from .backup import BACKUP_RECORD, BackupInfo, BackupManager, RestoreStats

__all__ = ["BACKUP_RECORD", "BackupInfo", "BackupManager", "RestoreStats"]
