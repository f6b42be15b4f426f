"""
Database package for the folder store and scan state persistence.
"""

from .library import FolderRecord, LibraryStore, MediaItem, slugify
from .schema import create_databases
from .state import StateStore

__all__ = [
    "FolderRecord",
    "LibraryStore",
    "MediaItem",
    "StateStore",
    "create_databases",
    "slugify",
]
