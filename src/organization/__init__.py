"""
Decision types and folder hierarchy resolution.
"""

from .models import (
    ACTION_ASSIGN,
    ACTION_CREATE,
    ACTION_SKIP,
    MODE_ORGANIZE_UNASSIGNED,
    MODE_REANALYZE_ALL,
    MODE_REORGANIZE_ALL,
    SCAN_MODES,
    Decision,
)
from .resolver import HierarchyResolver, HierarchyState
from .routing import route_folder
from .tree import FolderTree, normalize_path, split_path

__all__ = [
    "ACTION_ASSIGN",
    "ACTION_CREATE",
    "ACTION_SKIP",
    "MODE_ORGANIZE_UNASSIGNED",
    "MODE_REANALYZE_ALL",
    "MODE_REORGANIZE_ALL",
    "SCAN_MODES",
    "Decision",
    "FolderTree",
    "HierarchyResolver",
    "HierarchyState",
    "normalize_path",
    "route_folder",
    "split_path",
]
