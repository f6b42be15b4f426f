"""
Hierarchy resolver: type routing, inversion guard and decision application.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from database import MediaItem
from utils.errors import StorageError

from .models import ACTION_ASSIGN, ACTION_CREATE, ACTION_SKIP, Decision
from .routing import route_folder
from .tree import PATH_SEPARATOR, FolderTree, normalize_path, split_path


@dataclass
class HierarchyState:
    """Per-scan memory shared by every chunk.

    ``created_paths`` lists every folder path created (or simulated) so far in
    order, so a chunk-local shadow tree can be rebuilt identically.
    ``suggested_folders`` are new paths proposed earlier in the scan and are
    offered back to the provider for reuse.
    """

    scan_id: str = ""
    created_paths: list[str] = field(default_factory=list)
    suggested_folders: list[str] = field(default_factory=list)

    def remember_created(self, paths: list[str]) -> None:
        for path in paths:
            if path not in self.created_paths:
                self.created_paths.append(path)

    def remember_suggestion(self, path: str) -> None:
        known = {normalize_path(existing) for existing in self.suggested_folders}
        if normalize_path(path) not in known:
            self.suggested_folders.append(path)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "HierarchyState":
        data = data or {}
        return cls(
            scan_id=data.get("scan_id", ""),
            created_paths=list(data.get("created_paths") or []),
            suggested_folders=list(data.get("suggested_folders") or []),
        )


class HierarchyResolver:
    """Apply or simulate decisions against a FolderTree."""

    def __init__(self, max_depth: int = 3, logger: Optional[logging.Logger] = None) -> None:
        self.max_depth = max(1, int(max_depth))
        self.logger = logger or logging.getLogger("media_organizer")

    def prepare_tree(self, tree: FolderTree, state: HierarchyState, simulate: bool, empty: bool) -> FolderTree:
        """Return the tree a chunk should work on.

        Real runs use the store-backed tree as is. Simulations get a shadow
        (seeded or empty) with the folders created by earlier chunks replayed.
        """
        if not simulate:
            return tree
        shadow = tree.shadow(empty=empty)
        for path in state.created_paths:
            shadow.ensure_path(path)
        return shadow

    def route(self, item: MediaItem, tree: FolderTree, allow_new_folders: bool) -> Optional[Decision]:
        """Fixed-folder decision for non-image items; None means ask the provider."""
        folder_name = route_folder(item.mime_type)
        if folder_name is None:
            return None
        top_level = [node.id for node in tree.children_of(None) if normalize_path(node.name) == normalize_path(folder_name)]
        if top_level:
            folder_id = min(top_level, key=abs)
            return Decision(
                action=ACTION_ASSIGN,
                folder_id=folder_id,
                folder_path=tree.path_of(folder_id),
                confidence=1.0,
                reason=f"{item.mime_type or 'unknown'} routed to {folder_name}",
            )
        folder_id = tree.find_by_name(folder_name)
        if folder_id is not None:
            return Decision(
                action=ACTION_ASSIGN,
                folder_id=folder_id,
                folder_path=tree.path_of(folder_id),
                confidence=1.0,
                reason=f"{item.mime_type or 'unknown'} routed to existing {tree.path_of(folder_id)}",
            )
        if allow_new_folders:
            return Decision(
                action=ACTION_CREATE,
                new_folder_path=folder_name,
                confidence=1.0,
                reason=f"{item.mime_type or 'unknown'} routed to new {folder_name}",
            )
        return Decision.skip(f"No {folder_name} folder and new folders are disabled")

    def guard(self, decision: Decision, tree: FolderTree) -> Decision:
        """Clamp depth and remap proposals that would invert an existing chain."""
        if decision.action != ACTION_CREATE:
            return decision
        segments = split_path(decision.new_folder_path or "")
        path = PATH_SEPARATOR.join(segments[: self.max_depth])
        if tree.find_path(path) is not None:
            return Decision(
                action=ACTION_CREATE,
                new_folder_path=path,
                confidence=decision.confidence,
                reason=decision.reason,
            )
        conflict = tree.find_inversion(path)
        if conflict is None:
            if path == decision.new_folder_path:
                return decision
            return Decision(
                action=ACTION_CREATE,
                new_folder_path=path,
                confidence=decision.confidence,
                reason=decision.reason,
            )
        self.logger.info("Remapped %s to existing %s", path, conflict.existing_path)
        reason = (decision.reason + " " if decision.reason else "") + (
            f"(Auto-remapped to existing folder: {conflict.existing_path} "
            "to prevent hierarchy inversion)"
        )
        return Decision(
            action=ACTION_ASSIGN,
            folder_id=conflict.existing_id,
            folder_path=conflict.existing_path,
            confidence=round(decision.confidence * 0.9, 4),
            reason=reason,
        )

    def apply(self, decision: Decision, item_id: int, tree: FolderTree, state: HierarchyState) -> Decision:
        """Apply ``decision`` for one item and return the effective decision.

        Whether the change is persisted depends on the tree: a shadow tree
        records it in memory only.
        """
        if decision.action == ACTION_SKIP:
            return decision
        decision = self.guard(decision, tree)
        if decision.action == ACTION_ASSIGN:
            folder_id = self._resolve_assign(decision, tree)
            tree.assign(item_id, folder_id)
            return Decision(
                action=ACTION_ASSIGN,
                folder_id=folder_id,
                folder_path=tree.path_of(folder_id),
                confidence=decision.confidence,
                reason=decision.reason,
            )
        path = decision.new_folder_path or ""
        folder_id, created = tree.ensure_path(path)
        state.remember_created(created)
        state.remember_suggestion(path)
        tree.assign(item_id, folder_id)
        return Decision(
            action=ACTION_CREATE,
            folder_id=folder_id,
            folder_path=tree.path_of(folder_id),
            new_folder_path=path,
            confidence=decision.confidence,
            reason=decision.reason,
        )

    def _resolve_assign(self, decision: Decision, tree: FolderTree) -> int:
        # Paths win over IDs so a replayed preview maps simulated IDs onto real folders.
        if decision.folder_path:
            folder_id = tree.find_path(decision.folder_path)
            if folder_id is not None:
                return folder_id
        if decision.folder_id is not None and decision.folder_id in tree:
            return decision.folder_id
        raise StorageError(
            f"Folder {decision.folder_path or decision.folder_id} no longer exists"
        )
