"""
In-memory view of the folder hierarchy with an optional simulated shadow.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, Optional

from database import FolderRecord, LibraryStore, slugify
from utils.errors import ConflictError, StorageError

PATH_SEPARATOR = "/"


def split_path(path: str) -> list[str]:
    return [segment.strip() for segment in path.split(PATH_SEPARATOR) if segment.strip()]


def normalize_segment(segment: str) -> str:
    return re.sub(r"\s+", " ", segment).strip().casefold()


def normalize_path(path: str) -> str:
    return PATH_SEPARATOR.join(normalize_segment(segment) for segment in split_path(path))


class FolderTree:
    """Folder nodes keyed by ID; paths are always derived from the parent chain.

    A tree bound to a store writes through on ``create_folder`` and ``assign``.
    A simulated tree (``store is None``) keeps mutations in memory and hands
    out negative IDs, so a preview never touches the real folder store.
    """

    def __init__(
        self,
        folders: Iterable[FolderRecord] = (),
        store: Optional[LibraryStore] = None,
        decision_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.decision_logger = decision_logger or logging.getLogger("media_organizer.decisions")
        self.nodes: Dict[int, FolderRecord] = {}
        self.assignments: Dict[int, int] = {}
        self._next_simulated_id = -1
        self._path_cache: Optional[Dict[int, str]] = None
        for folder in folders:
            self.nodes[folder.id] = folder

    @classmethod
    def from_store(
        cls, store: LibraryStore, decision_logger: Optional[logging.Logger] = None
    ) -> "FolderTree":
        return cls(store.get_folder_tree(), store=store, decision_logger=decision_logger)

    @property
    def simulated(self) -> bool:
        return self.store is None

    def shadow(self, empty: bool = False) -> "FolderTree":
        """Return an in-memory copy, or an empty one to preview a full rebuild."""
        folders = [] if empty else list(self.nodes.values())
        return FolderTree(folders, store=None, decision_logger=self.decision_logger)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, folder_id: object) -> bool:
        return folder_id in self.nodes

    def path_of(self, folder_id: int) -> str:
        return self._paths().get(folder_id, "")

    def depth_of(self, folder_id: int) -> int:
        return len(split_path(self.path_of(folder_id)))

    def children_of(self, parent: Optional[int]) -> list[FolderRecord]:
        return [node for node in self.nodes.values() if node.parent == parent]

    def path_map(self, max_depth: Optional[int] = None) -> Dict[str, int]:
        """Map of path to ID, ordered alphabetically ignoring case."""
        items = [
            (path, folder_id)
            for folder_id, path in self._paths().items()
            if max_depth is None or len(split_path(path)) <= max_depth
        ]
        items.sort(key=lambda entry: (entry[0].casefold(), entry[0]))
        return dict(items)

    def listing(self, max_depth: Optional[int] = None) -> list[str]:
        return list(self.path_map(max_depth))

    def find_path(self, path: str) -> Optional[int]:
        """Look up a folder by case and whitespace insensitive path."""
        target = normalize_path(path)
        if not target:
            return None
        matches = [
            folder_id
            for folder_id, existing in self._paths().items()
            if normalize_path(existing) == target
        ]
        return min(matches, key=abs) if matches else None

    def find_by_name(self, name: str) -> Optional[int]:
        """Find a folder by name anywhere; shallowest first, then folders without children."""
        target = normalize_segment(name)
        candidates = [node for node in self.nodes.values() if normalize_segment(node.name) == target]
        if not candidates:
            return None
        parents = {node.parent for node in self.nodes.values()}
        candidates.sort(
            key=lambda node: (self.depth_of(node.id), node.id in parents, abs(node.id))
        )
        return candidates[0].id

    def find_inversion(self, path: str) -> Optional[ConflictError]:
        """Return a conflict if ``path`` reverses the order of an existing chain.

        Two paths conflict when they share at least two segments and those
        shared segments appear in a different order. The reported existing
        path is the shortest prefix of the conflicting folder that holds all
        shared segments.
        """
        proposed = [normalize_segment(segment) for segment in split_path(path)]
        if len(proposed) < 2:
            return None
        by_depth = sorted(self._paths().items(), key=lambda entry: (len(split_path(entry[1])), entry[1]))
        for folder_id, existing_path in by_depth:
            segments = split_path(existing_path)
            existing = [normalize_segment(segment) for segment in segments]
            common = [segment for segment in dict.fromkeys(proposed) if segment in existing]
            if len(common) < 2:
                continue
            existing_order = sorted(common, key=existing.index)
            if existing_order == common:
                continue
            cut = max(existing.index(segment) for segment in common) + 1
            prefix = PATH_SEPARATOR.join(segments[:cut])
            prefix_id = self.find_path(prefix)
            return ConflictError(
                proposed_path=path,
                existing_path=prefix,
                existing_id=prefix_id if prefix_id is not None else folder_id,
            )
        return None

    def ensure_path(self, path: str) -> tuple[int, list[str]]:
        """Return the ID for ``path``, creating missing segments.

        Existing segments are reused by normalized name so repeated calls are
        idempotent. Returns the leaf ID and the list of paths that were created.
        """
        segments = split_path(path)
        if not segments:
            raise StorageError("Cannot create an empty folder path")
        parent: Optional[int] = None
        created: list[str] = []
        for index, segment in enumerate(segments):
            existing = self._find_child(parent, segment)
            if existing is not None:
                parent = existing
                continue
            parent = self._create(segment, parent)
            created.append(PATH_SEPARATOR.join(segments[: index + 1]))
        return parent, created

    def assign(self, item_id: int, folder_id: int) -> None:
        if folder_id not in self.nodes:
            raise StorageError(f"Folder {folder_id} does not exist")
        if self.store is not None:
            self.store.assign(item_id, folder_id)
        self.assignments[item_id] = folder_id
        self.decision_logger.info(
            "%s item %s -> %s",
            "Simulated" if self.simulated else "Assigned",
            item_id,
            self.path_of(folder_id),
        )

    def _find_child(self, parent: Optional[int], name: str) -> Optional[int]:
        target = normalize_segment(name)
        matches = [node.id for node in self.children_of(parent) if normalize_segment(node.name) == target]
        return min(matches, key=abs) if matches else None

    def _create(self, name: str, parent: Optional[int]) -> int:
        if self.store is not None:
            folder_id = self.store.create_folder(name, parent)
        else:
            folder_id = self._next_simulated_id
            self._next_simulated_id -= 1
        self.nodes[folder_id] = FolderRecord(id=folder_id, name=name, parent=parent, slug=slugify(name))
        self._path_cache = None
        self.decision_logger.info(
            "%s folder %s", "Simulated" if self.simulated else "Created", self.path_of(folder_id)
        )
        return folder_id

    def _paths(self) -> Dict[int, str]:
        if self._path_cache is not None:
            return self._path_cache
        paths: Dict[int, str] = {}
        for folder_id in self.nodes:
            names: list[str] = []
            seen: set[int] = set()
            current: Optional[int] = folder_id
            while current is not None and current in self.nodes and current not in seen:
                seen.add(current)
                node = self.nodes[current]
                names.append(node.name)
                current = node.parent
            paths[folder_id] = PATH_SEPARATOR.join(reversed(names))
        self._path_cache = paths
        return paths
