"""
SQLite folder store and media catalogue.
"""

from __future__ import annotations

import json
import re
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from utils.errors import StorageError

from .schema import create_library_db


@dataclass(frozen=True)
class MediaItem:
    """Immutable snapshot of a media item taken at enumeration time."""

    id: int
    filename: str
    mime_type: str
    file_path: Optional[str] = None
    title: str = ""
    alt_text: str = ""
    caption: str = ""
    description: str = ""
    exif: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")


@dataclass(frozen=True)
class FolderRecord:
    """Row from the folder table; paths are derived by the tree, never stored."""

    id: int
    name: str
    parent: Optional[int]
    slug: str = ""
    description: str = ""
    sort_order: int = 0


def slugify(name: str) -> str:
    slug = re.sub(r"[^\w]+", "-", name.strip().lower(), flags=re.UNICODE).strip("-")
    return slug or "folder"


class LibraryStore:
    """Folder tree, item assignments and media rows behind one SQLite file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def initialize(self) -> None:
        """Create the database file and tables."""
        create_library_db(self.db_path)

    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
                self._conn.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.Error as exc:
                raise StorageError(f"Cannot open library database {self.db_path}: {exc}") from exc
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def add_media(
        self,
        filename: str,
        mime_type: str,
        file_path: Optional[str] = None,
        title: str = "",
        alt_text: str = "",
        caption: str = "",
        description: str = "",
        exif: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Insert a media row and return its ID."""
        conn = self.connect()
        try:
            cursor = conn.execute(
                """
                INSERT INTO media (
                    file_path, filename, mime_type, title, alt_text, caption,
                    description, exif_json, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    file_path,
                    filename,
                    mime_type,
                    title,
                    alt_text,
                    caption,
                    description,
                    json.dumps(exif or {}),
                    datetime.utcnow().isoformat(),
                ),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to add media {filename}: {exc}") from exc
        return int(cursor.lastrowid)

    def get_media(self, media_id: int) -> Optional[MediaItem]:
        conn = self.connect()
        try:
            row = conn.execute(
                """
                SELECT id, filename, mime_type, file_path, title, alt_text, caption,
                       description, exif_json
                FROM media WHERE id = ?
                """,
                (media_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read media {media_id}: {exc}") from exc
        if row is None:
            return None
        try:
            exif = json.loads(row[8]) if row[8] else {}
        except json.JSONDecodeError:
            exif = {}
        return MediaItem(
            id=row[0],
            filename=row[1] or "",
            mime_type=row[2] or "",
            file_path=row[3],
            title=row[4] or "",
            alt_text=row[5] or "",
            caption=row[6] or "",
            description=row[7] or "",
            exif=exif if isinstance(exif, dict) else {},
        )

    def list_media_ids(self) -> list[int]:
        conn = self.connect()
        return [row[0] for row in conn.execute("SELECT id FROM media ORDER BY id")]

    def list_unassigned_media_ids(self) -> list[int]:
        conn = self.connect()
        cursor = conn.execute(
            """
            SELECT m.id FROM media m
            LEFT JOIN assignments a ON a.media_id = m.id
            WHERE a.media_id IS NULL
            ORDER BY m.id
            """
        )
        return [row[0] for row in cursor]

    def get_folder_tree(self) -> list[FolderRecord]:
        """Return every folder row ordered by parent then sort order."""
        conn = self.connect()
        try:
            rows = conn.execute(
                """
                SELECT id, name, parent, slug, description, sort_order
                FROM folders ORDER BY COALESCE(parent, 0), sort_order, id
                """
            ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read folder tree: {exc}") from exc
        return [
            FolderRecord(
                id=row[0],
                name=row[1],
                parent=row[2],
                slug=row[3] or "",
                description=row[4] or "",
                sort_order=row[5] or 0,
            )
            for row in rows
        ]

    def create_folder(
        self,
        name: str,
        parent: Optional[int] = None,
        slug: Optional[str] = None,
        description: str = "",
        sort_order: int = 0,
    ) -> int:
        """Insert a folder under ``parent`` and return the new ID."""
        name = name.strip()
        if not name:
            raise StorageError("Folder name must not be empty")
        conn = self.connect()
        try:
            if parent is not None:
                exists = conn.execute("SELECT 1 FROM folders WHERE id = ?", (parent,)).fetchone()
                if exists is None:
                    raise StorageError(f"Parent folder {parent} does not exist")
            cursor = conn.execute(
                """
                INSERT INTO folders (name, slug, description, parent, sort_order, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    name,
                    slug or slugify(name),
                    description,
                    parent,
                    sort_order,
                    datetime.utcnow().isoformat(),
                ),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to create folder {name}: {exc}") from exc
        return int(cursor.lastrowid)

    def assign(self, item_id: int, folder_id: int) -> None:
        """Place an item in a folder, replacing any previous assignment."""
        conn = self.connect()
        try:
            exists = conn.execute("SELECT 1 FROM folders WHERE id = ?", (folder_id,)).fetchone()
            if exists is None:
                raise StorageError(f"Folder {folder_id} does not exist")
            conn.execute(
                """
                INSERT INTO assignments (media_id, folder_id, assigned_at)
                VALUES (?, ?, ?)
                ON CONFLICT(media_id) DO UPDATE SET
                    folder_id = excluded.folder_id,
                    assigned_at = excluded.assigned_at
                """,
                (item_id, folder_id, datetime.utcnow().isoformat()),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to assign item {item_id} to folder {folder_id}: {exc}") from exc

    def get_assignments(self, folder_id: int) -> list[int]:
        conn = self.connect()
        cursor = conn.execute(
            "SELECT media_id FROM assignments WHERE folder_id = ? ORDER BY media_id",
            (folder_id,),
        )
        return [row[0] for row in cursor]

    def folder_of(self, item_id: int) -> Optional[int]:
        conn = self.connect()
        row = conn.execute(
            "SELECT folder_id FROM assignments WHERE media_id = ?", (item_id,)
        ).fetchone()
        return row[0] if row else None

    def delete_all_folders(self) -> int:
        """Remove every folder and, with them, every assignment."""
        conn = self.connect()
        try:
            count = conn.execute("SELECT COUNT(*) FROM folders").fetchone()[0]
            conn.execute("DELETE FROM assignments")
            conn.execute("DELETE FROM folders")
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete folders: {exc}") from exc
        return int(count)

    def count_folders(self) -> int:
        conn = self.connect()
        return int(conn.execute("SELECT COUNT(*) FROM folders").fetchone()[0])

    def count_assignments(self) -> int:
        conn = self.connect()
        return int(conn.execute("SELECT COUNT(*) FROM assignments").fetchone()[0])

    def fetch_media(self, media_ids: Iterable[int]) -> list[MediaItem]:
        """Load items in the given order, skipping IDs that no longer exist."""
        items = []
        for media_id in media_ids:
            item = self.get_media(media_id)
            if item is not None:
                items.append(item)
        return items
