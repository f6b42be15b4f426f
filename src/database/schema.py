"""
Database schema definitions for the media library and scan state.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict


def create_databases(db_paths: Dict[str, Path]) -> None:
    """Create all SQLite databases and their tables."""
    create_library_db(db_paths["library"])
    create_state_db(db_paths["state"])


def create_library_db(db_path: Path) -> None:
    """Create the media catalogue, folder tree and assignment tables."""
    conn = _connect(db_path)
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS media (
            id INTEGER PRIMARY KEY,
            file_path TEXT,
            filename TEXT,
            mime_type TEXT,
            title TEXT,
            alt_text TEXT,
            caption TEXT,
            description TEXT,
            exif_json TEXT,
            created_at TIMESTAMP
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS folders (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            slug TEXT,
            description TEXT,
            parent INTEGER,
            sort_order INTEGER DEFAULT 0,
            created_at TIMESTAMP
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS assignments (
            media_id INTEGER PRIMARY KEY,
            folder_id INTEGER NOT NULL,
            assigned_at TIMESTAMP,
            FOREIGN KEY (media_id) REFERENCES media (id),
            FOREIGN KEY (folder_id) REFERENCES folders (id)
        )
        """
    )
    _ensure_column(conn, "folders", "sort_order", "INTEGER DEFAULT 0")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_folders_parent ON folders(parent)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_assignments_folder ON assignments(folder_id)")
    conn.commit()
    conn.close()


def create_state_db(db_path: Path) -> None:
    """Create named state records and the chunk job table."""
    conn = _connect(db_path)
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS records (
            name TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            updated_at TIMESTAMP
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chunk_jobs (
            id INTEGER PRIMARY KEY,
            descriptor TEXT NOT NULL,
            status TEXT NOT NULL,
            attempts INTEGER DEFAULT 0,
            last_error TEXT,
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        )
        """
    )
    _ensure_column(conn, "chunk_jobs", "last_error", "TEXT")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_chunk_jobs_status ON chunk_jobs(status)")
    conn.commit()
    conn.close()


def _connect(db_path: Path) -> sqlite3.Connection:
    """Create a SQLite connection with WAL enabled."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode=WAL;")
    return conn


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, column_type: str) -> None:
    """Ensure a column exists on a SQLite table."""
    cursor = conn.execute(f"PRAGMA table_info({table})")
    existing = {row[1] for row in cursor.fetchall()}
    if column in existing:
        return
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
