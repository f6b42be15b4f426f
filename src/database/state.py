"""
Named JSON state records and the chunk job table.
"""

from __future__ import annotations

import copy
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from utils.errors import FatalError

from .schema import create_state_db

JOB_PENDING = "pending"
JOB_ACTIVE = "active"
JOB_DONE = "done"
JOB_FAILED = "failed"
JOB_CANCELLED = "cancelled"


class StateStore:
    """Persist singleton records (session, backup, caches) and queued chunk jobs.

    Each record is an independent row so reading or writing one never locks
    the others. ``update_record`` is the only read-modify-write path and runs
    inside ``BEGIN IMMEDIATE`` so concurrent writers serialize.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def initialize(self) -> None:
        try:
            create_state_db(self.db_path)
        except sqlite3.Error as exc:
            raise FatalError(f"State database unavailable: {exc}") from exc

    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(
                    self.db_path,
                    check_same_thread=False,
                    isolation_level=None,
                    timeout=30,
                )
                self._conn.execute("PRAGMA journal_mode=WAL;")
            except sqlite3.Error as exc:
                raise FatalError(f"State database unavailable: {exc}") from exc
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def get_record(self, name: str, default: Any = None) -> Any:
        """Return the decoded payload for ``name`` or ``default``."""
        try:
            row = self.connect().execute(
                "SELECT payload FROM records WHERE name = ?", (name,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to read record {name}: {exc}") from exc
        if row is None:
            return copy.deepcopy(default)
        return json.loads(row[0])

    def put_record(self, name: str, payload: Any) -> None:
        try:
            self.connect().execute(
                """
                INSERT INTO records (name, payload, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (name, json.dumps(payload), datetime.utcnow().isoformat()),
            )
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to write record {name}: {exc}") from exc

    def delete_record(self, name: str) -> bool:
        try:
            cursor = self.connect().execute("DELETE FROM records WHERE name = ?", (name,))
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to delete record {name}: {exc}") from exc
        return cursor.rowcount > 0

    def has_record(self, name: str) -> bool:
        try:
            row = self.connect().execute(
                "SELECT 1 FROM records WHERE name = ?", (name,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to read record {name}: {exc}") from exc
        return row is not None

    def update_record(self, name: str, mutate: Callable[[Any], Any], default: Any = None) -> Any:
        """Atomically apply ``mutate`` to a record and return the stored value.

        ``mutate`` receives the current payload (or a copy of ``default``) and
        returns the new payload. Returning ``None`` keeps the current value.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to lock record {name}: {exc}") from exc
        try:
            row = conn.execute("SELECT payload FROM records WHERE name = ?", (name,)).fetchone()
            current = json.loads(row[0]) if row is not None else copy.deepcopy(default)
            updated = mutate(current)
            if updated is None:
                updated = current
            conn.execute(
                """
                INSERT INTO records (name, payload, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (name, json.dumps(updated), datetime.utcnow().isoformat()),
            )
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            conn.execute("ROLLBACK")
            raise FatalError(f"Failed to update record {name}: {exc}") from exc
        except Exception:
            conn.execute("ROLLBACK")
            raise
        return updated

    def enqueue_job(self, descriptor: dict) -> int:
        now = datetime.utcnow().isoformat()
        try:
            cursor = self.connect().execute(
                """
                INSERT INTO chunk_jobs (descriptor, status, attempts, created_at, updated_at)
                VALUES (?, ?, 0, ?, ?)
                """,
                (json.dumps(descriptor), JOB_PENDING, now, now),
            )
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to enqueue chunk: {exc}") from exc
        return int(cursor.lastrowid)

    def claim_job(self) -> Optional[tuple[int, dict, int]]:
        """Mark the oldest pending job active unless another job is active.

        Returns ``(job_id, descriptor, attempts)`` or ``None``.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to lock chunk queue: {exc}") from exc
        try:
            active = conn.execute(
                "SELECT 1 FROM chunk_jobs WHERE status = ? LIMIT 1", (JOB_ACTIVE,)
            ).fetchone()
            row = None
            if active is None:
                row = conn.execute(
                    "SELECT id, descriptor, attempts FROM chunk_jobs WHERE status = ? ORDER BY id LIMIT 1",
                    (JOB_PENDING,),
                ).fetchone()
            if row is not None:
                conn.execute(
                    "UPDATE chunk_jobs SET status = ?, attempts = attempts + 1, updated_at = ? WHERE id = ?",
                    (JOB_ACTIVE, datetime.utcnow().isoformat(), row[0]),
                )
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            conn.execute("ROLLBACK")
            raise FatalError(f"Failed to claim chunk: {exc}") from exc
        if row is None:
            return None
        return int(row[0]), json.loads(row[1]), int(row[2]) + 1

    def update_job_status(self, job_id: int, status: str, last_error: Optional[str] = None) -> None:
        try:
            self.connect().execute(
                "UPDATE chunk_jobs SET status = ?, last_error = ?, updated_at = ? WHERE id = ?",
                (status, last_error, datetime.utcnow().isoformat(), job_id),
            )
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to update chunk {job_id}: {exc}") from exc

    def cancel_pending_jobs(self) -> int:
        try:
            cursor = self.connect().execute(
                "UPDATE chunk_jobs SET status = ?, updated_at = ? WHERE status = ?",
                (JOB_CANCELLED, datetime.utcnow().isoformat(), JOB_PENDING),
            )
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to cancel chunks: {exc}") from exc
        return cursor.rowcount

    def count_jobs(self, *statuses: str, updated_since: Optional[str] = None) -> int:
        placeholders = ",".join("?" for _ in statuses)
        query = f"SELECT COUNT(*) FROM chunk_jobs WHERE status IN ({placeholders})"
        params: tuple = statuses
        if updated_since is not None:
            query += " AND updated_at >= ?"
            params = statuses + (updated_since,)
        try:
            row = self.connect().execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to count chunks: {exc}") from exc
        return int(row[0])

    def fail_active_jobs(self, reason: str) -> int:
        try:
            cursor = self.connect().execute(
                "UPDATE chunk_jobs SET status = ?, last_error = ?, updated_at = ? WHERE status = ?",
                (JOB_FAILED, reason, datetime.utcnow().isoformat(), JOB_ACTIVE),
            )
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to abandon chunks: {exc}") from exc
        return cursor.rowcount

    def requeue_active_jobs(self) -> int:
        try:
            cursor = self.connect().execute(
                "UPDATE chunk_jobs SET status = ?, updated_at = ? WHERE status = ?",
                (JOB_PENDING, datetime.utcnow().isoformat(), JOB_ACTIVE),
            )
        except sqlite3.Error as exc:
            raise FatalError(f"Failed to requeue chunks: {exc}") from exc
        return cursor.rowcount

    def list_jobs(self, status: Optional[str] = None) -> list[dict]:
        query = "SELECT id, descriptor, status, attempts, last_error FROM chunk_jobs"
        params: tuple = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status,)
        query += " ORDER BY id"
        rows = self.connect().execute(query, params).fetchall()
        return [
            {
                "id": row[0],
                "descriptor": json.loads(row[1]),
                "status": row[2],
                "attempts": row[3],
                "last_error": row[4],
            }
            for row in rows
        ]
