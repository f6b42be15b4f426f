"""
Scan orchestration: session lifecycle, chunk processing and dry-run replay.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ai import BaseProvider, load_image_payload, parse_response
from config import AppConfig
from database import LibraryStore, MediaItem, StateStore
from operations import BackupInfo, BackupManager, RestoreStats
from organization import (
    ACTION_CREATE,
    ACTION_SKIP,
    MODE_ORGANIZE_UNASSIGNED,
    MODE_REORGANIZE_ALL,
    SCAN_MODES,
    Decision,
    FolderTree,
    HierarchyResolver,
    HierarchyState,
)
from utils import ResourceMonitor
from utils.errors import (
    AlreadyRunning,
    ConfigurationError,
    FatalError,
    InvalidModeError,
    ParseError,
    ProviderError,
    ScanRunningError,
    StorageError,
)

from .session import ScanSession, ScanStatus, can_transition
from .task_queue import ChunkQueue

SESSION_RECORD = "scan_session"
HIERARCHY_RECORD = "hierarchy_state"
CACHE_RECORD_PREFIX = "dry_run_cache:"


def cache_record_name(mode: str) -> str:
    return f"{CACHE_RECORD_PREFIX}{mode}"


@dataclass
class ApplyStats:
    """Outcome of replaying a cached dry run."""

    applied: int
    failed: int


@dataclass
class ItemOutcome:
    decision: Decision
    failed: bool = False


class ScanOrchestrator:
    """Drive scans through idle, running and the terminal states.

    The chunk processor is the only writer of progress counters; every chunk
    commits its delta through one atomic read-modify-write on the session
    record, so status polling never observes a partial update.
    """

    def __init__(
        self,
        config: AppConfig,
        library: LibraryStore,
        state: StateStore,
        provider: BaseProvider,
        queue: Optional[ChunkQueue] = None,
        backup: Optional[BackupManager] = None,
        monitor: Optional[ResourceMonitor] = None,
        logger: Optional[logging.Logger] = None,
        performance_logger: Optional[logging.Logger] = None,
        decision_logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.library = library
        self.state = state
        self.provider = provider
        self.logger = logger or logging.getLogger("media_organizer")
        self.performance_logger = performance_logger or logging.getLogger("media_organizer.performance")
        self.decision_logger = decision_logger or logging.getLogger("media_organizer.decisions")
        self.queue = queue or ChunkQueue(state, logger=self.logger, config=config)
        self.backup = backup or BackupManager(library, state, logger=self.logger)
        self.monitor = monitor
        self.chunk_size = max(1, int(config.get("scan", "chunk_size", default=20)))
        self.results_limit = max(1, int(config.get("scan", "results_limit", default=100)))
        self.stale_after_seconds = float(config.get("scan", "stale_after_seconds", default=900))
        self.max_depth = max(1, int(config.get("scan", "max_folder_depth", default=3)))
        self.allow_new_folders = bool(config.get("scan", "allow_new_folders", default=False))
        self.send_images = bool(config.get("ai", "send_images", default=True))
        self.image_max_edge = int(config.get("ai", "image_max_edge", default=1024))
        self.image_max_bytes = int(config.get("ai", "image_max_bytes", default=10 * 1024 * 1024))
        self.resolver = HierarchyResolver(max_depth=self.max_depth, logger=self.logger)

    def get_status(self) -> ScanSession:
        """Snapshot of the persisted session; a stalled running scan is failed first."""
        self.recover_stale()
        return self._read_session()

    def _read_session(self) -> ScanSession:
        return ScanSession.from_dict(self.state.get_record(SESSION_RECORD))

    def start(self, mode: str, dry_run: bool = False) -> ScanSession:
        """Begin a scan and schedule its chunks on the queue."""
        self.recover_stale()
        if self._read_session().is_running:
            raise AlreadyRunning("A scan is already running")
        self._validate_mode(mode)
        if not self.provider.is_configured():
            raise ConfigurationError(f"AI provider {self.provider.label or self.provider.name} is not configured")

        item_ids = (
            self.library.list_unassigned_media_ids()
            if mode == MODE_ORGANIZE_UNASSIGNED
            else self.library.list_media_ids()
        )
        wipe_tree = mode == MODE_REORGANIZE_ALL and not dry_run
        if wipe_tree:
            # Must succeed before any folder is deleted; a BackupError aborts here.
            self.backup.export()

        scan_id = uuid.uuid4().hex
        now = _now()
        chunks = [item_ids[start : start + self.chunk_size] for start in range(0, len(item_ids), self.chunk_size)]

        def begin(data: Any) -> dict:
            current = ScanSession.from_dict(data)
            if current.is_running:
                raise AlreadyRunning("A scan is already running")
            return ScanSession(
                status=ScanStatus.RUNNING,
                mode=mode,
                dry_run=dry_run,
                total=len(item_ids),
                started_at=now,
                updated_at=now,
                completed_at=None,
                error=None,
                scan_id=scan_id,
                chunk_count=len(chunks),
            ).to_dict()

        session = ScanSession.from_dict(self.state.update_record(SESSION_RECORD, begin, default={}))
        self.logger.info(
            "Scan %s started: mode=%s dry_run=%s items=%s chunks=%s",
            scan_id,
            mode,
            dry_run,
            len(item_ids),
            len(chunks),
        )

        try:
            self.queue.cancel_pending()
            if wipe_tree:
                removed = self.library.delete_all_folders()
                self.logger.info("Removed %s folders for reorganization", removed)
            self.state.put_record(HIERARCHY_RECORD, HierarchyState(scan_id=scan_id).to_dict())
            if dry_run:
                self.state.put_record(cache_record_name(mode), _empty_cache(scan_id))
            for index, chunk in enumerate(chunks):
                self.queue.enqueue({"scan_id": scan_id, "chunk_index": index, "item_ids": chunk})
        except (StorageError, FatalError) as exc:
            self.logger.exception("Scan %s could not be scheduled", scan_id)
            self.fail(str(exc))
            raise

        if not chunks:
            session = self._finish_empty(scan_id)
        return session

    def process_chunk(self, chunk: dict) -> ScanSession:
        """Analyze and resolve one chunk of items, then commit its progress."""
        session = self._read_session()
        scan_id = chunk.get("scan_id")
        index = int(chunk.get("chunk_index", -1))
        if session.scan_id != scan_id or not session.is_running:
            self.logger.info("Skipping chunk %s of scan %s: session is %s", index, scan_id, session.status.value)
            return session
        if index in session.chunks_done:
            self.logger.info("Chunk %s of scan %s already committed", index, scan_id)
            return session

        started = time.monotonic()
        try:
            hierarchy = HierarchyState.from_dict(self.state.get_record(HIERARCHY_RECORD))
            if hierarchy.scan_id != session.scan_id:
                hierarchy = HierarchyState(scan_id=session.scan_id)
            allow_new = self.allow_new_folders or session.mode == MODE_REORGANIZE_ALL
            tree = self.resolver.prepare_tree(
                FolderTree.from_store(self.library, decision_logger=self.decision_logger),
                hierarchy,
                simulate=session.dry_run,
                empty=session.dry_run and session.mode == MODE_REORGANIZE_ALL,
            )

            entries: list[dict[str, Any]] = []
            cached: list[dict[str, Any]] = []
            applied = failed = 0
            for item_id in chunk.get("item_ids", []):
                if self.monitor is not None:
                    self.monitor.throttle()
                item, outcome = self._process_item(int(item_id), tree, hierarchy, allow_new)
                decision = outcome.decision
                if outcome.failed:
                    failed += 1
                elif decision.action != ACTION_SKIP:
                    applied += 1
                    if session.dry_run:
                        cached.append({"media_id": int(item_id), "decision": decision.to_dict()})
                entries.append(self._result_entry(int(item_id), item, outcome, session.dry_run))

            self.state.put_record(HIERARCHY_RECORD, hierarchy.to_dict())
            if session.dry_run:
                self._append_cache(session, index, cached)
            updated = self._commit_chunk(session.scan_id, index, entries, applied, failed)
        except (FatalError, StorageError) as exc:
            self.logger.exception("Scan %s failed in chunk %s", session.scan_id, index)
            self.fail(str(exc))
            raise

        self.performance_logger.info(
            "Scan %s chunk %s: %s items, %s applied, %s failed in %.2fs",
            session.scan_id,
            index,
            len(entries),
            applied,
            failed,
            time.monotonic() - started,
        )
        if updated.status == ScanStatus.COMPLETED:
            self.logger.info(
                "Scan %s completed: processed=%s applied=%s failed=%s",
                updated.scan_id,
                updated.processed,
                updated.applied,
                updated.failed,
            )
        return updated

    def cancel(self) -> ScanSession:
        """Request cancellation; repeated calls and terminal sessions are no-ops."""
        now = _now()

        def mark(data: Any) -> dict:
            current = ScanSession.from_dict(data)
            if not can_transition(current.status, ScanStatus.CANCELLED):
                return current.to_dict()
            current.status = ScanStatus.CANCELLED
            current.completed_at = now
            current.updated_at = now
            return current.to_dict()

        before = self._read_session()
        session = ScanSession.from_dict(self.state.update_record(SESSION_RECORD, mark, default={}))
        if before.is_running and session.status == ScanStatus.CANCELLED:
            self.logger.info("Scan %s cancelled", session.scan_id)
            try:
                self.queue.cancel_pending()
            except FatalError as exc:
                self.logger.warning("Could not drop pending chunks: %s", exc)
        return session

    def reset(self, mode: Optional[str] = None) -> ScanSession:
        """Return to idle; clears counters, results and the affected dry-run cache."""
        if mode is not None:
            self._validate_mode(mode)
        previous: dict[str, Optional[str]] = {}

        def clear(data: Any) -> dict:
            current = ScanSession.from_dict(data)
            if current.is_running:
                raise ScanRunningError("Cannot reset while a scan is running")
            previous["mode"] = current.mode
            return ScanSession().to_dict()

        session = ScanSession.from_dict(self.state.update_record(SESSION_RECORD, clear, default={}))
        affected = mode or previous.get("mode")
        if affected:
            self.state.delete_record(cache_record_name(affected))
        self.state.delete_record(HIERARCHY_RECORD)
        self.logger.info("Scan state reset (cache cleared for %s)", affected or "no mode")
        return session

    def recover_stale(self) -> bool:
        """Fail a running session whose queue has been idle past the staleness window.

        Chunks left pending or active without an update inside the window are
        treated as abandoned by a killed worker and do not keep the scan alive.
        """
        session = self._read_session()
        if not session.is_running or not self.queue.is_idle(self.stale_after_seconds):
            return False
        last_seen = session.updated_at or session.started_at
        age = _age_seconds(last_seen)
        if age is None or age < self.stale_after_seconds:
            return False
        message = f"Scan stalled: no queued work for {int(age)} seconds"
        self.logger.error("Scan %s: %s", session.scan_id, message)
        self.fail(message)
        self.queue.abandon_active()
        return True

    def fail(self, message: str) -> ScanSession:
        """Move a running session to failed and surface ``message``."""
        now = _now()

        def mark(data: Any) -> dict:
            current = ScanSession.from_dict(data)
            if not can_transition(current.status, ScanStatus.FAILED):
                return current.to_dict()
            current.status = ScanStatus.FAILED
            current.error = message
            current.completed_at = now
            current.updated_at = now
            return current.to_dict()

        session = ScanSession.from_dict(self.state.update_record(SESSION_RECORD, mark, default={}))
        self.queue.cancel_pending()
        return session

    def get_cached_count(self, mode: str) -> int:
        self._validate_mode(mode)
        return len(self._cache(mode).get("entries", []))

    def get_cached_results(self, mode: str) -> list[tuple[int, Decision]]:
        self._validate_mode(mode)
        return [
            (int(entry["media_id"]), Decision.from_dict(entry["decision"]))
            for entry in self._cache(mode).get("entries", [])
        ]

    def apply_cached(self, mode: str) -> ApplyStats:
        """Replay a dry run for real, in its original order."""
        self._validate_mode(mode)
        if self.get_status().is_running:
            raise ScanRunningError("Cannot apply cached results while a scan is running")
        results = self.get_cached_results(mode)
        if not results:
            return ApplyStats(applied=0, failed=0)
        if mode == MODE_REORGANIZE_ALL:
            cache = self._cache(mode)
            # A retry after partial failure keeps the snapshot of the original tree.
            if not cache.get("backup_taken"):
                self.backup.export()
                self.state.put_record(cache_record_name(mode), dict(cache, backup_taken=True))
            self.library.delete_all_folders()

        tree = FolderTree.from_store(self.library, decision_logger=self.decision_logger)
        hierarchy = HierarchyState()
        applied = failed = 0
        for media_id, decision in results:
            try:
                self.resolver.apply(decision, media_id, tree, hierarchy)
                applied += 1
            except StorageError as exc:
                failed += 1
                self.logger.warning("Cached decision for item %s not applied: %s", media_id, exc)

        if failed == 0:
            self.state.delete_record(cache_record_name(mode))

        def record(data: Any) -> dict:
            current = ScanSession.from_dict(data)
            current.applied = applied
            current.failed = failed
            current.updated_at = _now()
            return current.to_dict()

        self.state.update_record(SESSION_RECORD, record, default={})
        self.logger.info("Applied cached %s results: applied=%s failed=%s", mode, applied, failed)
        return ApplyStats(applied=applied, failed=failed)

    def get_backup_info(self) -> BackupInfo:
        return self.backup.get_backup_info()

    def restore_backup(self) -> RestoreStats:
        if self.get_status().is_running:
            raise ScanRunningError("Cannot restore while a scan is running")
        stats = self.backup.restore()
        self.backup.cleanup()
        return stats

    def dismiss_backup(self) -> bool:
        return self.backup.cleanup()

    def drain(self, limit: Optional[int] = None) -> int:
        """Run queued chunks in-process until the queue is empty."""
        return self.queue.run_pending(self.process_chunk, limit=limit)

    def _process_item(
        self,
        item_id: int,
        tree: FolderTree,
        hierarchy: HierarchyState,
        allow_new: bool,
    ) -> tuple[Optional[MediaItem], ItemOutcome]:
        try:
            item = self.library.get_media(item_id)
        except StorageError as exc:
            return None, ItemOutcome(Decision.skip(f"Storage error: {exc}"), failed=True)
        if item is None:
            return None, ItemOutcome(Decision.skip("Media item no longer exists"), failed=True)
        try:
            decision = self.resolver.route(item, tree, allow_new)
            if decision is None:
                decision = self._analyze(item, tree, hierarchy, allow_new)
        except ProviderError as exc:
            self.logger.warning("Provider failed for item %s: %s", item_id, exc)
            return item, ItemOutcome(Decision.skip(f"Provider error: {exc}"), failed=True)
        except ParseError as exc:
            self.logger.warning("Unusable reply for item %s: %s", item_id, exc)
            return item, ItemOutcome(Decision.skip(f"Parse error: {exc}"), failed=True)
        except (FatalError, StorageError):
            raise
        except Exception as exc:
            self.logger.exception("Unexpected failure analyzing item %s", item_id)
            return item, ItemOutcome(Decision.skip(f"Provider error: {exc}"), failed=True)
        try:
            return item, ItemOutcome(self.resolver.apply(decision, item.id, tree, hierarchy))
        except StorageError as exc:
            self.logger.warning("Could not apply decision for item %s: %s", item_id, exc)
            return item, ItemOutcome(Decision.skip(f"Storage error: {exc}"), failed=True)

    def _analyze(self, item: MediaItem, tree: FolderTree, hierarchy: HierarchyState, allow_new: bool) -> Decision:
        image = None
        if self.send_images and self.provider.supports_vision:
            image = load_image_payload(
                item.file_path,
                item.mime_type,
                max_edge=self.image_max_edge,
                max_bytes=self.image_max_bytes,
                logger=self.logger,
            )
        raw = self.provider.analyze(
            item,
            tree.path_map(self.max_depth),
            max_depth=self.max_depth,
            allow_new_folders=allow_new,
            image=image,
            suggested_folders=list(hierarchy.suggested_folders),
        )
        decision = parse_response(raw, tree.path_map())
        if decision.action == ACTION_CREATE and not allow_new:
            return Decision.skip(
                f"New folders are disabled; provider proposed {decision.new_folder_path}",
                decision.confidence,
            )
        return decision

    def _result_entry(
        self, item_id: int, item: Optional[MediaItem], outcome: ItemOutcome, dry_run: bool
    ) -> dict[str, Any]:
        decision = outcome.decision
        entry = {"media_id": item_id, "filename": item.filename if item else ""}
        entry.update(decision.to_dict())
        entry["applied"] = not dry_run and not outcome.failed and decision.action != ACTION_SKIP
        return entry

    def _commit_chunk(
        self,
        scan_id: str,
        index: int,
        entries: list[dict[str, Any]],
        applied: int,
        failed: int,
    ) -> ScanSession:
        now = _now()

        def commit(data: Any) -> dict:
            current = ScanSession.from_dict(data)
            if current.scan_id != scan_id or index in current.chunks_done:
                return current.to_dict()
            current.processed += len(entries)
            current.applied += applied
            current.failed += failed
            current.results = (current.results + entries)[-self.results_limit :]
            current.chunks_done.append(index)
            current.updated_at = now
            # A cancelled or failed session keeps its status; only counters move.
            if current.is_running and len(current.chunks_done) >= current.chunk_count:
                current.status = ScanStatus.COMPLETED
                current.completed_at = now
            return current.to_dict()

        return ScanSession.from_dict(self.state.update_record(SESSION_RECORD, commit, default={}))

    def _append_cache(self, session: ScanSession, index: int, cached: list[dict[str, Any]]) -> None:
        def append(data: Any) -> dict:
            cache = data if isinstance(data, dict) and data.get("scan_id") == session.scan_id else _empty_cache(session.scan_id)
            if index in cache["chunks"]:
                return cache
            cache["chunks"].append(index)
            cache["entries"].extend(dict(entry, chunk_index=index) for entry in cached)
            cache["entries"].sort(key=lambda entry: entry["chunk_index"])
            return cache

        self.state.update_record(cache_record_name(session.mode or ""), append, default={})

    def _cache(self, mode: str) -> dict[str, Any]:
        return self.state.get_record(cache_record_name(mode), default={}) or {}

    def _finish_empty(self, scan_id: str) -> ScanSession:
        now = _now()

        def complete(data: Any) -> dict:
            current = ScanSession.from_dict(data)
            if current.scan_id == scan_id and current.is_running:
                current.status = ScanStatus.COMPLETED
                current.completed_at = now
                current.updated_at = now
            return current.to_dict()

        self.logger.info("Scan %s has no eligible items", scan_id)
        return ScanSession.from_dict(self.state.update_record(SESSION_RECORD, complete, default={}))

    @staticmethod
    def _validate_mode(mode: str) -> None:
        if mode not in SCAN_MODES:
            raise InvalidModeError(f"Unknown scan mode {mode!r}; expected one of {', '.join(SCAN_MODES)}")


def _now() -> str:
    return datetime.utcnow().isoformat()


def _empty_cache(scan_id: str) -> dict[str, Any]:
    return {"scan_id": scan_id, "chunks": [], "entries": []}


def _age_seconds(timestamp: Optional[str]) -> Optional[float]:
    if not timestamp:
        return None
    try:
        return (datetime.utcnow() - datetime.fromisoformat(timestamp)).total_seconds()
    except ValueError:
        return None
