"""
Wiring entry point: build the orchestrator from configuration and drain a scan.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ai import BaseProvider, create_provider
from config import AppConfig, ensure_directories
from database import LibraryStore, StateStore
from operations import BackupManager
from orchestrator.scan import ScanOrchestrator
from orchestrator.task_queue import ChunkQueue
from utils import ResourceMonitor, setup_logging
from utils.errors import OrganizerError


def build_orchestrator(
    config: AppConfig,
    provider: Optional[BaseProvider] = None,
    client: Optional[httpx.Client] = None,
    loggers: Optional[dict[str, logging.Logger]] = None,
) -> ScanOrchestrator:
    """Create stores, provider, queue and backup manager from ``config``."""
    if loggers is None:
        loggers = setup_logging(config.resolve_path("paths", "logs", default="logs"))
    logger = loggers["main"]
    db_paths = config.database_paths()
    ensure_directories(path.parent for path in db_paths.values())
    library = LibraryStore(db_paths["library"])
    library.initialize()
    state = StateStore(db_paths["state"])
    state.initialize()
    if provider is None:
        provider = create_provider(config, client=client, logger=logger)
    return ScanOrchestrator(
        config,
        library,
        state,
        provider,
        queue=ChunkQueue(state, logger=logger, config=config),
        backup=BackupManager(library, state, logger=logger),
        monitor=ResourceMonitor.from_config(config),
        logger=logger,
        performance_logger=loggers.get("performance"),
        decision_logger=loggers.get("decisions"),
    )


def main() -> int:
    """Start the configured scan and process its chunks in-process."""
    config = AppConfig.load()
    loggers = setup_logging(config.resolve_path("paths", "logs", default="logs"))
    logger = loggers["main"]
    mode = str(config.get("scan", "mode", default="organize_unassigned"))
    dry_run = bool(config.get("scan", "dry_run", default=True))
    try:
        orchestrator = build_orchestrator(config, loggers=loggers)
        orchestrator.start(mode, dry_run=dry_run)
        orchestrator.drain()
    except OrganizerError as exc:
        logger.error("Scan aborted: %s", exc)
        return 1
    session = orchestrator.get_status()
    logger.info(
        "Scan %s: processed=%s/%s applied=%s failed=%s (%s%%)",
        session.status.value,
        session.processed,
        session.total,
        session.applied,
        session.failed,
        session.percentage,
    )
    if session.dry_run and session.mode:
        logger.info("%s cached decisions ready to apply", orchestrator.get_cached_count(session.mode))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
