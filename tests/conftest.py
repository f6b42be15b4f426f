from pathlib import Path
from typing import Callable, Optional

import pytest

from ai import BaseProvider
from config import AppConfig
from database import LibraryStore, StateStore
from utils.errors import ProviderError


def write_config(root: Path, extra_lines: Optional[list[str]] = None) -> AppConfig:
    lines = [
        "paths:",
        "  logs: \"logs\"",
        "databases:",
        "  library: \"data/library.sqlite\"",
        "  state: \"data/state.sqlite\"",
        "scan:",
        "  chunk_size: 3",
        "  results_limit: 5",
        "  max_folder_depth: 3",
        "  allow_new_folders: true",
        "ai:",
        "  provider: \"heuristic\"",
        "  send_images: false",
    ]
    config_path = root / "config.yaml"
    config_path.write_text("\n".join(lines + (extra_lines or [])) + "\n", encoding="utf-8")
    return AppConfig.load(config_path)


class FakeProvider(BaseProvider):
    """Replies from a callable; records every analyze call."""

    name = "fake"
    label = "Fake"
    requires_api_key = False

    def __init__(self, reply: Callable[..., str], configured: bool = True) -> None:
        super().__init__({})
        self.reply = reply
        self.configured = configured
        self.calls: list[dict] = []

    def _check_configured(self) -> bool:
        return self.configured

    def analyze(self, item, folder_context, max_depth, allow_new_folders, image=None, suggested_folders=None) -> str:
        self.calls.append(
            {
                "item": item,
                "folder_context": dict(folder_context),
                "allow_new_folders": allow_new_folders,
                "suggested_folders": list(suggested_folders or []),
            }
        )
        return self.reply(item, folder_context)

    def complete(self, prompt, system="", image=None, max_tokens=500) -> str:
        raise ProviderError("not used", self.name)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return write_config(tmp_path)


@pytest.fixture
def library(config: AppConfig) -> LibraryStore:
    store = LibraryStore(config.database_paths()["library"])
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def state(config: AppConfig) -> StateStore:
    store = StateStore(config.database_paths()["state"])
    store.initialize()
    yield store
    store.close()
