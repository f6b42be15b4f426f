from pathlib import Path

import pytest

from config import AppConfig


def test_config_resolves_paths(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("paths:\n  logs: \"logs\"\n", encoding="utf-8")

    config = AppConfig.load(config_path)
    logs_path = config.resolve_path("paths", "logs")

    assert logs_path == config_path.parent / "logs"
    assert config.get("missing", default=123) == 123
    assert config.database_paths()["state"] == tmp_path / "data" / "state.sqlite"


def test_config_reads_env_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "custom.yaml"
    config_path.write_text("scan:\n  chunk_size: 7\n", encoding="utf-8")
    monkeypatch.setenv("MEDIA_ORGANIZER_CONFIG", str(config_path))

    config = AppConfig.load()

    assert config.get("scan", "chunk_size") == 7


def test_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        AppConfig.load(tmp_path / "absent.yaml")


def test_provider_settings_merge_and_env_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "ai:",
                "  request_timeout: 45",
                "  language: \"German\"",
                "  openai:",
                "    model: \"gpt-4o\"",
                "  anthropic:",
                "    api_key: \"from-file\"",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("OPENAI_API_KEY", "from-env")
    config = AppConfig.load(config_path)

    openai = config.provider_settings("openai")
    anthropic = config.provider_settings("anthropic")

    assert openai["model"] == "gpt-4o"
    assert openai["api_key"] == "from-env"
    assert openai["timeout"] == 45
    assert openai["language"] == "German"
    assert anthropic["api_key"] == "from-file"
