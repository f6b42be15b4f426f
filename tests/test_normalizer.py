import pytest

from ai.normalizer import clamp_confidence, parse
from utils.errors import ParseError

PATHS = {"Vacation 2025": 14, "Events": 3, "Events/Outdoor": 4}


def test_map_overrides_supplied_folder_id() -> None:
    raw = '{"action": "existing", "folder_path": "Vacation 2025", "folder_id": 13, "confidence": 0.8, "reason": "beach"}'

    decision = parse(raw, PATHS)

    assert decision.action == "assign"
    assert decision.folder_id == 14
    assert decision.folder_path == "Vacation 2025"
    assert decision.confidence == 0.8


def test_id_suffix_is_stripped_before_lookup() -> None:
    decision = parse('{"action": "assign", "folder_path": "Vacation 2025 (ID: 14)"}', PATHS)

    assert decision.action == "assign"
    assert decision.folder_id == 14


def test_code_fence_and_soft_hyphens_are_removed() -> None:
    raw = '```json\n{"action": "existing", "folder_path": "Ev\N{SOFT HYPHEN}ents", "confidence": 0.9}\n```'

    decision = parse(raw, PATHS)

    assert decision.folder_id == 3


def test_known_folder_id_used_when_path_missing() -> None:
    decision = parse('{"action": "existing", "folder_id": "4", "confidence": 0.6}', PATHS)

    assert decision.folder_id == 4
    assert decision.folder_path == "Events/Outdoor"


def test_unknown_folder_downgrades_to_skip() -> None:
    decision = parse('{"action": "existing", "folder_path": "Invented", "folder_id": 77}', PATHS)

    assert decision.action == "skip"
    assert "Invented" in decision.reason


def test_create_without_path_downgrades_to_skip() -> None:
    decision = parse('{"action": "new", "new_folder_path": "  ", "confidence": 0.7}', PATHS)

    assert decision.action == "skip"
    assert decision.reason


def test_emoji_stripped_from_new_path_segments() -> None:
    raw = '{"action": "new", "new_folder_path": "\U0001F3D6 Beaches/\U0001F30A/Sunsets \N{BLACK SUN WITH RAYS}", "confidence": 0.5}'

    decision = parse(raw, PATHS)

    assert decision.action == "create"
    assert decision.new_folder_path == "Beaches/Sunsets"


def test_legacy_create_schema_uses_folder_path() -> None:
    decision = parse('{"action": "create", "folder_path": "Products/Shoes"}', PATHS)

    assert decision.action == "create"
    assert decision.new_folder_path == "Products/Shoes"
    assert decision.confidence == 0.0


def test_truncated_reply_is_salvaged() -> None:
    raw = '{"action": "new", "new_folder_path": "Nature/Birds", "confidence": 0.75, "reason": "A heron stand'

    decision = parse(raw, PATHS)

    assert decision.action == "create"
    assert decision.new_folder_path == "Nature/Birds"
    assert decision.confidence == 0.75
    assert decision.reason.startswith("A heron")


def test_truncated_key_falls_back_to_last_complete_field() -> None:
    raw = '{"action": "skip", "reason": "blurry", "confid'

    decision = parse(raw, PATHS)

    assert decision.action == "skip"
    assert decision.reason == "blurry"


def test_newlines_inside_strings_are_repaired() -> None:
    raw = 'Here you go:\n{"action": "skip", "reason": "line one\nline two"}'

    decision = parse(raw, PATHS)

    assert decision.reason == "line one\nline two"


@pytest.mark.parametrize("raw", ["", "   ", "no json here", '{"action": "teleport"}', "[1, 2]"])
def test_unusable_replies_raise(raw: str) -> None:
    with pytest.raises(ParseError):
        parse(raw, PATHS)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1.7, 1.0), (-0.2, 0.0), ("0.4", 0.4), (None, 0.0), ("high", 0.0), (True, 0.0)],
)
def test_confidence_is_clamped(value, expected) -> None:
    assert clamp_confidence(value) == expected
