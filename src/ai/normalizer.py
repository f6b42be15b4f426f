"""
Turn raw provider replies into validated Decision values.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, Optional

from organization.models import ACTION_ASSIGN, ACTION_CREATE, ACTION_SKIP, Decision
from organization.tree import PATH_SEPARATOR, normalize_path
from utils.errors import ParseError

LOGGER = logging.getLogger("media_organizer")

FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
OPEN_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
# Control characters other than tab, LF and CR, plus invisible format characters.
INVISIBLE_PATTERN = re.compile(
    "[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f"
    "\U000000AD\U0000200B-\U0000200F\U00002028\U00002029\U00002060\U0000FEFF]"
)
ID_SUFFIX_PATTERN = re.compile(r"\s*\(\s*ID:\s*-?\d+\s*\)\s*$", re.IGNORECASE)
EMOJI_PATTERN = re.compile(
    "["
    "\U0001F000-\U0001FAFF"
    "\U000E0000-\U000E007F"
    "\U00002300-\U000023FF"
    "\U00002600-\U000027BF"
    "\U00002B00-\U00002BFF"
    "\U00003030\U0000303D\U00003297\U00003299"
    "\U000020E3\U0000FE0E\U0000FE0F"
    "]"
)

ACTION_ALIASES = {
    "existing": ACTION_ASSIGN,
    "assign": ACTION_ASSIGN,
    "new": ACTION_CREATE,
    "create": ACTION_CREATE,
    "skip": ACTION_SKIP,
}

NBSP = "\U000000A0"

_DECODER = json.JSONDecoder()


def parse(raw_text: Optional[str], path_map: Dict[str, int]) -> Decision:
    """Normalize a provider reply against the authoritative path -> ID map.

    Raises ParseError when no JSON object can be recovered; every other
    inconsistency (unknown folder, missing path) becomes a skip decision.
    """
    data = decode_reply(raw_text)
    action = ACTION_ALIASES.get(str(data.get("action") or "").strip().lower())
    if action is None:
        raise ParseError(f"Unknown action in reply: {data.get('action')!r}")
    confidence = clamp_confidence(data.get("confidence"))
    reason = str(data.get("reason") or "").strip()

    if action == ACTION_SKIP:
        return Decision.skip(reason or "Provider found no suitable folder", confidence)
    if action == ACTION_ASSIGN:
        return _assign_decision(data, path_map, confidence, reason)
    return _create_decision(data, confidence, reason)


def decode_reply(raw_text: Optional[str]) -> Dict[str, Any]:
    """Extract the JSON object from a reply, salvaging truncated output."""
    text = (raw_text or "").strip()
    if not text:
        raise ParseError("Empty response from provider")
    fenced = FENCE_PATTERN.search(text)
    if fenced:
        text = fenced.group(1).strip()
    else:
        text = OPEN_FENCE_PATTERN.sub("", text)
    text = INVISIBLE_PATTERN.sub("", text).replace(NBSP, " ")
    start = text.find("{")
    if start < 0:
        raise ParseError("No JSON object in provider reply")
    text = escape_string_newlines(text[start:])
    try:
        data, _ = _DECODER.raw_decode(text)
    except json.JSONDecodeError:
        data = salvage_truncated(text)
        LOGGER.warning("Salvaged truncated provider reply")
    if not isinstance(data, dict):
        raise ParseError("Provider reply is not a JSON object")
    return data


def escape_string_newlines(text: str) -> str:
    """Escape raw newlines and tabs that appear inside JSON string literals."""
    out: list[str] = []
    in_string = escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char == "\n":
                out.append("\\n")
                continue
            elif char == "\r":
                out.append("\\r")
                continue
            elif char == "\t":
                out.append("\\t")
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def salvage_truncated(text: str) -> Dict[str, Any]:
    """Close a truncated object, falling back to the last complete field."""
    stack: list[str] = []
    cut_points: list[tuple[int, list[str]]] = []
    in_string = escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]":
            if not stack:
                break
            stack.pop()
            if not stack:
                # Complete object followed by noise the decoder rejected.
                cut_points.append((index + 1, []))
                break
        elif char == ",":
            cut_points.append((index, list(stack)))

    candidates: list[str] = []
    tail = text.rstrip()
    if in_string:
        tail = tail[:-1] if escaped else tail
        tail += '"'
    candidates.append(tail + "".join(reversed(stack)))
    for position, open_stack in reversed(cut_points):
        candidates.append(text[:position] + "".join(reversed(open_stack)))

    for candidate in candidates:
        try:
            data, _ = _DECODER.raw_decode(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise ParseError("Malformed provider reply could not be salvaged")


def clamp_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(max(number, 0.0), 1.0)


def strip_id_suffix(path: str) -> str:
    return ID_SUFFIX_PATTERN.sub("", path).strip()


def clean_new_path(path: str) -> str:
    """Remove emoji from each segment and drop segments left empty."""
    segments = []
    for segment in path.split(PATH_SEPARATOR):
        cleaned = re.sub(r"\s+", " ", EMOJI_PATTERN.sub("", segment)).strip()
        if cleaned:
            segments.append(cleaned)
    return PATH_SEPARATOR.join(segments)


def lookup_path(path: str, path_map: Dict[str, int]) -> Optional[tuple[str, int]]:
    """Find ``path`` in the map exactly, then ignoring case and spacing."""
    if path in path_map:
        return path, path_map[path]
    target = normalize_path(path)
    for candidate, folder_id in path_map.items():
        if normalize_path(candidate) == target:
            return candidate, folder_id
    return None


def _assign_decision(data: Dict[str, Any], path_map: Dict[str, int], confidence: float, reason: str) -> Decision:
    raw_path = data.get("folder_path")
    folder_path = strip_id_suffix(raw_path) if isinstance(raw_path, str) else ""
    # The map is ground truth: a resolved path overrides any supplied ID.
    match = lookup_path(folder_path, path_map) if folder_path else None
    if match is None:
        supplied = _coerce_id(data.get("folder_id"))
        paths_by_id = {value: key for key, value in path_map.items()}
        if supplied is not None and supplied in paths_by_id:
            match = paths_by_id[supplied], supplied
    if match is None:
        target = folder_path or data.get("folder_id")
        return Decision.skip(f"Provider chose unknown folder {target!r}", confidence)
    return Decision(
        action=ACTION_ASSIGN,
        folder_id=match[1],
        folder_path=match[0],
        confidence=confidence,
        reason=reason,
    )


def _create_decision(data: Dict[str, Any], confidence: float, reason: str) -> Decision:
    raw_path = data.get("new_folder_path") or data.get("folder_path") or ""
    path = clean_new_path(strip_id_suffix(raw_path)) if isinstance(raw_path, str) else ""
    if not path:
        return Decision.skip("Provider proposed a new folder without a usable path", confidence)
    return Decision(
        action=ACTION_CREATE,
        new_folder_path=path,
        confidence=confidence,
        reason=reason,
    )


def _coerce_id(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None
