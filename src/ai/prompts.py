"""
Prompt templates for folder classification.
"""

from __future__ import annotations

from typing import Dict

from database import MediaItem

EXIF_FIELDS = ("camera", "make", "model", "created_timestamp", "date_taken", "title", "keywords", "location")

SYSTEM_PROMPT = """You organize a media library into folders.
Reply with a single JSON object and nothing else, using one of these forms:
{{"action": "existing", "folder_path": "<path from the list>", "folder_id": <id>, "confidence": <0-1>, "reason": "<short reason>"}}
{{"action": "new", "new_folder_path": "<Parent/Child>", "confidence": <0-1>, "reason": "<short reason>"}}
{{"action": "skip", "confidence": <0-1>, "reason": "<why no folder fits>"}}
Rules:
- Prefer an existing folder when one fits.
- Folder names are short, plain words in {language}; no emoji, no dates unless the content is about a date.
- Use "/" to separate nesting levels.
- Never invert an existing hierarchy: if "A/B" exists, do not propose "B/A".
"""


def build_system_prompt(language: str = "English") -> str:
    return SYSTEM_PROMPT.format(language=language or "English")


def build_user_prompt(
    item: MediaItem,
    folder_context: Dict[str, int],
    max_depth: int,
    allow_new_folders: bool,
    suggested_folders: list[str],
    has_image: bool = False,
) -> str:
    """Describe the item, the current folders and the creation constraints."""
    lines = ["Media item:", f"- Filename: {item.filename}", f"- Type: {item.mime_type}"]
    for label, value in (
        ("Title", item.title),
        ("Alt text", item.alt_text),
        ("Caption", item.caption),
        ("Description", item.description),
    ):
        if value:
            lines.append(f"- {label}: {value}")
    exif = {key: item.exif[key] for key in EXIF_FIELDS if item.exif.get(key)}
    if exif:
        lines.append("- EXIF: " + ", ".join(f"{key}={value}" for key, value in exif.items()))
    if has_image:
        lines.append("The image itself is attached.")

    lines.append("")
    if folder_context:
        lines.append("Existing folders:")
        lines.extend(f"- {path} (ID: {folder_id})" for path, folder_id in folder_context.items())
    else:
        lines.append("There are no folders yet.")

    if suggested_folders:
        lines.append("")
        lines.append("Folders already proposed in this scan (reuse if applicable):")
        lines.extend(f"- {path}" for path in sorted(suggested_folders, key=str.casefold))

    lines.append("")
    if allow_new_folders:
        lines.append(
            f"You may propose a new folder path at most {max_depth} levels deep "
            "if no existing folder fits."
        )
    else:
        lines.append("Do not propose new folders; choose an existing folder or skip.")
    return "\n".join(lines)
