"""
Deterministic routing of non-image media to fixed top-level folders.
"""

from __future__ import annotations

from typing import Optional

DOCUMENTS_FOLDER = "Documents"
VIDEOS_FOLDER = "Videos"
AUDIO_FOLDER = "Audio"


def route_folder(mime_type: str) -> Optional[str]:
    """Return the fixed folder name for a mime type, or None for images.

    Folder names are never translated. Anything that is not image, video or
    audio (pdf, office, text, archives, unknown) lands in Documents.
    """
    mime = (mime_type or "").strip().lower()
    if mime.startswith("image/"):
        return None
    if mime.startswith("video/"):
        return VIDEOS_FOLDER
    if mime.startswith("audio/"):
        return AUDIO_FOLDER
    return DOCUMENTS_FOLDER
