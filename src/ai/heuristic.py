"""
Network-free fallback provider based on filename and metadata patterns.
"""

from __future__ import annotations

import json
import re
from typing import Dict, Optional

from database import MediaItem
from utils.errors import ProviderError

from .base import MAX_TOKENS, BaseProvider
from .images import ImagePayload

MATCH_THRESHOLD = 0.3
NEW_FOLDER_CONFIDENCE = 0.5

MIME_CATEGORY_WORDS = {
    "image": ("images", "photos", "pictures", "graphics", "media"),
    "video": ("videos", "movies", "clips", "media"),
    "audio": ("audio", "music", "sounds", "podcasts", "media"),
    "application": ("documents", "files", "docs", "pdfs"),
}

# Text pattern -> folder words that indicate a matching folder.
CONTENT_PATTERNS = {
    "screenshot": ("screenshots", "screen-captures", "screens"),
    "logo": ("logos", "branding", "brand"),
    "icon": ("icons", "ui", "interface"),
    "banner": ("banners", "headers", "hero"),
    "product": ("products", "shop", "store", "inventory"),
    "team": ("team", "staff", "people", "employees"),
    "event": ("events", "occasions", "gatherings"),
    "blog": ("blog", "posts", "articles"),
}

BASE_FOLDERS = {"image": "Images", "video": "Videos", "audio": "Audio", "application": "Documents"}

SUBCATEGORIES = {
    "screenshot": "Screenshots",
    "logo": "Logos",
    "icon": "Icons",
    "banner": "Banners",
    "photo": "Photos",
    "product": "Products",
    "background": "Backgrounds",
}

YEAR_PATTERN = re.compile(r"\b(20\d{2})\b")


class HeuristicProvider(BaseProvider):
    """Deterministic pattern matcher; always configured, never calls the network."""

    name = "heuristic"
    label = "Heuristic (no AI)"
    requires_api_key = False
    models = ("heuristic",)

    def analyze(
        self,
        item: MediaItem,
        folder_context: Dict[str, int],
        max_depth: int,
        allow_new_folders: bool,
        image: Optional[ImagePayload] = None,
        suggested_folders: Optional[list[str]] = None,
    ) -> str:
        text = " ".join(
            value.lower() for value in (item.filename, item.alt_text, item.caption, item.description) if value
        )
        best_path: Optional[str] = None
        best_score = 0.0
        for path, folder_id in folder_context.items():
            score = match_score(path, text, item.mime_type)
            if score > best_score:
                best_path, best_score = path, score

        if best_path is not None and best_score >= MATCH_THRESHOLD:
            reply = {
                "action": "assign",
                "folder_id": folder_context[best_path],
                "folder_path": best_path,
                "confidence": min(best_score, 1.0),
                "reason": f'Matched folder "{best_path}" on filename and metadata patterns',
            }
        elif allow_new_folders:
            reply = {
                "action": "create",
                "new_folder_path": suggest_folder(item, max_depth),
                "confidence": NEW_FOLDER_CONFIDENCE,
                "reason": "Suggested new folder from file type and name",
            }
        else:
            reply = {"action": "skip", "confidence": 0.0, "reason": "No suitable folder match found"}
        return json.dumps(reply)

    def complete(
        self,
        prompt: str,
        system: str = "",
        image: Optional[ImagePayload] = None,
        max_tokens: int = MAX_TOKENS,
    ) -> str:
        raise ProviderError("Heuristic provider does not accept free-form prompts", self.name)

    def test(self, settings=None) -> Optional[str]:
        return None


def match_score(folder_path: str, text: str, mime_type: str) -> float:
    """Score how well a folder path fits the lowercased item text."""
    path = folder_path.lower()
    folder_name = path.rsplit("/", 1)[-1]
    score = 0.0
    if folder_name and folder_name in text:
        score += 0.5
    category = (mime_type or "").split("/", 1)[0].lower()
    if any(word in path for word in MIME_CATEGORY_WORDS.get(category, ())):
        score += 0.3
    for pattern, folder_words in CONTENT_PATTERNS.items():
        if pattern in text and any(word in path for word in folder_words):
            score += 0.4
            break
    year = YEAR_PATTERN.search(text)
    if year and year.group(1) in path:
        score += 0.3
    return score


def suggest_folder(item: MediaItem, max_depth: int) -> str:
    category = (item.mime_type or "").split("/", 1)[0].lower()
    base = BASE_FOLDERS.get(category, "Media")
    if max_depth <= 1:
        return base
    filename = item.filename.lower()
    for pattern, subcategory in SUBCATEGORIES.items():
        if pattern in filename:
            return f"{base}/{subcategory}"
    return base
