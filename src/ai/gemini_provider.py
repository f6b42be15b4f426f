"""
Google Gemini generateContent provider.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from utils.errors import ProviderError

from .base import MAX_TOKENS, TEMPERATURE, BaseProvider
from .images import ImagePayload

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiProvider(BaseProvider):
    name = "gemini"
    label = "Gemini"
    supports_vision = True
    default_model = "gemini-1.5-flash"
    models = ("gemini-1.5-flash", "gemini-1.5-pro", "gemini-2.0-flash")

    def complete(
        self,
        prompt: str,
        system: str = "",
        image: Optional[ImagePayload] = None,
        max_tokens: int = MAX_TOKENS,
    ) -> str:
        parts: list[Dict[str, Any]] = [{"text": prompt}]
        if image is not None:
            parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.data}})
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": max_tokens},
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        url = f"{str(self.settings.get('url') or API_BASE).rstrip('/')}/{self.model}:generateContent"
        data = self._post_json(url, payload, {"Content-Type": "application/json"}, params={"key": self.api_key})
        candidates = data.get("candidates") or []
        if not candidates:
            raise ProviderError("Gemini reply has no candidates", self.name)
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise self._shape_error("candidates")
        content = candidates[0].get("content") or {}
        if not isinstance(content, dict):
            raise self._shape_error("candidates[0].content")
        reply_parts = content.get("parts") or []
        if not isinstance(reply_parts, list) or not all(isinstance(part, dict) for part in reply_parts):
            raise self._shape_error("candidates[0].content.parts")
        return "".join(str(part.get("text", "")) for part in reply_parts)
