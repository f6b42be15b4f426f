"""
Anthropic messages API provider.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from utils.errors import ProviderError

from .base import MAX_TOKENS, TEMPERATURE, BaseProvider
from .images import ImagePayload

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    name = "anthropic"
    label = "Anthropic"
    supports_vision = True
    default_model = "claude-3-haiku-20240307"
    models = (
        "claude-3-haiku-20240307",
        "claude-3-5-sonnet-20241022",
        "claude-3-opus-20240229",
    )

    def complete(
        self,
        prompt: str,
        system: str = "",
        image: Optional[ImagePayload] = None,
        max_tokens: int = MAX_TOKENS,
    ) -> str:
        content: list[Dict[str, Any]] = []
        if image is not None:
            content.append(
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": image.mime_type, "data": image.data},
                }
            )
        content.append({"type": "text", "text": prompt})
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": TEMPERATURE,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            payload["system"] = system
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }
        data = self._post_json(str(self.settings.get("url") or API_URL), payload, headers)
        blocks = data.get("content") or []
        if not isinstance(blocks, list) or not all(isinstance(block, dict) for block in blocks):
            raise self._shape_error("content")
        text = "".join(str(block.get("text", "")) for block in blocks if block.get("type") == "text")
        if not text and not blocks:
            raise ProviderError("Anthropic reply has no content", self.name)
        return text
