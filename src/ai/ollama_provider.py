"""
Local Ollama chat provider.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from utils.errors import ProviderError

from .base import MAX_TOKENS, TEMPERATURE, BaseProvider
from .images import ImagePayload

DEFAULT_URL = "http://localhost:11434"


class OllamaProvider(BaseProvider):
    """Ollama /api/chat; configured when the server answers /api/tags."""

    name = "ollama"
    label = "Ollama"
    supports_vision = True
    requires_api_key = False
    default_model = "llava"

    @property
    def base_url(self) -> str:
        return str(self.settings.get("url") or DEFAULT_URL).rstrip("/")

    def default_timeout(self) -> float:
        return 120.0

    def complete(
        self,
        prompt: str,
        system: str = "",
        image: Optional[ImagePayload] = None,
        max_tokens: int = MAX_TOKENS,
    ) -> str:
        messages: list[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        user: Dict[str, Any] = {"role": "user", "content": prompt}
        if image is not None:
            user["images"] = [image.data]
        messages.append(user)
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": TEMPERATURE, "num_predict": max_tokens},
        }
        data = self._post_json(f"{self.base_url}/api/chat", payload)
        message = data.get("message")
        if not isinstance(message, dict):
            raise ProviderError("Ollama reply has no message", self.name)
        return str(message.get("content") or "")

    def _check_configured(self) -> bool:
        try:
            self._list_models()
        except ProviderError:
            return False
        return True

    def get_available_models(self) -> list[str]:
        try:
            return self._list_models()
        except ProviderError as exc:
            self.logger.warning("Ollama model listing failed: %s", exc)
            return []

    def _missing_settings(self) -> Optional[str]:
        try:
            names = self._list_models()
        except ProviderError as exc:
            return f"Cannot reach Ollama at {self.base_url}: {exc}"
        if not any(name == self.model or name.startswith(f"{self.model}:") for name in names):
            return f"Model {self.model} is not pulled; run: ollama pull {self.model}"
        return None

    def _list_models(self) -> list[str]:
        data = self._get_json(f"{self.base_url}/api/tags", timeout=5.0)
        return [str(entry.get("name")) for entry in data.get("models") or [] if entry.get("name")]
