"""
OpenAI-compatible chat completion providers: OpenAI, Azure OpenAI, Grok and Exo.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from utils.errors import ProviderError

from .base import MAX_TOKENS, TEMPERATURE, BaseProvider
from .images import ImagePayload


class OpenAICompatibleProvider(BaseProvider):
    """Shared request and reply handling for /chat/completions APIs."""

    base_url = ""

    def endpoint(self) -> str:
        base = str(self.settings.get("url") or self.base_url).rstrip("/")
        return f"{base}/chat/completions"

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, prompt: str, system: str, image: Optional[ImagePayload], max_tokens: int) -> Dict[str, Any]:
        messages: list[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        if image is not None:
            content: Any = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image.data_uri}},
            ]
        else:
            content = prompt
        messages.append({"role": "user", "content": content})
        payload: Dict[str, Any] = {
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": TEMPERATURE,
        }
        if self.model:
            payload["model"] = self.model
        return payload

    def complete(
        self,
        prompt: str,
        system: str = "",
        image: Optional[ImagePayload] = None,
        max_tokens: int = MAX_TOKENS,
    ) -> str:
        data = self._post_json(self.endpoint(), self.build_payload(prompt, system, image, max_tokens), self.headers())
        choices = data.get("choices") or []
        if not choices:
            raise ProviderError(f"{self.label} reply has no choices", self.name)
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise self._shape_error("choices")
        message = choices[0].get("message") or {}
        if not isinstance(message, dict):
            raise self._shape_error("choices[0].message")
        content = message.get("content")
        if isinstance(content, list):
            content = "".join(str(part.get("text", "")) for part in content if isinstance(part, dict))
        return str(content or "")


class OpenAIProvider(OpenAICompatibleProvider):
    name = "openai"
    label = "OpenAI"
    supports_vision = True
    base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini"
    models = ("gpt-4o-mini", "gpt-4o", "gpt-4-turbo")


class AzureOpenAIProvider(OpenAICompatibleProvider):
    """Azure deployment; the deployment name selects the model."""

    name = "azure_openai"
    label = "Azure OpenAI"
    supports_vision = True
    default_api_version = "2024-02-15-preview"

    def endpoint(self) -> str:
        base = str(self.settings.get("endpoint") or "").rstrip("/")
        deployment = self.settings.get("deployment") or ""
        version = self.settings.get("api_version") or self.default_api_version
        return f"{base}/openai/deployments/{deployment}/chat/completions?api-version={version}"

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "api-key": self.api_key}

    def _check_configured(self) -> bool:
        return bool(self.api_key and self.settings.get("endpoint") and self.settings.get("deployment"))

    def _missing_settings(self) -> Optional[str]:
        if not self.api_key:
            return "Azure OpenAI API key is required"
        if not self.settings.get("endpoint"):
            return "Azure OpenAI endpoint is required"
        if not self.settings.get("deployment"):
            return "Azure OpenAI deployment name is required"
        return None

    @property
    def model(self) -> str:
        return ""

    def get_available_models(self) -> list[str]:
        deployment = self.settings.get("deployment")
        return [deployment] if deployment else []


class GrokProvider(OpenAICompatibleProvider):
    name = "grok"
    label = "Grok"
    base_url = "https://api.x.ai/v1"
    default_model = "grok-2"
    models = ("grok-beta", "grok-2", "grok-2-mini")


class ExoProvider(OpenAICompatibleProvider):
    """Local exo cluster exposing an OpenAI-compatible API."""

    name = "exo"
    label = "Exo"
    supports_vision = True
    requires_api_key = False
    base_url = "http://localhost:52415/v1"
    default_model = "llama-3.2-3b"

    def default_timeout(self) -> float:
        return 120.0

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
            self.logger.warning("Exo model listing failed: %s", exc)
            return []

    def _list_models(self) -> list[str]:
        base = str(self.settings.get("url") or self.base_url).rstrip("/")
        data = self._get_json(f"{base}/models", timeout=5.0)
        entries = data.get("data") or []
        if not isinstance(entries, list):
            raise self._shape_error("data")
        return [str(entry.get("id")) for entry in entries if isinstance(entry, dict) and entry.get("id")]
