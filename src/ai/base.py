"""
Provider gateway interface shared by every AI backend.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from database import MediaItem
from utils.errors import ProviderError

from . import prompts
from .images import ImagePayload

DEFAULT_TIMEOUT = 30.0
MAX_TIMEOUT = 300.0
MAX_TOKENS = 500
TEMPERATURE = 0.3
TEST_PROMPT = 'Say "OK" if you can read this.'


class BaseProvider(ABC):
    """Uniform analyze/test/is_configured/get_available_models surface.

    Subclasses implement ``complete``; HTTP goes through ``_post_json`` and
    ``_get_json`` so every call carries the bounded timeout and surfaces
    failures as ``ProviderError``.
    """

    name = ""
    label = ""
    supports_vision = False
    requires_api_key = True
    default_model = ""
    models: tuple[str, ...] = ()

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = dict(settings or {})
        self.client = client
        self.logger = logger or logging.getLogger("media_organizer")
        self._configured: Optional[bool] = None

    @property
    def timeout(self) -> float:
        try:
            value = float(self.settings.get("timeout") or self.default_timeout())
        except (TypeError, ValueError):
            value = self.default_timeout()
        return min(max(value, 1.0), MAX_TIMEOUT)

    @property
    def model(self) -> str:
        return str(self.settings.get("model") or self.default_model)

    @property
    def api_key(self) -> str:
        return str(self.settings.get("api_key") or "")

    @property
    def language(self) -> str:
        return str(self.settings.get("language") or "English")

    def default_timeout(self) -> float:
        return DEFAULT_TIMEOUT

    def is_configured(self) -> bool:
        """Cached configuration check; resolved once per provider instance."""
        if self._configured is None:
            self._configured = self._check_configured()
        return self._configured

    def _check_configured(self) -> bool:
        return bool(self.api_key) if self.requires_api_key else True

    def get_available_models(self) -> list[str]:
        return list(self.models)

    def test(self, settings: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Check connectivity; returns None on success or a diagnostic message."""
        provider = self if settings is None else type(self)(settings, client=self.client, logger=self.logger)
        missing = provider._missing_settings()
        if missing:
            return missing
        try:
            provider.complete(TEST_PROMPT, max_tokens=10)
        except ProviderError as exc:
            return str(exc)
        return None

    def _missing_settings(self) -> Optional[str]:
        if self.requires_api_key and not self.api_key:
            return f"{self.label} API key is required"
        return None

    def analyze(
        self,
        item: MediaItem,
        folder_context: Dict[str, int],
        max_depth: int,
        allow_new_folders: bool,
        image: Optional[ImagePayload] = None,
        suggested_folders: Optional[list[str]] = None,
    ) -> str:
        """Ask the backend to classify one item and return its raw reply."""
        system = prompts.build_system_prompt(self.language)
        user = prompts.build_user_prompt(
            item,
            folder_context,
            max_depth=max_depth,
            allow_new_folders=allow_new_folders,
            suggested_folders=suggested_folders or [],
            has_image=image is not None and self.supports_vision,
        )
        return self.complete(user, system=system, image=image if self.supports_vision else None)

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system: str = "",
        image: Optional[ImagePayload] = None,
        max_tokens: int = MAX_TOKENS,
    ) -> str:
        """Send one prompt and return the reply text."""

    def _shape_error(self, where: str) -> ProviderError:
        return ProviderError(f"{self.label} unexpected reply shape at {where}", self.name)

    def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        return self._request("POST", url, payload=payload, headers=headers, params=params)

    def _get_json(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        return self._request("GET", url, headers=headers, params=params, timeout=timeout)

    def _request(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        timeout = timeout or self.timeout
        try:
            if self.client is not None:
                response = self.client.request(
                    method, url, json=payload, headers=headers, params=params, timeout=timeout
                )
            else:
                response = httpx.request(
                    method, url, json=payload, headers=headers, params=params, timeout=timeout
                )
        except httpx.TimeoutException as exc:
            raise ProviderError(f"{self.label} request timed out after {timeout:.0f}s", self.name) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.label} request failed: {exc}", self.name) from exc
        if response.status_code >= 400:
            raise ProviderError(
                f"{self.label} HTTP {response.status_code}: {_error_message(response)}", self.name
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.label} returned invalid JSON", self.name) from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.label} returned an unexpected body", self.name)
        return data


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if data.get("message"):
            return str(data["message"])
    return response.text[:200]
