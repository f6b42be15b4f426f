"""
AI provider gateway and response normalization.
"""

from .base import DEFAULT_TIMEOUT, MAX_TIMEOUT, BaseProvider
from .factory import PROVIDERS, available_providers, create_provider, get_provider, register_provider
from .images import ImagePayload, load_image_payload
from .normalizer import parse as parse_response

__all__ = [
    "BaseProvider",
    "DEFAULT_TIMEOUT",
    "MAX_TIMEOUT",
    "PROVIDERS",
    "ImagePayload",
    "available_providers",
    "create_provider",
    "get_provider",
    "load_image_payload",
    "parse_response",
    "register_provider",
]
