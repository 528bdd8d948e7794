"""
Provider Factory
================

Registry and factory for generation service providers.
"""

import logging
from typing import Dict, List, Type

from .base import BaseImageProvider

logger = logging.getLogger(__name__)

_PROVIDERS: Dict[str, Type[BaseImageProvider]] = {}


def register_provider(name: str):
    """Decorator to register a provider class."""
    def decorator(cls: Type[BaseImageProvider]):
        _PROVIDERS[name.lower()] = cls
        return cls
    return decorator


def get_provider(name: str = "gemini", **kwargs) -> BaseImageProvider:
    """
    Get a generation provider instance.

    Args:
        name: Provider name (e.g., 'gemini')
        **kwargs: Provider constructor arguments (api_key, base_url, ...)

    Returns:
        Configured provider instance

    Raises:
        ValueError: If provider name is not recognized
    """
    name_lower = name.lower()

    if name_lower not in _PROVIDERS and name_lower == "gemini":
        from .gemini import GeminiProvider  # noqa: F401  (registers itself)

    provider_class = _PROVIDERS.get(name_lower)
    if provider_class is None:
        raise ValueError(f"Unknown provider: {name}")

    logger.debug(f"Creating provider: {name_lower}")
    return provider_class(**kwargs)


def list_providers() -> List[str]:
    """List all registered provider names."""
    from . import gemini  # noqa: F401

    return list(_PROVIDERS.keys())
