"""
API Integration Layer
=====================

Boundary to the external generative image/text service.

Usage:
    from series_studio.api import get_provider

    async with get_provider("gemini") as provider:
        url = await provider.generate_image("Cockpit view at dusk")
"""

from .base import BaseImageProvider
from .factory import get_provider, list_providers, register_provider

__all__ = [
    "BaseImageProvider",
    "get_provider",
    "list_providers",
    "register_provider",
]
