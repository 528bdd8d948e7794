"""
Base Image Provider
===================

Abstract boundary to the generative image/text service used by the studio.
"""

import os
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Tuple, Sequence
import httpx

from ..series.character import Character
from ..series.models import ImageResult, Setting

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


class BaseImageProvider(ABC):
    """
    Abstract base class for generation service providers.

    All image methods return the generated image as a ``data:`` URL and raise
    on failure. Quota exhaustion must surface as an error whose message
    mentions the quota so that batch orchestration can escalate it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key: API key (or read from environment)
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or self._get_api_key_from_env()
        self.base_url = base_url or self._get_default_base_url()
        self.timeout = timeout
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

        self._validate_config()

    # -------------------------------------------------------------------------
    # Abstract Methods
    # -------------------------------------------------------------------------

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @property
    @abstractmethod
    def env_key_names(self) -> Tuple[str, ...]:
        """Environment variables searched for the API key, in order."""
        pass

    @abstractmethod
    def _get_default_base_url(self) -> str:
        pass

    @abstractmethod
    async def generate_image(
        self,
        instruction: str,
        setting: Optional[Setting] = None,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        """Render an image from an instruction, matching the style references."""
        pass

    @abstractmethod
    async def generate_image_with_references(
        self,
        instruction: str,
        characters: Sequence[Character],
        setting: Optional[Setting] = None,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        """Render an image, also steering mentioned characters by their reference images."""
        pass

    @abstractmethod
    async def detect_language(self, script: str) -> str:
        pass

    @abstractmethod
    async def extract_details(
        self,
        script: str,
        language: str = "Vietnamese",
    ) -> Tuple[Setting, List[Character]]:
        """Research the script's setting and extract its characters."""
        pass

    @abstractmethod
    async def summarize_script(self, script: str, language: str = "Vietnamese") -> str:
        pass

    @abstractmethod
    async def generate_video_prompt(
        self,
        scene_description: str,
        image_url: str,
        characters: Sequence[Character],
        script_summary: str,
        language: str = "Vietnamese",
    ) -> str:
        """Write a short video-shot prompt for a scene keyframe."""
        pass

    @abstractmethod
    async def generate_thumbnail(
        self,
        topic: str,
        script: str,
        characters: Sequence[Character],
        setting: Optional[Setting] = None,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        pass

    @abstractmethod
    async def edit_image(
        self,
        instruction: str,
        image_url: str,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        pass

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    def _get_api_key_from_env(self) -> Optional[str]:
        for name in self.env_key_names:
            value = os.getenv(name)
            if value:
                return value
        return None

    def _validate_config(self) -> None:
        if not self.api_key:
            logger.warning(
                f"No API key found for {self.provider_name}. "
                f"Set {self.env_key_names[0]} environment variable or pass api_key parameter."
            )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.timeout),
                    headers=self._get_headers(),
                    transport=self._transport,
                )
            return self._client

    def _get_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP client."""
        async with self._client_lock:
            if self._client:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
