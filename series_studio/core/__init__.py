"""
Core Module
===========

Core utilities, configuration, and exceptions for Series Studio.
"""

from .config import Config, GenerationConfig, ThumbnailConfig, get_config, set_config
from .exceptions import (
    StudioError,
    ConfigurationError,
    ProviderError,
    QuotaExceededError,
    GenerationError,
    GenerationTimeoutError,
    ValidationError,
    ResourceNotFoundError,
    is_quota_message,
)
from .security import sanitize_filename, redact_api_key

__all__ = [
    # Configuration
    "Config",
    "GenerationConfig",
    "ThumbnailConfig",
    "get_config",
    "set_config",
    # Exceptions
    "StudioError",
    "ConfigurationError",
    "ProviderError",
    "QuotaExceededError",
    "GenerationError",
    "GenerationTimeoutError",
    "ValidationError",
    "ResourceNotFoundError",
    "is_quota_message",
    # Security
    "sanitize_filename",
    "redact_api_key",
]
