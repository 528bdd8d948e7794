"""
Configuration System
====================

Centralized, validated configuration management with typed dataclasses.
"""

import os
import re
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any, Union
import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class GenerationConfig:
    """Batch generation settings."""

    pacing_delay: float = 2.5
    call_timeout: Optional[float] = 180.0
    image_model: str = "gemini-2.5-flash-image"
    text_model: str = "gemini-2.5-flash"
    reasoning_model: str = "gemini-2.5-pro"
    max_attempts: int = 2
    default_language: str = "Vietnamese"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate configuration values."""
        if self.pacing_delay < 0:
            raise ConfigurationError(
                f"pacing_delay must be >= 0, got {self.pacing_delay}",
                config_key="generation.pacing_delay",
            )
        if self.call_timeout is not None and self.call_timeout <= 0:
            raise ConfigurationError(
                f"call_timeout must be positive or null, got {self.call_timeout}",
                config_key="generation.call_timeout",
            )
        if not 1 <= self.max_attempts <= 5:
            raise ConfigurationError(
                f"max_attempts must be 1-5, got {self.max_attempts}",
                config_key="generation.max_attempts",
            )


@dataclass
class ThumbnailConfig:
    """Thumbnail variant settings."""

    count: int = 4

    def __post_init__(self):
        if not 1 <= self.count <= 8:
            raise ConfigurationError(
                f"Thumbnail count must be 1-8, got {self.count}",
                config_key="thumbnails.count",
            )


@dataclass
class ReferenceConfig:
    """Reference image settings."""

    max_dimension: int = 1536
    jpeg_quality: int = 90


@dataclass
class ProviderConfig:
    """Generation service connection settings."""

    name: str = "gemini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    request_timeout: int = 300

    VALID_PROVIDERS = {"gemini"}

    def __post_init__(self):
        if self.name not in self.VALID_PROVIDERS:
            raise ConfigurationError(
                f"Invalid provider: {self.name}",
                config_key="provider.name",
            )


@dataclass
class ProjectConfig:
    """Project file settings."""

    default_member_name: str = "Member 1"
    file_suffix: str = ".tmproj"


# =============================================================================
# Main Configuration Class
# =============================================================================


@dataclass
class Config:
    """
    Main configuration container with validation and loading.

    Provides a unified interface to all configuration settings with:
    - Type-safe access to configuration values
    - Validation on load
    - Environment variable interpolation
    - Sensible defaults for all values
    """

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    thumbnails: ThumbnailConfig = field(default_factory=ThumbnailConfig)
    references: ReferenceConfig = field(default_factory=ReferenceConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    project: ProjectConfig = field(default_factory=ProjectConfig)

    _raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    SECTIONS = ("generation", "thumbnails", "references", "provider", "project")

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "Config":
        """
        Load configuration from file with environment variable interpolation.

        Args:
            path: Path to a YAML config file

        Returns:
            Validated Config instance
        """
        search_paths = [
            Path("./config/studio.yaml"),
            Path("./studio.yaml"),
            Path.home() / ".series-studio" / "config.yaml",
        ]

        if path:
            search_paths.insert(0, Path(path))

        config_data = {}

        for search_path in search_paths:
            if search_path.exists():
                logger.info(f"Loading config from: {search_path}")
                try:
                    with open(search_path, "r") as f:
                        config_data = yaml.safe_load(f) or {}
                    break
                except yaml.YAMLError as e:
                    raise ConfigurationError(
                        f"Invalid YAML in config file: {e}",
                        config_key=str(search_path),
                    )
        else:
            logger.info("No config file found, using defaults")

        config_data = cls._interpolate_env_vars(config_data)

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary with validation."""
        try:
            return cls(
                generation=GenerationConfig(**(data.get("generation") or {})),
                thumbnails=ThumbnailConfig(**(data.get("thumbnails") or {})),
                references=ReferenceConfig(**(data.get("references") or {})),
                provider=ProviderConfig(**(data.get("provider") or {})),
                project=ProjectConfig(**(data.get("project") or {})),
                _raw=data,
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @staticmethod
    def _interpolate_env_vars(data: Any) -> Any:
        """Recursively interpolate ${VAR} patterns with environment variables."""
        if isinstance(data, str):
            # Handle ${VAR} and ${VAR:-default} patterns
            pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

            def replace(match):
                var_name = match.group(1)
                default = match.group(2) or ""
                return os.environ.get(var_name, default)

            return re.sub(pattern, replace, data)
        elif isinstance(data, dict):
            return {k: Config._interpolate_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [Config._interpolate_env_vars(item) for item in data]
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {section: asdict(getattr(self, section)) for section in self.SECTIONS}


# =============================================================================
# Convenience Functions
# =============================================================================


_global_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance (lazily loaded)."""
    global _global_config
    if _global_config is None:
        _global_config = Config.load()
    return _global_config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset global configuration to None (forces reload on next access)."""
    global _global_config
    _global_config = None
