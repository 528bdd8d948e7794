"""
Series Studio
=============

Script-driven image series production against a generative image service.

Features:
- Script analysis into a researched setting and a character list
- Character previews and likeness references
- Scene series with multiple shots per prompt, generated strictly one
  call at a time with pacing, cooperative stop and quota escalation
- Retry of failed images, video prompts, thumbnails and image edits
- Team attribution and portable project files

Quick Start:
    from series_studio import SeriesStudio, get_provider

    async with get_provider("gemini") as provider:
        studio = SeriesStudio(provider)
        studio.script = script_text
        await studio.analyze_script()
        studio.proceed_to_series()
        await studio.generate_series()
        studio.save("my-series.tmproj")
"""

__version__ = "0.1.0"

from .core import (
    Config,
    get_config,
    set_config,
    StudioError,
    ProviderError,
    QuotaExceededError,
    GenerationError,
    ValidationError,
)
from .series import (
    Character,
    ImageKey,
    ImageResult,
    ImageStatus,
    SeriesPrompt,
    Setting,
    TeamMember,
    series_image_id,
    parse_variation_index,
)
from .workflow import (
    BatchSignals,
    CharacterPreviewRunner,
    GenerationRunner,
    GenerationTask,
    ResultLedger,
    SequentialDrain,
    SeriesStudio,
)
from .api import get_provider, list_providers

__all__ = [
    "__version__",
    # Configuration
    "Config",
    "get_config",
    "set_config",
    # Exceptions
    "StudioError",
    "ProviderError",
    "QuotaExceededError",
    "GenerationError",
    "ValidationError",
    # Models
    "Character",
    "ImageKey",
    "ImageResult",
    "ImageStatus",
    "SeriesPrompt",
    "Setting",
    "TeamMember",
    "series_image_id",
    "parse_variation_index",
    # Workflow
    "BatchSignals",
    "CharacterPreviewRunner",
    "GenerationRunner",
    "GenerationTask",
    "ResultLedger",
    "SequentialDrain",
    "SeriesStudio",
    # Providers
    "get_provider",
    "list_providers",
]
