"""
Series Module
=============

Data models for a script-driven image series:
- Generated image results and their statuses
- Editable scene prompts with variation counts
- Characters, setting and team members
- Deterministic series image ids
"""

from .models import ImageResult, ImageStatus, SeriesPrompt, Setting, TeamMember
from .character import Character, main_characters
from .ids import ImageKey, series_image_id, parse_variation_index

__all__ = [
    "ImageResult",
    "ImageStatus",
    "SeriesPrompt",
    "Setting",
    "TeamMember",
    "Character",
    "main_characters",
    "ImageKey",
    "series_image_id",
    "parse_variation_index",
]
