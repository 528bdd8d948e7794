"""
Series Models
=============

Core data models for generated images, scene prompts and story context.
"""

import uuid
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class ImageStatus(Enum):
    """Status of a produced-or-pending image."""

    GENERATING = "generating"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @classmethod
    def from_value(cls, value: str) -> "ImageStatus":
        """Normalize persisted status strings."""
        # Older projects may carry the never-reached "retrying" state
        if value == "retrying":
            return cls.ERROR
        return cls(value)

    @property
    def is_terminal(self) -> bool:
        return self is not ImageStatus.GENERATING

    @property
    def is_retryable(self) -> bool:
        return self in (ImageStatus.ERROR, ImageStatus.CANCELLED)


@dataclass
class ImageResult:
    """
    One produced-or-pending image artifact.

    ``url`` is only set for successful results and ``error`` only for
    failed or cancelled ones.
    """

    id: str
    status: ImageStatus = ImageStatus.GENERATING
    prompt_id: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None
    generated_by: Optional[str] = None

    @classmethod
    def placeholder(cls, image_id: str, prompt_id: Optional[str] = None) -> "ImageResult":
        return cls(id=image_id, prompt_id=prompt_id)

    @classmethod
    def success(
        cls,
        image_id: str,
        url: str,
        generated_by: Optional[str] = None,
        prompt_id: Optional[str] = None,
    ) -> "ImageResult":
        return cls(
            id=image_id,
            status=ImageStatus.SUCCESS,
            prompt_id=prompt_id,
            url=url,
            generated_by=generated_by,
        )

    @classmethod
    def failure(cls, image_id: str, error: str, prompt_id: Optional[str] = None) -> "ImageResult":
        return cls(id=image_id, status=ImageStatus.ERROR, prompt_id=prompt_id, error=error)

    @classmethod
    def cancelled(cls, image_id: str, reason: str, prompt_id: Optional[str] = None) -> "ImageResult":
        return cls(id=image_id, status=ImageStatus.CANCELLED, prompt_id=prompt_id, error=reason)

    @property
    def is_success(self) -> bool:
        return self.status == ImageStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "prompt_id": self.prompt_id,
            "status": self.status.value,
            "url": self.url,
            "error": self.error,
            "generated_by": self.generated_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageResult":
        """Create from dictionary, accepting camelCase keys from older projects."""
        status = ImageStatus.from_value(data.get("status", "error"))
        result = cls(
            id=data["id"],
            status=status,
            prompt_id=data.get("prompt_id", data.get("promptId")),
            url=data.get("url") if status == ImageStatus.SUCCESS else None,
            error=data.get("error") if status.is_retryable else None,
            generated_by=data.get("generated_by", data.get("generatedBy")),
        )
        if status == ImageStatus.SUCCESS and not result.url:
            # A success without payload cannot be displayed or exported
            result.status = ImageStatus.ERROR
            result.error = "Missing image data"
        return result


@dataclass
class SeriesPrompt:
    """A user-editable scene description with its number of shots."""

    value: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    variations: int = 1

    def __setattr__(self, name, value):
        if name == "variations":
            self._check_variations(value)
        super().__setattr__(name, value)

    @staticmethod
    def _check_variations(value: int) -> None:
        if not isinstance(value, int) or value < 1:
            raise ValidationError(
                f"variations must be a positive integer, got {value}",
                field="variations",
                value=value,
                constraint=">= 1",
            )

    @classmethod
    def from_script(cls, script: str) -> List["SeriesPrompt"]:
        """One prompt per non-empty script line."""
        return [cls(value=line) for line in script.split("\n") if line]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "value": self.value, "variations": self.variations}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SeriesPrompt":
        return cls(
            id=data["id"],
            value=data.get("value", ""),
            variations=int(data.get("variations", 1)),
        )


@dataclass
class Setting:
    """Researched time, place and tone of the story."""

    place: str = ""
    time: str = ""
    weather: str = ""
    season: str = ""
    mood: str = ""
    social_context: str = ""
    central_idea: str = ""
    thematic_question: str = ""

    def context_prompt(self) -> str:
        """Default editable prompt describing the main setting."""
        return (
            f"Main setting: {self.place} at {self.time}. "
            f"Weather: {self.weather} ({self.season}). "
            f"Atmosphere: {self.mood}."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "place": self.place,
            "time": self.time,
            "weather": self.weather,
            "season": self.season,
            "mood": self.mood,
            "social_context": self.social_context,
            "theme": {
                "central_idea": self.central_idea,
                "thematic_question": self.thematic_question,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Setting":
        theme = data.get("theme") or {}
        return cls(
            place=data.get("place", ""),
            time=data.get("time", ""),
            weather=data.get("weather", ""),
            season=data.get("season", ""),
            mood=data.get("mood", ""),
            social_context=data.get("social_context", data.get("socialContext", "")),
            central_idea=theme.get("central_idea", theme.get("centralIdea", "")),
            thematic_question=theme.get("thematic_question", theme.get("thematicQuestion", "")),
        )


@dataclass
class TeamMember:
    """A team member credited for the images they produce."""

    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamMember":
        return cls(id=data["id"], name=data.get("name", ""))
