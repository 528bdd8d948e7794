"""
Character Models
================

Story characters, each owning a single preview image and an optional
reference image used to keep its likeness consistent across scenes.
"""

import uuid
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from .models import ImageResult, ImageStatus

logger = logging.getLogger(__name__)


@dataclass
class Character:
    """
    A character (person, vehicle, component or place) extracted from the script.

    The preview is keyed by the character id and is replaced wholesale
    whenever it is regenerated.
    """

    # Identity
    name: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_main: bool = False

    # Narrative profile
    goal: str = ""
    motivation: str = ""
    conflict: str = ""
    appearance_and_behavior: str = ""
    backstory: str = ""
    character_arc: str = ""

    # Images
    preview: Optional[ImageResult] = None
    reference_image_url: Optional[str] = None

    PROFILE_FIELDS = (
        "name",
        "goal",
        "motivation",
        "conflict",
        "appearance_and_behavior",
        "backstory",
        "character_arc",
    )

    @property
    def needs_preview(self) -> bool:
        """Whether a batch preview run should (re)generate this character."""
        return self.preview is None or self.preview.status != ImageStatus.SUCCESS

    def build_preview_prompt(self, context_prompt: str = "") -> str:
        """Build the instruction used to render this character's preview."""
        if context_prompt:
            return f"{self.appearance_and_behavior}. Context: {context_prompt}"
        return self.appearance_and_behavior

    def is_mentioned_in(self, text: str) -> bool:
        """Whether the character's name appears in ``text`` (case-insensitive)."""
        return bool(self.name) and self.name.lower() in text.lower()

    def profile_line(self) -> str:
        return f"{self.name}: {self.appearance_and_behavior}"

    def update(self, field_name: str, value: str) -> None:
        """Edit one profile field."""
        if field_name not in self.PROFILE_FIELDS:
            raise AttributeError(f"Not an editable character field: {field_name}")
        setattr(self, field_name, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "is_main": self.is_main,
            "goal": self.goal,
            "motivation": self.motivation,
            "conflict": self.conflict,
            "appearance_and_behavior": self.appearance_and_behavior,
            "backstory": self.backstory,
            "character_arc": self.character_arc,
            "preview": self.preview.to_dict() if self.preview else None,
            "reference_image_url": self.reference_image_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Character":
        """Create Character from dictionary (snake_case or camelCase keys)."""
        preview = data.get("preview")
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            name=data.get("name", ""),
            is_main=bool(data.get("is_main", data.get("isMain", False))),
            goal=data.get("goal", ""),
            motivation=data.get("motivation", ""),
            conflict=data.get("conflict", ""),
            appearance_and_behavior=data.get(
                "appearance_and_behavior", data.get("appearanceAndBehavior", "")
            ),
            backstory=data.get("backstory", ""),
            character_arc=data.get("character_arc", data.get("characterArc", "")),
            preview=ImageResult.from_dict(preview) if preview else None,
            reference_image_url=data.get("reference_image_url", data.get("referenceImageUrl")),
        )


def main_characters(characters: List[Character]) -> List[Character]:
    """Characters flagged as main, in their stored order."""
    return [c for c in characters if c.is_main]
