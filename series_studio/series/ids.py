"""
Series Image Identifiers
========================

Deterministic ledger ids for series images. Saved projects and the retry
path depend on ``series-{prompt_id}-var-{index}`` round-tripping exactly.
"""

import re
from typing import NamedTuple, Optional

from ..core.exceptions import ValidationError

SERIES_PREFIX = "series-"
VARIATION_MARKER = "-var-"

# Canonical index form only, so a decoded key re-encodes to the same id
_INDEX_PATTERN = re.compile(r"0|[1-9][0-9]*", re.ASCII)


class ImageKey(NamedTuple):
    """Structured key of a series image slot."""

    prompt_id: str
    variation_index: int

    def encode(self) -> str:
        """Render the key as its ledger id."""
        return f"{SERIES_PREFIX}{self.prompt_id}{VARIATION_MARKER}{self.variation_index}"

    @classmethod
    def decode(cls, image_id: str) -> Optional["ImageKey"]:
        """
        Parse a ledger id back into its key.

        Returns None when the id is not a series image id, including ids
        whose index is not a plain decimal without leading zeros.
        """
        if not image_id or not image_id.startswith(SERIES_PREFIX):
            return None

        head, marker, index = image_id.rpartition(VARIATION_MARKER)
        if not marker or not _INDEX_PATTERN.fullmatch(index):
            return None

        prompt_id = head[len(SERIES_PREFIX):]
        if not prompt_id:
            return None

        return cls(prompt_id, int(index))


def series_image_id(prompt_id: str, variation_index: int) -> str:
    """Ledger id for variation ``variation_index`` of a series prompt."""
    if variation_index < 0:
        raise ValidationError(
            f"Variation index must be >= 0, got {variation_index}",
            field="variation_index",
            value=variation_index,
        )
    return ImageKey(prompt_id, variation_index).encode()


def parse_variation_index(image_id: str) -> int:
    """Recover the variation index encoded in a series image id."""
    key = ImageKey.decode(image_id)
    if key is None:
        raise ValidationError(
            f"Not a series image id: {image_id}",
            field="image_id",
            value=image_id,
            constraint="series-<prompt>-var-<index>",
        )
    return key.variation_index
