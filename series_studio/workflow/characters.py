"""
Character Preview Orchestration
===============================

Sequential preview generation over a list of characters. Follows the same
stop, quota and pacing rules as the task runner, but each outcome is written
into the owning character's ``preview`` instead of a shared ledger.
"""

import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from ..series.character import Character
from ..series.models import ImageResult, ImageStatus
from .runner import SequentialDrain, error_message
from .signals import BatchSignals, INTERRUPTED_REASON

logger = logging.getLogger(__name__)

PreviewExecutor = Callable[[Character], Awaitable[str]]


def _cancel_pending(character: Character, reason: str) -> None:
    # Only previews that never got a result are cancelled
    if character.preview is None or character.preview.status == ImageStatus.GENERATING:
        character.preview = ImageResult.cancelled(character.id, reason)


class CharacterPreviewRunner:
    """Generates missing character previews one at a time."""

    def __init__(self, drain: Optional[SequentialDrain] = None):
        self.drain = drain or SequentialDrain()

    async def run(
        self,
        characters: Sequence[Character],
        execute: PreviewExecutor,
        signals: BatchSignals,
        generated_by: Optional[str] = None,
    ) -> List[Character]:
        """
        Generate previews for every character lacking a successful one.

        Returns:
            The characters that were scheduled, in order
        """
        pending = [c for c in characters if c.needs_preview]

        signals.reset_stop()
        signals.clear_error()

        if not pending:
            logger.info("All character previews already generated")
            return pending

        for character in pending:
            character.preview = ImageResult.placeholder(character.id)

        logger.info(f"Generating {len(pending)} character preview(s)")

        def on_success(character: Character, url: str) -> None:
            character.preview = ImageResult.success(character.id, url, generated_by)

        def on_error(character: Character, message: str) -> None:
            character.preview = ImageResult.failure(character.id, message)

        try:
            await self.drain.drain(
                pending,
                execute,
                on_success=on_success,
                on_error=on_error,
                on_cancel=_cancel_pending,
                signals=signals,
                label=lambda c: c.name or c.id,
            )
        finally:
            for character in pending:
                _cancel_pending(character, INTERRUPTED_REASON)
            signals.reset_stop()

        return pending


async def generate_one(
    character: Character,
    execute: PreviewExecutor,
    generated_by: Optional[str] = None,
) -> ImageResult:
    """
    Regenerate a single character preview.

    The failure is recorded on the character and then re-raised.
    """
    character.preview = ImageResult.placeholder(character.id)
    try:
        url = await execute(character)
    except Exception as e:
        character.preview = ImageResult.failure(character.id, error_message(e))
        raise
    character.preview = ImageResult.success(character.id, url, generated_by)
    return character.preview
