"""
Task Compiler
=============

Pure functions that expand generation intents (whole series, one prompt,
one image, retry of failures, thumbnails) into ordered lists of atomic
GenerationTask descriptors with deterministic target ids.

An empty list is a valid result and means there is nothing to do.
"""

import uuid
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..series.ids import ImageKey, series_image_id
from ..series.models import SeriesPrompt
from .ledger import ResultLedger

logger = logging.getLogger(__name__)

THUMBNAIL_PREFIX = "thumbnail-"


@dataclass(frozen=True)
class GenerationTask:
    """One unit of external generation work with a fixed ledger target."""

    prompt_id: Optional[str]
    source_value: str
    target_image_id: str
    variation_suffix: str = ""
    context_prompt: str = ""

    @property
    def instruction(self) -> str:
        """The rendered text sent to the generation service."""
        return render_instruction(self.source_value, self.variation_suffix, self.context_prompt)


def variation_suffix(index: int, total: int) -> str:
    """Shot-numbering text that steers the model toward distinct takes."""
    if total <= 1:
        return ""
    return f"(Shot {index + 1}/{total}, different cinematic angle)"


def render_instruction(value: str, suffix: str = "", context_prompt: str = "") -> str:
    text = f"{value} {suffix}" if suffix else value
    if context_prompt:
        text = f"{text}. Context: {context_prompt}"
    return text


def _task_for(prompt: SeriesPrompt, index: int, context_prompt: str) -> GenerationTask:
    return GenerationTask(
        prompt_id=prompt.id,
        source_value=prompt.value,
        target_image_id=series_image_id(prompt.id, index),
        variation_suffix=variation_suffix(index, prompt.variations),
        context_prompt=context_prompt,
    )


def _find_prompt(prompts: Sequence[SeriesPrompt], prompt_id: Optional[str]) -> Optional[SeriesPrompt]:
    for prompt in prompts:
        if prompt.id == prompt_id:
            return prompt
    return None


# =============================================================================
# Compilers
# =============================================================================


def compile_series(
    prompts: Sequence[SeriesPrompt],
    ledger: ResultLedger,
    context_prompt: str = "",
) -> List[GenerationTask]:
    """
    Tasks for every variation slot of every prompt.

    Slots that already hold a successful image are skipped; success is only
    regenerated on explicit request.
    """
    tasks = []
    for prompt in prompts:
        for index in range(prompt.variations):
            if ledger.is_success(series_image_id(prompt.id, index)):
                continue
            tasks.append(_task_for(prompt, index, context_prompt))
    return tasks


def compile_prompt(prompt: SeriesPrompt, context_prompt: str = "") -> List[GenerationTask]:
    """Tasks for every variation slot of one prompt, successes included."""
    return [_task_for(prompt, index, context_prompt) for index in range(prompt.variations)]


def compile_prompt_by_id(
    prompts: Sequence[SeriesPrompt],
    prompt_id: str,
    context_prompt: str = "",
) -> List[GenerationTask]:
    prompt = _find_prompt(prompts, prompt_id)
    if prompt is None:
        logger.warning(f"Prompt not found: {prompt_id}")
        return []
    return compile_prompt(prompt, context_prompt)


def compile_single(
    image_id: str,
    prompts: Sequence[SeriesPrompt],
    ledger: ResultLedger,
    context_prompt: str = "",
) -> List[GenerationTask]:
    """A single task regenerating one existing series image."""
    image = ledger.get(image_id)
    if image is None or not image.prompt_id:
        logger.warning(f"No prompt information for image: {image_id}")
        return []

    prompt = _find_prompt(prompts, image.prompt_id)
    if prompt is None:
        logger.warning(f"Original prompt not found for image {image_id}: {image.prompt_id}")
        return []

    key = ImageKey.decode(image_id)
    if key is None:
        logger.warning(f"Cannot recover variation index from image id: {image_id}")
        return []

    return [_task_for(prompt, key.variation_index, context_prompt)]


def compile_retry(
    prompts: Sequence[SeriesPrompt],
    ledger: ResultLedger,
    context_prompt: str = "",
) -> List[GenerationTask]:
    """Tasks re-running every failed or cancelled series image, in ledger order."""
    tasks = []
    for image in ledger.retryable():
        prompt = _find_prompt(prompts, image.prompt_id)
        if prompt is None:
            logger.warning(f"Skipping retry of {image.id}: prompt {image.prompt_id} not found")
            continue

        key = ImageKey.decode(image.id)
        if key is None:
            logger.warning(f"Skipping retry of {image.id}: not a series image id")
            continue

        tasks.append(_task_for(prompt, key.variation_index, context_prompt))
    return tasks


def compile_thumbnails(topic: str, count: int) -> List[GenerationTask]:
    """Independent thumbnail variants for one topic."""
    return [
        GenerationTask(
            prompt_id=None,
            source_value=topic,
            target_image_id=f"{THUMBNAIL_PREFIX}{uuid.uuid4()}",
        )
        for _ in range(count)
    ]
