"""
Series Studio
=============

Session facade holding one project's state: script analysis, context and
character previews, the scene series, video prompts, thumbnails, edits and
project save/load. All generation goes through the sequential runners, so
at most one call to the generation service is in flight at a time.
"""

import asyncio
import uuid
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple, Union

from ..api.base import BaseImageProvider
from ..core.config import Config, get_config
from ..core.exceptions import (
    QuotaExceededError,
    ResourceNotFoundError,
    ValidationError,
    is_quota_message,
)
from ..series.character import Character, main_characters
from ..series.models import ImageResult, SeriesPrompt, Setting, TeamMember
from ..utils.image_utils import load_image_as_data_url
from ..utils.storage import load_project, save_project
from . import tasks as compiler
from .characters import CharacterPreviewRunner, generate_one
from .ledger import ResultLedger
from .runner import GenerationRunner, SequentialDrain, Sleep, error_message
from .signals import BatchSignals
from .tasks import GenerationTask

logger = logging.getLogger(__name__)

CONTEXT_PREVIEW_ID = "context-preview"
PROMPT_NOT_FOUND = "Prompt not found"
NO_SCENES_ERROR = "No successful scene images to write video prompts for"

# Wizard steps
STEP_CONTEXT = 3
STEP_SERIES = 6


def _pick(state: Dict[str, Any], key: str, legacy_key: str, default: Any = None) -> Any:
    """Read a state value by its snake_case key or its legacy camelCase key."""
    if key in state:
        return state[key]
    return state.get(legacy_key, default)


class SeriesStudio:
    """
    One series production session.

    Usage:
        async with get_provider("gemini") as provider:
            studio = SeriesStudio(provider)
            studio.script = Path("script.txt").read_text()
            await studio.analyze_script()
            studio.proceed_to_series()
            await studio.generate_series()
            studio.save("project.tmproj")
    """

    def __init__(
        self,
        provider: BaseImageProvider,
        config: Optional[Config] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize a session.

        Args:
            provider: Generation service provider
            config: Configuration (defaults to the global config)
            sleep: Awaitable used for pacing between calls
        """
        self.provider = provider
        self.config = config or get_config()

        generation = self.config.generation
        self._drain = SequentialDrain(
            pacing_delay=generation.pacing_delay,
            call_timeout=generation.call_timeout,
            sleep=sleep,
        )
        self.runner = GenerationRunner(self._drain)
        self.character_runner = CharacterPreviewRunner(self._drain)
        self.signals = BatchSignals()

        self.current_step = 1
        self.script = ""
        self.language = generation.default_language
        self.setting: Optional[Setting] = None
        self.context_prompt = ""
        self.context_preview: Optional[ImageResult] = None
        self.characters: List[Character] = []
        self.series_prompts: List[SeriesPrompt] = []
        self.images = ResultLedger()
        self.video_prompts: List[str] = []
        self.thumbnail_topic = ""
        self.thumbnails = ResultLedger()
        self.selected_ids: List[str] = []
        self.reference_images: List[ImageResult] = []

        first_member = TeamMember(self.config.project.default_member_name)
        self.members: List[TeamMember] = [first_member]
        self.active_member_id: Optional[str] = first_member.id

    # -------------------------------------------------------------------------
    # Team Members
    # -------------------------------------------------------------------------

    @property
    def active_member_name(self) -> Optional[str]:
        for member in self.members:
            if member.id == self.active_member_id:
                return member.name
        return None

    def add_member(self, name: str) -> TeamMember:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Member name cannot be empty", field="name")

        member = TeamMember(name)
        self.members.append(member)
        if self.active_member_id is None:
            self.active_member_id = member.id
        return member

    def remove_member(self, member_id: str) -> None:
        """Remove a member; the last remaining member cannot be removed."""
        if len(self.members) <= 1:
            raise ValidationError("Cannot remove the last team member", field="member_id", value=member_id)

        self.members = [m for m in self.members if m.id != member_id]
        if self.active_member_id == member_id:
            self.active_member_id = self.members[0].id

    def set_active_member(self, member_id: str) -> None:
        if not any(m.id == member_id for m in self.members):
            raise ResourceNotFoundError(
                f"Team member not found: {member_id}",
                resource_type="member",
                resource_id=member_id,
            )
        self.active_member_id = member_id

    def _attribution(self, action: str) -> str:
        return f"{action} by {self.active_member_name or 'Unknown'}"

    # -------------------------------------------------------------------------
    # Style References
    # -------------------------------------------------------------------------

    async def _load_upload(self, path: Union[str, Path]) -> str:
        references = self.config.references
        return await load_image_as_data_url(
            path,
            max_dimension=references.max_dimension,
            quality=references.jpeg_quality,
        )

    async def add_reference_image(self, path: Union[str, Path]) -> ImageResult:
        """Upload a style reference image."""
        url = await self._load_upload(path)
        reference = ImageResult.success(str(uuid.uuid4()), url, self._attribution("Uploaded"))
        self.reference_images.append(reference)
        logger.info(f"Added style reference {reference.id} from {Path(path).name}")
        return reference

    def remove_reference_image(self, reference_id: str) -> None:
        self.reference_images = [r for r in self.reference_images if r.id != reference_id]

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _ensure_quota_available(self) -> None:
        if self.signals.quota_exceeded:
            raise QuotaExceededError(self.signals.error or "API quota exhausted; load the project on another account")

    def _record_failure(self, error: BaseException) -> str:
        message = error_message(error)
        if is_quota_message(message):
            self.signals.mark_quota_exceeded()
        else:
            self.signals.set_error(message)
        return message

    # -------------------------------------------------------------------------
    # Script and Context
    # -------------------------------------------------------------------------

    async def analyze_script(self) -> Tuple[Setting, List[Character]]:
        """
        Detect the script language, then extract the setting and characters.

        On failure the setting and characters are reset and the error is
        re-raised.
        """
        self._ensure_quota_available()
        if not self.script.strip():
            raise ValidationError("Script is empty", field="script")

        self.signals.clear_error()

        try:
            self.language = await self.provider.detect_language(self.script)
            setting, characters = await self.provider.extract_details(self.script, self.language)
        except Exception as e:
            self._record_failure(e)
            self.setting = None
            self.characters = []
            raise

        self.setting = setting
        self.context_prompt = setting.context_prompt()
        for character in characters:
            character.id = str(uuid.uuid4())
            character.preview = None
            character.reference_image_url = None
        self.characters = characters
        self.current_step = STEP_CONTEXT

        logger.info(f"Analyzed script ({self.language}): {len(characters)} character(s)")
        return setting, characters

    async def generate_context(self) -> ImageResult:
        """Render the context preview image. Failures are recorded on the result."""
        self._ensure_quota_available()
        self.context_preview = ImageResult.placeholder(CONTEXT_PREVIEW_ID)

        try:
            url = await self.provider.generate_image(
                self.context_prompt,
                self.setting,
                self.reference_images,
                self.language,
            )
        except Exception as e:
            message = self._record_failure(e)
            self.context_preview = ImageResult.failure(CONTEXT_PREVIEW_ID, message)
        else:
            self.context_preview = ImageResult.success(CONTEXT_PREVIEW_ID, url, self.active_member_name)

        return self.context_preview

    async def upload_context_image(self, path: Union[str, Path]) -> ImageResult:
        url = await self._load_upload(path)
        self.context_preview = ImageResult.success(CONTEXT_PREVIEW_ID, url, self._attribution("Uploaded"))
        return self.context_preview

    # -------------------------------------------------------------------------
    # Characters
    # -------------------------------------------------------------------------

    def get_character(self, character_id: str) -> Character:
        for character in self.characters:
            if character.id == character_id:
                return character
        raise ResourceNotFoundError(
            f"Character not found: {character_id}",
            resource_type="character",
            resource_id=character_id,
        )

    def add_character(self, name: str = "New character") -> Character:
        character = Character(name=name)
        self.characters.append(character)
        return character

    def remove_character(self, character_id: str) -> None:
        self.characters = [c for c in self.characters if c.id != character_id]

    def set_character_reference(self, character_id: str, url: Optional[str]) -> None:
        """Select (or clear with None) the likeness reference for a character."""
        self.get_character(character_id).reference_image_url = url

    async def upload_character_image(self, character_id: str, path: Union[str, Path]) -> ImageResult:
        """Use an uploaded image as the character's preview and reference."""
        character = self.get_character(character_id)
        url = await self._load_upload(path)
        character.preview = ImageResult.success(character.id, url, self._attribution("Uploaded"))
        character.reference_image_url = url
        return character.preview

    async def _render_preview(self, character: Character) -> str:
        return await self.provider.generate_image(
            character.build_preview_prompt(self.context_prompt),
            self.setting,
            self.reference_images,
            self.language,
        )

    async def generate_character(self, character_id: str) -> ImageResult:
        """Regenerate one character preview. Failures are recorded on the preview."""
        self._ensure_quota_available()
        character = self.get_character(character_id)

        try:
            return await generate_one(character, self._render_preview, self.active_member_name)
        except Exception as e:
            self._record_failure(e)
            return character.preview

    async def generate_character_previews(self) -> List[Character]:
        """Generate every missing or failed character preview, one at a time."""
        self._ensure_quota_available()
        return await self.character_runner.run(
            self.characters,
            self._render_preview,
            self.signals,
            self.active_member_name,
        )

    # -------------------------------------------------------------------------
    # Series Generation
    # -------------------------------------------------------------------------

    def proceed_to_series(self) -> List[SeriesPrompt]:
        """Create one series prompt per non-empty script line."""
        self.series_prompts = SeriesPrompt.from_script(self.script)
        self.current_step = STEP_SERIES
        logger.info(f"Created {len(self.series_prompts)} series prompt(s)")
        return self.series_prompts

    def get_prompt(self, prompt_id: str) -> SeriesPrompt:
        for prompt in self.series_prompts:
            if prompt.id == prompt_id:
                return prompt
        raise ResourceNotFoundError(PROMPT_NOT_FOUND, resource_type="prompt", resource_id=prompt_id)

    def set_variations(self, prompt_id: str, variations: int) -> None:
        self.get_prompt(prompt_id).variations = variations

    async def _render_scene(self, task: GenerationTask) -> str:
        return await self.provider.generate_image_with_references(
            task.instruction,
            self.characters,
            self.setting,
            self.reference_images,
            self.language,
        )

    async def _run_series(self, tasks: List[GenerationTask]) -> None:
        await self.runner.run(
            tasks,
            self.images,
            self._render_scene,
            self.signals,
            self.active_member_name,
        )

    async def generate_series(self) -> None:
        """Generate every variation slot that does not already hold a success."""
        self._ensure_quota_available()
        tasks = compiler.compile_series(self.series_prompts, self.images, self.context_prompt)
        if not tasks:
            logger.info("Series is complete; nothing to generate")
            return
        await self._run_series(tasks)

    async def generate_prompt_variations(self, prompt_id: str) -> None:
        """Regenerate all variations of one prompt."""
        self._ensure_quota_available()
        tasks = compiler.compile_prompt_by_id(self.series_prompts, prompt_id, self.context_prompt)
        if not tasks:
            self.signals.set_error(PROMPT_NOT_FOUND)
            return
        await self._run_series(tasks)

    async def regenerate_image(self, image_id: str) -> None:
        """Regenerate one series image in place."""
        self._ensure_quota_available()
        tasks = compiler.compile_single(image_id, self.series_prompts, self.images, self.context_prompt)
        if not tasks:
            self.signals.set_error(PROMPT_NOT_FOUND)
            return
        await self._run_series(tasks)

    async def retry_failed(self) -> None:
        """Re-run every failed or cancelled series image; clears the quota flag first."""
        self.signals.clear_quota()
        self.signals.clear_error()

        tasks = compiler.compile_retry(self.series_prompts, self.images, self.context_prompt)
        if not tasks:
            logger.info("No failed images to retry")
            return
        await self._run_series(tasks)

    def stop(self) -> None:
        """Request that the running batch stops before its next call."""
        self.signals.request_stop()

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def toggle_selection(self, image_id: str) -> bool:
        """Toggle an image in the export selection. Returns the new state."""
        if image_id in self.selected_ids:
            self.selected_ids.remove(image_id)
            return False
        self.selected_ids.append(image_id)
        return True

    def selected_images(self) -> List[ImageResult]:
        """Selected series images with a payload, in ledger order."""
        selected = set(self.selected_ids)
        return [image for image in self.images.successful() if image.id in selected]

    # -------------------------------------------------------------------------
    # Video Prompts
    # -------------------------------------------------------------------------

    async def generate_video_prompts(self) -> List[str]:
        """
        Write one video prompt per prompt that has a successful image.

        The first successful image of each prompt is the scene keyframe.
        Prompts are appended as they are produced.
        """
        self._ensure_quota_available()
        self.signals.reset_stop()
        self.signals.clear_error()
        self.video_prompts = []

        scenes = []
        for prompt in self.series_prompts:
            keyframe = self.images.first_success_for(prompt.id)
            if keyframe:
                scenes.append((prompt, keyframe))

        if not scenes:
            self.signals.set_error(NO_SCENES_ERROR)
            return self.video_prompts

        cast = main_characters(self.characters)
        try:
            summary = await self.provider.summarize_script(self.script, self.language)
        except Exception as e:
            self._record_failure(e)
            raise

        async def execute(scene: Tuple[SeriesPrompt, ImageResult]) -> str:
            prompt, keyframe = scene
            return await self.provider.generate_video_prompt(
                prompt.value,
                keyframe.url,
                cast,
                summary,
                self.language,
            )

        try:
            await self._drain.drain(
                scenes,
                execute,
                on_success=lambda scene, text: self.video_prompts.append(text),
                on_error=lambda scene, message: self.signals.set_error(message),
                on_cancel=lambda scene, reason: None,
                signals=self.signals,
                label=lambda scene: scene[1].id,
            )
        finally:
            self.signals.reset_stop()

        return self.video_prompts

    # -------------------------------------------------------------------------
    # Thumbnails
    # -------------------------------------------------------------------------

    async def _render_thumbnail(self, task: GenerationTask) -> str:
        return await self.provider.generate_thumbnail(
            task.source_value,
            self.script,
            self.characters,
            self.setting,
            self.reference_images,
            self.language,
        )

    async def generate_thumbnails(self) -> List[ImageResult]:
        """Generate a fresh set of thumbnail variants, replacing the previous set."""
        self._ensure_quota_available()
        if not self.thumbnail_topic.strip():
            raise ValidationError("Thumbnail topic is empty", field="thumbnail_topic")

        self.thumbnails = ResultLedger()
        tasks = compiler.compile_thumbnails(self.thumbnail_topic, self.config.thumbnails.count)
        await self.runner.run(
            tasks,
            self.thumbnails,
            self._render_thumbnail,
            self.signals,
            self.active_member_name,
        )
        return list(self.thumbnails)

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def find_image(self, image_id: str) -> Optional[ImageResult]:
        """Look an image up in every container that can hold it."""
        image = self.images.get(image_id) or self.thumbnails.get(image_id)
        if image:
            return image
        if self.context_preview and self.context_preview.id == image_id:
            return self.context_preview
        for character in self.characters:
            if character.preview and character.preview.id == image_id:
                return character.preview
        return None

    async def edit_image(self, image_id: str, instruction: str) -> ImageResult:
        """
        Edit a successful image and apply the result wherever it is shown.

        A character reference pointing at the old image follows the edit.
        """
        self._ensure_quota_available()
        original = self.find_image(image_id)
        if original is None or not original.is_success:
            raise ResourceNotFoundError(
                f"No successful image to edit: {image_id}",
                resource_type="image",
                resource_id=image_id,
            )

        try:
            url = await self.provider.edit_image(instruction, original.url, self.reference_images, self.language)
        except Exception as e:
            self._record_failure(e)
            raise

        edited = ImageResult.success(image_id, url, self._attribution("Edited"), prompt_id=original.prompt_id)
        self._apply_edit(edited, original.url)
        logger.info(f"Applied edit to {image_id}")
        return edited

    def _apply_edit(self, edited: ImageResult, original_url: Optional[str]) -> None:
        if edited.id in self.images:
            self.images.put(edited)
        if edited.id in self.thumbnails:
            self.thumbnails.put(edited)
        if self.context_preview and self.context_preview.id == edited.id:
            self.context_preview = edited

        for character in self.characters:
            if character.preview and character.preview.id == edited.id:
                character.preview = edited
            if original_url and character.reference_image_url == original_url:
                character.reference_image_url = edited.url

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_state(self) -> Dict[str, Any]:
        """Project document with save metadata and the full application state."""
        return {
            "metadata": {
                "saved_by": self.active_member_name or "Unknown",
                "saved_at": datetime.now().isoformat(),
            },
            "app_state": {
                "current_step": self.current_step,
                "script": self.script,
                "script_language": self.language,
                "setting": self.setting.to_dict() if self.setting else None,
                "context_prompt": self.context_prompt,
                "context_preview": self.context_preview.to_dict() if self.context_preview else None,
                "characters": [c.to_dict() for c in self.characters],
                "series_prompts": [p.to_dict() for p in self.series_prompts],
                "generated_images": self.images.to_list(),
                "video_prompts": list(self.video_prompts),
                "thumbnail_topic": self.thumbnail_topic,
                "thumbnail_results": self.thumbnails.to_list(),
                "selected_image_ids": list(self.selected_ids),
                "team_members": [m.to_dict() for m in self.members],
                "active_member_id": self.active_member_id,
                "reference_images": [r.to_dict() for r in self.reference_images],
            },
        }

    def from_state(self, document: Dict[str, Any]) -> None:
        """
        Restore the session from a project document.

        Accepts snake_case keys and the camelCase keys of older projects.
        Clears the error and quota flags.
        """
        state = document.get("app_state") or document.get("appState") or document

        setting = _pick(state, "setting", "settingDetails")
        context_preview = _pick(state, "context_preview", "contextPreview")

        self.current_step = _pick(state, "current_step", "currentStep") or 1
        self.script = state.get("script") or ""
        self.language = _pick(state, "script_language", "scriptLanguage") or self.config.generation.default_language
        self.setting = Setting.from_dict(setting) if setting else None
        self.context_prompt = _pick(state, "context_prompt", "contextPrompt") or ""
        self.context_preview = ImageResult.from_dict(context_preview) if context_preview else None
        self.characters = [Character.from_dict(c) for c in state.get("characters") or []]
        self.series_prompts = [
            SeriesPrompt.from_dict(p) for p in _pick(state, "series_prompts", "seriesPrompts") or []
        ]
        self.images = ResultLedger.from_list(_pick(state, "generated_images", "generatedImages") or [])
        self.video_prompts = list(_pick(state, "video_prompts", "videoPrompts") or [])
        self.thumbnail_topic = _pick(state, "thumbnail_topic", "thumbnailTopic") or ""
        self.thumbnails = ResultLedger.from_list(_pick(state, "thumbnail_results", "thumbnailResults") or [])
        self.selected_ids = list(_pick(state, "selected_image_ids", "selectedImageIds") or [])
        self.reference_images = [
            ImageResult.from_dict(r) for r in _pick(state, "reference_images", "referenceImages") or []
        ]

        members = [TeamMember.from_dict(m) for m in _pick(state, "team_members", "teamMembers") or []]
        self.members = members or [TeamMember(self.config.project.default_member_name)]
        active_id = _pick(state, "active_member_id", "activeUserId")
        if not any(m.id == active_id for m in self.members):
            active_id = self.members[0].id
        self.active_member_id = active_id

        self.signals.clear_quota()
        self.signals.clear_error()
        self.signals.reset_stop()

        metadata = document.get("metadata") or {}
        saved_by = metadata.get("saved_by") or metadata.get("savedBy")
        logger.info(
            f"Restored project with {len(self.images)} image(s)"
            + (f", last saved by {saved_by}" if saved_by else "")
        )

    def save(self, path: Union[str, Path]) -> str:
        return save_project(self.to_state(), path)

    def load(self, path: Union[str, Path]) -> Dict[str, Any]:
        """Load a project file into this session and return its metadata."""
        document = load_project(path)
        self.from_state(document)
        return document["metadata"]
