"""
Gemini Provider
===============

Integration with Google's Generative Language API (``:generateContent``)
for image generation, image editing and the script-analysis text calls.

Features:
- Style reference images and per-character likeness references
- Prompt rewrite and retry when an image request fails
- Quota exhaustion surfaced as QuotaExceededError (never retried)
"""

import json
import logging
from typing import Optional, List, Dict, Any, Sequence, Tuple, Callable

import httpx

from ..core.exceptions import (
    GenerationError,
    ProviderError,
    QuotaExceededError,
    StudioError,
    ValidationError,
    is_quota_message,
)
from ..core.security import redact_api_key
from ..series.character import Character
from ..series.models import ImageResult, Setting
from ..utils.image_utils import to_inline_part
from .base import BaseImageProvider, DEFAULT_TIMEOUT
from .factory import register_provider

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

DEFAULT_DATE_TEXT = "NOVEMBER 2ND, 1993"
DEFAULT_TIME_TEXT = "5:13 PM EST"

Part = Dict[str, Any]


def style_guide(setting: Optional[Setting], language: str) -> str:
    """Style directives appended to every image instruction."""
    date_text, time_text = DEFAULT_DATE_TEXT, DEFAULT_TIME_TEXT
    if setting and setting.time:
        pieces = setting.time.split(",")
        date_text = pieces[0].strip() or DEFAULT_DATE_TEXT
        if len(pieces) > 1 and pieces[1].strip():
            time_text = pieces[1].strip()

    return (
        "STYLE GUIDE: photorealistic investigation-documentary still, cinematic lighting, "
        "16:9 widescreen, 4K detail. "
        f'Any on-screen timestamp reads "{date_text.upper()} | {time_text.upper()}". '
        f"Any on-screen text is written in {language}."
    )


def _reference_parts(references: Sequence[ImageResult]) -> List[Part]:
    parts = []
    for ref in references:
        part = to_inline_part(ref.url)
        if part:
            parts.append(part)
    return parts


@register_provider("gemini")
class GeminiProvider(BaseImageProvider):
    """
    Google Gemini generation provider.

    Image requests use the image model with an IMAGE response modality;
    analysis and prompt writing use the text models.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        image_model: str = "gemini-2.5-flash-image",
        text_model: str = "gemini-2.5-flash",
        reasoning_model: str = "gemini-2.5-pro",
        max_attempts: int = 2,
    ):
        super().__init__(api_key=api_key, base_url=base_url, timeout=timeout, transport=transport)
        self.image_model = image_model
        self.text_model = text_model
        self.reasoning_model = reasoning_model
        self.max_attempts = max_attempts

    @property
    def provider_name(self) -> str:
        return "Gemini"

    @property
    def env_key_names(self) -> Tuple[str, ...]:
        return ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

    def _get_default_base_url(self) -> str:
        return "https://generativelanguage.googleapis.com/v1beta"

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _generate_content(
        self,
        model: str,
        parts: List[Part],
        response_modalities: Optional[List[str]] = None,
        response_mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """POST a generateContent request and return the decoded response."""
        endpoint = f"{self.base_url}/models/{model}:generateContent"
        params = {"key": self.api_key} if self.api_key else None

        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "safetySettings": SAFETY_SETTINGS,
        }
        generation_config: Dict[str, Any] = {}
        if response_modalities:
            generation_config["responseModalities"] = response_modalities
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type
        if generation_config:
            payload["generationConfig"] = generation_config

        logger.debug(f"Calling {model} with {len(parts)} part(s)")
        client = await self._get_client()

        try:
            response = await client.post(endpoint, params=params, json=payload)
        except httpx.TimeoutException:
            raise ProviderError("Request to the generation service timed out", provider=self.provider_name)
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Request failed: {redact_api_key(str(e))}",
                provider=self.provider_name,
            )

        if response.status_code != 200:
            self._raise_for_response(response)

        try:
            return response.json()
        except ValueError:
            raise ProviderError(
                "Response is not valid JSON",
                provider=self.provider_name,
                response_body=response.text,
            )

    def _raise_for_response(self, response: httpx.Response) -> None:
        body = response.text
        try:
            error = response.json().get("error") or {}
        except ValueError:
            error = {}

        message = error.get("message") or body[:200] or f"HTTP {response.status_code}"

        if response.status_code == 429 or error.get("status") == "RESOURCE_EXHAUSTED":
            raise QuotaExceededError(
                f"Quota exceeded: {message}",
                provider=self.provider_name,
                response_body=body,
            )

        raise ProviderError(
            f"API error {response.status_code}: {message}",
            provider=self.provider_name,
            status_code=response.status_code,
            response_body=body,
        )

    # -------------------------------------------------------------------------
    # Response Parsing
    # -------------------------------------------------------------------------

    @staticmethod
    def _content_parts(data: Dict[str, Any]) -> List[Part]:
        parts: List[Part] = []
        for candidate in data.get("candidates") or []:
            parts.extend((candidate.get("content") or {}).get("parts") or [])
        return parts

    @classmethod
    def _extract_image(cls, data: Dict[str, Any]) -> Optional[str]:
        for part in cls._content_parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return f"data:{mime_type};base64,{inline['data']}"
        return None

    @classmethod
    def _extract_text(cls, data: Dict[str, Any]) -> str:
        return "".join(part.get("text", "") for part in cls._content_parts(data)).strip()

    @staticmethod
    def _block_reason(data: Dict[str, Any]) -> Optional[str]:
        return (data.get("promptFeedback") or {}).get("blockReason")

    # -------------------------------------------------------------------------
    # Image Generation
    # -------------------------------------------------------------------------

    async def _render_with_rewrites(
        self,
        prompt: str,
        build_parts: Callable[[str], List[Part]],
        language: str,
        stage: str,
    ) -> str:
        """
        Request an image, rewriting the prompt between failed attempts.

        Quota failures are raised immediately.
        """
        current = prompt

        for attempt in range(1, self.max_attempts + 1):
            try:
                data = await self._generate_content(
                    self.image_model,
                    build_parts(current),
                    response_modalities=["IMAGE"],
                )
                image = self._extract_image(data)
                if image:
                    return image

                reason = self._block_reason(data)
                if reason:
                    raise GenerationError(f"Blocked by safety filter: {reason}", stage=stage, prompt=current)
                raise GenerationError("No image data in response", stage=stage, prompt=current)

            except StudioError as e:
                logger.error(f"{stage} failed (attempt {attempt}/{self.max_attempts}): {redact_api_key(e.message)}")
                if isinstance(e, QuotaExceededError) or is_quota_message(e.message):
                    raise

                if attempt < self.max_attempts:
                    logger.warning(f"Retrying {stage} with a rewritten prompt")
                    current = await self.rewrite_prompt(prompt, language)
                else:
                    raise GenerationError(f"{stage} failed: {e.message}", stage=stage, prompt=prompt) from e

        raise GenerationError(f"{stage} failed after {self.max_attempts} attempts", stage=stage, prompt=prompt)

    async def rewrite_prompt(self, original_prompt: str, language: str = "Vietnamese") -> str:
        """Ask the reasoning model for a clearer version of a failed image prompt."""
        fallback = f"A cinematic, hyper-detailed photograph of: {original_prompt}"
        instruction = (
            "You are a prompt engineer. The following image generation prompt has failed. "
            f"Rewrite it in {language} to be more descriptive, clear and specific while "
            "preserving the original intent.\n\n"
            f'Original prompt: "{original_prompt}"\n\n'
            "Return only the rewritten prompt, without explanations, quotation marks or formatting."
        )

        try:
            data = await self._generate_content(self.reasoning_model, [{"text": instruction}])
        except QuotaExceededError:
            raise
        except StudioError as e:
            logger.error(f"Prompt rewrite failed, using fallback: {e.message}")
            return fallback

        rewritten = self._extract_text(data).strip('"')
        if len(rewritten) > 10 and rewritten != original_prompt:
            logger.info(f"Rewrote prompt: {rewritten[:80]}")
            return rewritten
        return fallback

    async def generate_image(
        self,
        instruction: str,
        setting: Optional[Setting] = None,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        guide = style_guide(setting, language)
        references = _reference_parts(style_references)

        def build_parts(prompt: str) -> List[Part]:
            text = (
                "Analyze the style (color, lighting, composition) of the provided reference images. "
                f'Then create a new image based on this prompt: "{prompt}". '
                "The new image MUST match the style of the references.\n\n"
                f"{guide}"
            )
            return [{"text": text}, *references]

        return await self._render_with_rewrites(instruction, build_parts, language, "Image generation")

    async def generate_image_with_references(
        self,
        instruction: str,
        characters: Sequence[Character],
        setting: Optional[Setting] = None,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        guide = style_guide(setting, language)
        references = _reference_parts(style_references)

        def build_parts(prompt: str) -> List[Part]:
            parts: List[Part] = [{
                "text": (
                    "REQUEST: Analyze the provided reference images. They include STYLE references "
                    "and CHARACTER APPEARANCE references. Then create a new image based on this "
                    f'prompt: "{prompt}".\n'
                    "1. STYLE: strictly follow the lighting, color, composition and atmosphere "
                    "of the style references.\n"
                    "2. CHARACTERS: mentioned characters must look exactly like their references.\n"
                    f"3. ADDITIONAL GUIDELINES:\n\n{guide}"
                ),
            }]

            if references:
                parts.append({"text": "--- BEGIN STYLE REFERENCES ---"})
                parts.extend(references)

            character_parts: List[Part] = []
            for character in characters:
                if not character.is_mentioned_in(prompt):
                    continue
                part = to_inline_part(character.reference_image_url)
                if part:
                    character_parts.append({"text": f"Reference for character: {character.name}"})
                    character_parts.append(part)

            if character_parts:
                parts.append({"text": "--- BEGIN CHARACTER REFERENCES ---"})
                parts.extend(character_parts)

            return parts

        return await self._render_with_rewrites(
            instruction, build_parts, language, "Image generation with references"
        )

    async def generate_thumbnail(
        self,
        topic: str,
        script: str,
        characters: Sequence[Character],
        setting: Optional[Setting] = None,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        guide = style_guide(setting, language)
        references = _reference_parts(style_references)

        def build_parts(current_topic: str) -> List[Part]:
            text = (
                "Analyze the style reference images. Create a dramatic, 4K-quality YouTube "
                f'thumbnail for a video on the topic "{current_topic}". The thumbnail must match '
                "the reference style."
            )
            featured = [c.profile_line() for c in characters if c.is_mentioned_in(current_topic)]
            if featured:
                text += f"\nFeatured characters: {'; '.join(featured)}."
            text += (
                "\n\nThe main title must be large, clear, yellow with a black outline. "
                f"Base the context on this script: {script}\n\n{guide}"
            )
            return [{"text": text}, *references]

        return await self._render_with_rewrites(topic, build_parts, language, "Thumbnail generation")

    async def edit_image(
        self,
        instruction: str,
        image_url: str,
        style_references: Sequence[ImageResult] = (),
        language: str = "Vietnamese",
    ) -> str:
        image_part = to_inline_part(image_url)
        if image_part is None:
            raise ValidationError("Image to edit is not a data URL", field="image_url")

        guide = style_guide(None, language)
        references = _reference_parts(style_references)

        def build_parts(prompt: str) -> List[Part]:
            text = (
                f'The edit request for this image is: "{prompt}". '
                "AFTER EDITING, THE NEW IMAGE MUST STRICTLY FOLLOW these requirements: "
                f"{guide}"
            )
            return [image_part, {"text": text}, *references]

        return await self._render_with_rewrites(instruction, build_parts, language, "Image edit")

    # -------------------------------------------------------------------------
    # Text Generation
    # -------------------------------------------------------------------------

    async def detect_language(self, script: str) -> str:
        """Detect the script language; only English and Vietnamese are told apart."""
        if not script or len(script.strip()) < 20:
            return "Vietnamese"

        instruction = (
            "Detect the primary language of the following text. Respond with only the "
            'language name in English (e.g., "Vietnamese", "English").\n\n'
            f"Text:\n---\n{script[:500]}\n---"
        )
        try:
            data = await self._generate_content(self.text_model, [{"text": instruction}])
        except StudioError as e:
            logger.error(f"Language detection failed, defaulting to Vietnamese: {e.message}")
            return "Vietnamese"

        if "english" in self._extract_text(data).lower():
            return "English"
        return "Vietnamese"

    async def extract_details(
        self,
        script: str,
        language: str = "Vietnamese",
    ) -> Tuple[Setting, List[Character]]:
        instruction = (
            "As a professional director of photography and script analyst, read the following "
            "script and extract an accurate setting and the MAXIMUM number of visual 'characters': "
            "people, vehicles, mechanical components, places and documents that could anchor a shot. "
            f"Write every value in {language}.\n\n"
            "Respond with JSON of the form "
            '{"setting": {"place", "time", "weather", "season", "mood", "socialContext", '
            '"theme": {"centralIdea", "thematicQuestion"}}, '
            '"characters": [{"name", "isMain", "goal", "motivation", "conflict", '
            '"appearanceAndBehavior", "backstory", "characterArc"}]}.\n\n'
            f"SCRIPT:\n---\n{script}\n---"
        )

        data = await self._generate_content(
            self.reasoning_model,
            [{"text": instruction}],
            response_mime_type="application/json",
        )

        text = self._extract_text(data)
        try:
            parsed = json.loads(text)
        except ValueError:
            raise GenerationError(
                "Script analysis returned invalid JSON",
                stage="extract_details",
                details={"response": text[:200]},
            )

        setting = Setting.from_dict(parsed.get("setting") or {})
        characters = [Character.from_dict(item) for item in parsed.get("characters") or []]
        logger.info(f"Extracted setting '{setting.place}' and {len(characters)} character(s)")
        return setting, characters

    async def summarize_script(self, script: str, language: str = "Vietnamese") -> str:
        instruction = (
            "Summarize the following script in a few sentences to provide context for "
            "generating video scenes. Focus on the key events and technical aspects. "
            f"Write the summary in {language}.\n\n"
            f"SCRIPT:\n---\n{script}\n---\n\nReturn only the summary text."
        )
        try:
            data = await self._generate_content(self.text_model, [{"text": instruction}])
        except QuotaExceededError:
            raise
        except StudioError as e:
            logger.error(f"Script summary failed, truncating script instead: {e.message}")
            return script[:1000] + "..."
        return self._extract_text(data)

    async def generate_video_prompt(
        self,
        scene_description: str,
        image_url: str,
        characters: Sequence[Character],
        script_summary: str,
        language: str = "Vietnamese",
    ) -> str:
        image_part = to_inline_part(image_url)
        if image_part is None:
            raise ValidationError("Invalid image format for video prompt", field="image_url")

        profiles = "\n".join(f"- {c.profile_line()}" for c in characters)
        instruction = (
            "You are the creative director of a technical documentary series. Write a single, "
            "compelling prompt for a short (5-10 second) video clip of this scene.\n\n"
            f"SUMMARY:\n{script_summary}\n\n"
            f"MAIN CHARACTERS:\n{profiles}\n\n"
            f'SCENE:\n"{scene_description}"\n\n'
            "[IMAGE PROVIDED]\n\n"
            "Specify the camera (angle and movement), the action, the atmosphere, and keep the "
            "hyper-realistic documentary style with informational graphic overlays. "
            f"Write the prompt in {language}. Return ONLY the prompt as a single string."
        )

        fallback = (
            f'A technical documentary video clip about "{scene_description}", focusing on '
            "mechanical details, with informational graphic overlays explaining what is happening."
        )

        try:
            data = await self._generate_content(
                self.reasoning_model,
                [{"text": instruction}, image_part],
            )
            text = self._extract_text(data)
            if not text:
                reason = self._block_reason(data)
                if reason:
                    raise GenerationError(f"Blocked by safety filter: {reason}", stage="video_prompt")
                raise GenerationError("Empty response from model", stage="video_prompt")
            return text
        except StudioError as e:
            if isinstance(e, QuotaExceededError) or is_quota_message(e.message):
                raise
            logger.error(f"Video prompt generation failed, using fallback: {e.message}")
            return fallback
