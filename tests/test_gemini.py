"""Tests for api/gemini.py - Gemini provider over a mocked transport."""

import json

import httpx
import pytest

from series_studio.api.factory import get_provider, list_providers
from series_studio.api.gemini import GeminiProvider, style_guide
from series_studio.core.exceptions import GenerationError, QuotaExceededError, ValidationError
from series_studio.series.character import Character
from series_studio.series.models import ImageResult, Setting

STYLE_URL = "data:image/jpeg;base64,U1RZTEU="
FACE_URL = "data:image/png;base64,RkFDRQ=="


def image_body(data="SU1H"):
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": data}}]}}]}


def text_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class Recorder:
    """MockTransport handler replaying queued responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.pop(0)
        return httpx.Response(status, json=body)

    def model(self, index):
        return self.requests[index].url.path.rsplit("/", 1)[-1].split(":")[0]

    def payload(self, index):
        return json.loads(self.requests[index].content)


def make_provider(recorder, **kwargs):
    return GeminiProvider(api_key="test-key", transport=httpx.MockTransport(recorder), **kwargs)


class TestFactory:
    """Tests for provider registration."""

    def test_gemini_registered(self):
        assert "gemini" in list_providers()

    def test_get_provider(self):
        provider = get_provider("gemini", api_key="k")
        assert isinstance(provider, GeminiProvider)
        assert provider.provider_name == "Gemini"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            get_provider("nope")

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("GOOGLE_API_KEY", "from-env")
        assert GeminiProvider().api_key == "from-env"


class TestGenerateImage:
    """Tests for image generation."""

    @pytest.mark.asyncio
    async def test_returns_data_url(self):
        recorder = Recorder((200, image_body("SU1H")))

        async with make_provider(recorder) as provider:
            url = await provider.generate_image(
                "Cockpit view",
                style_references=[ImageResult.success("ref", STYLE_URL)],
                language="English",
            )

        assert url == "data:image/png;base64,SU1H"
        request = recorder.requests[0]
        assert request.url.path.endswith("/models/gemini-2.5-flash-image:generateContent")
        assert request.url.params["key"] == "test-key"

        payload = recorder.payload(0)
        assert payload["generationConfig"]["responseModalities"] == ["IMAGE"]
        parts = payload["contents"][0]["parts"]
        assert '"Cockpit view"' in parts[0]["text"]
        assert "written in English" in parts[0]["text"]
        assert parts[1] == {"inlineData": {"mimeType": "image/jpeg", "data": "U1RZTEU="}}

    @pytest.mark.asyncio
    async def test_quota_is_not_retried(self):
        recorder = Recorder((429, {"error": {"message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}}))

        async with make_provider(recorder) as provider:
            with pytest.raises(QuotaExceededError) as exc_info:
                await provider.generate_image("Scene")

        assert len(recorder.requests) == 1
        assert "quota" in exc_info.value.message.lower()

    @pytest.mark.asyncio
    async def test_resource_exhausted_status_is_quota(self):
        recorder = Recorder((403, {"error": {"message": "exhausted", "status": "RESOURCE_EXHAUSTED"}}))

        async with make_provider(recorder) as provider:
            with pytest.raises(QuotaExceededError):
                await provider.generate_image("Scene")

    @pytest.mark.asyncio
    async def test_rewrites_prompt_after_empty_response(self):
        recorder = Recorder(
            (200, text_body("I cannot draw that")),
            (200, text_body("A wide shot of a vintage cockpit at dusk")),
            (200, image_body()),
        )

        async with make_provider(recorder) as provider:
            url = await provider.generate_image("Cockpit")

        assert url.startswith("data:image/png;base64,")
        assert [recorder.model(i) for i in range(3)] == [
            "gemini-2.5-flash-image",
            "gemini-2.5-pro",
            "gemini-2.5-flash-image",
        ]
        assert "A wide shot of a vintage cockpit at dusk" in recorder.payload(2)["contents"][0]["parts"][0]["text"]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        recorder = Recorder(
            (500, {"error": {"message": "internal"}}),
            (500, {"error": {"message": "internal"}}),
            (500, {"error": {"message": "internal"}}),
        )

        async with make_provider(recorder) as provider:
            with pytest.raises(GenerationError) as exc_info:
                await provider.generate_image("Scene")

        assert len(recorder.requests) == 3
        assert "quota" not in exc_info.value.message.lower()
        assert "limit" not in exc_info.value.message.lower()

    @pytest.mark.asyncio
    async def test_block_reason_reported(self):
        recorder = Recorder((200, {"promptFeedback": {"blockReason": "SAFETY"}}))

        async with make_provider(recorder, max_attempts=1) as provider:
            with pytest.raises(GenerationError) as exc_info:
                await provider.generate_image("Scene")

        assert "SAFETY" in exc_info.value.message


class TestReferences:
    """Tests for character references and edits."""

    @pytest.mark.asyncio
    async def test_only_mentioned_characters_attached(self):
        recorder = Recorder((200, image_body()))
        cast = [
            Character(name="Mai", reference_image_url=FACE_URL),
            Character(name="Tuan", reference_image_url=FACE_URL),
        ]

        async with make_provider(recorder) as provider:
            await provider.generate_image_with_references("Mai checks the gauges", cast)

        texts = [p.get("text", "") for p in recorder.payload(0)["contents"][0]["parts"]]
        assert "Reference for character: Mai" in texts
        assert "Reference for character: Tuan" not in texts

    @pytest.mark.asyncio
    async def test_edit_sends_source_image_first(self):
        recorder = Recorder((200, image_body("RURJVA==")))

        async with make_provider(recorder) as provider:
            url = await provider.edit_image("Add rain", FACE_URL)

        parts = recorder.payload(0)["contents"][0]["parts"]
        assert parts[0] == {"inlineData": {"mimeType": "image/png", "data": "RkFDRQ=="}}
        assert '"Add rain"' in parts[1]["text"]
        assert url == "data:image/png;base64,RURJVA=="

    @pytest.mark.asyncio
    async def test_edit_rejects_non_data_url(self):
        async with make_provider(Recorder()) as provider:
            with pytest.raises(ValidationError):
                await provider.edit_image("Add rain", "https://example.com/a.png")


class TestTextCalls:
    """Tests for analysis and writing calls."""

    @pytest.mark.asyncio
    async def test_detect_language_short_script(self):
        recorder = Recorder()
        async with make_provider(recorder) as provider:
            assert await provider.detect_language("short") == "Vietnamese"
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_detect_english(self):
        recorder = Recorder((200, text_body("English")))
        async with make_provider(recorder) as provider:
            assert await provider.detect_language("The engine failed over the Atlantic.") == "English"

    @pytest.mark.asyncio
    async def test_detect_language_defaults_on_error(self):
        recorder = Recorder((500, {"error": {"message": "internal"}}))
        async with make_provider(recorder) as provider:
            assert await provider.detect_language("The engine failed over the Atlantic.") == "Vietnamese"

    @pytest.mark.asyncio
    async def test_extract_details(self):
        analysis = {
            "setting": {"place": "Hangar", "socialContext": "strike", "theme": {"centralIdea": "duty"}},
            "characters": [{"name": "Mai", "isMain": True, "appearanceAndBehavior": "Engineer"}],
        }
        recorder = Recorder((200, text_body(json.dumps(analysis))))

        async with make_provider(recorder) as provider:
            setting, characters = await provider.extract_details("Script", "English")

        assert setting == Setting(place="Hangar", social_context="strike", central_idea="duty")
        assert characters[0].is_main
        assert characters[0].appearance_and_behavior == "Engineer"
        assert recorder.payload(0)["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    async def test_extract_details_invalid_json(self):
        recorder = Recorder((200, text_body("not json")))
        async with make_provider(recorder) as provider:
            with pytest.raises(GenerationError):
                await provider.extract_details("Script")

    @pytest.mark.asyncio
    async def test_summary_fallback(self):
        recorder = Recorder((500, {"error": {"message": "internal"}}))
        script = "x" * 1200

        async with make_provider(recorder) as provider:
            summary = await provider.summarize_script(script)

        assert summary == "x" * 1000 + "..."

    @pytest.mark.asyncio
    async def test_summary_quota_raised(self):
        """Test that an exhausted quota is not hidden behind the truncated script."""
        recorder = Recorder((429, {"error": {"message": "exhausted"}}))

        async with make_provider(recorder) as provider:
            with pytest.raises(QuotaExceededError):
                await provider.summarize_script("Script")

    @pytest.mark.asyncio
    async def test_video_prompt_fallback(self):
        recorder = Recorder((500, {"error": {"message": "internal"}}))

        async with make_provider(recorder) as provider:
            text = await provider.generate_video_prompt("Takeoff", FACE_URL, [], "Summary")

        assert '"Takeoff"' in text

    @pytest.mark.asyncio
    async def test_video_prompt_quota_raised(self):
        recorder = Recorder((429, {"error": {"message": "exhausted"}}))

        async with make_provider(recorder) as provider:
            with pytest.raises(QuotaExceededError):
                await provider.generate_video_prompt("Takeoff", FACE_URL, [], "Summary")


class TestStyleGuide:
    """Tests for style_guide()."""

    def test_uses_setting_time(self):
        guide = style_guide(Setting(time="May 4th, 1987, 9:00 AM"), "English")
        assert "MAY 4TH | 1987" in guide

    def test_defaults(self):
        assert "NOVEMBER 2ND, 1993 | 5:13 PM EST" in style_guide(None, "Vietnamese")
