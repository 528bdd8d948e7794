"""Tests for series/models.py and series/character.py."""

import pytest

from series_studio.core.exceptions import ValidationError
from series_studio.series.character import Character, main_characters
from series_studio.series.models import ImageResult, ImageStatus, SeriesPrompt, Setting


class TestImageStatus:
    """Tests for ImageStatus."""

    def test_legacy_retrying_maps_to_error(self):
        assert ImageStatus.from_value("retrying") is ImageStatus.ERROR

    def test_retryable_statuses(self):
        assert ImageStatus.ERROR.is_retryable
        assert ImageStatus.CANCELLED.is_retryable
        assert not ImageStatus.SUCCESS.is_retryable
        assert not ImageStatus.GENERATING.is_retryable

    def test_generating_is_not_terminal(self):
        assert not ImageStatus.GENERATING.is_terminal
        assert ImageStatus.SUCCESS.is_terminal


class TestImageResult:
    """Tests for ImageResult construction and serialization."""

    def test_success_carries_url_only(self):
        result = ImageResult.success("x", "data:image/png;base64,AA", "Linh", prompt_id="p")
        assert result.status == ImageStatus.SUCCESS
        assert result.url == "data:image/png;base64,AA"
        assert result.error is None
        assert result.generated_by == "Linh"

    def test_from_dict_accepts_camel_case(self):
        """Test that results saved with camelCase keys load."""
        result = ImageResult.from_dict({
            "id": "series-p-var-0",
            "promptId": "p",
            "status": "success",
            "url": "data:image/png;base64,AA",
            "generatedBy": "Linh",
        })
        assert result.prompt_id == "p"
        assert result.generated_by == "Linh"

    def test_from_dict_drops_fields_that_break_the_invariant(self):
        """Test that url is kept only on success and error only on failures."""
        failed = ImageResult.from_dict({"id": "x", "status": "error", "url": "stale", "error": "boom"})
        assert failed.url is None
        assert failed.error == "boom"

        pending = ImageResult.from_dict({"id": "y", "status": "generating", "error": "old"})
        assert pending.error is None

    def test_success_without_url_becomes_error(self):
        result = ImageResult.from_dict({"id": "x", "status": "success"})
        assert result.status == ImageStatus.ERROR
        assert result.error == "Missing image data"

    def test_to_dict_round_trip(self):
        original = ImageResult.cancelled("x", "Stopped by user", prompt_id="p")
        assert ImageResult.from_dict(original.to_dict()) == original


class TestSeriesPrompt:
    """Tests for SeriesPrompt."""

    def test_defaults(self):
        prompt = SeriesPrompt(value="Scene")
        assert prompt.variations == 1
        assert prompt.id

    @pytest.mark.parametrize("bad", [0, -2])
    def test_variations_below_one_rejected(self, bad):
        with pytest.raises(ValidationError):
            SeriesPrompt(value="Scene", variations=bad)

    def test_variations_validated_on_assignment(self):
        prompt = SeriesPrompt(value="Scene")
        with pytest.raises(ValidationError):
            prompt.variations = 0
        assert prompt.variations == 1

    def test_from_script_skips_empty_lines(self):
        prompts = SeriesPrompt.from_script("First\n\nSecond\n")
        assert [p.value for p in prompts] == ["First", "Second"]
        assert len({p.id for p in prompts}) == 2


class TestSetting:
    """Tests for Setting."""

    def test_context_prompt(self, sample_setting):
        text = sample_setting.context_prompt()
        assert text.startswith("Main setting: Hangar 4 at November 2nd, 1993")
        assert "Weather: overcast (autumn)" in text
        assert text.endswith("Atmosphere: tense.")

    def test_from_dict_reads_nested_camel_case_theme(self):
        setting = Setting.from_dict({
            "place": "Dock",
            "socialContext": "strike",
            "theme": {"centralIdea": "duty", "thematicQuestion": "why?"},
        })
        assert setting.social_context == "strike"
        assert setting.central_idea == "duty"
        assert setting.thematic_question == "why?"


class TestCharacter:
    """Tests for Character."""

    def test_needs_preview_until_success(self):
        character = Character(name="Mai")
        assert character.needs_preview

        character.preview = ImageResult.failure(character.id, "boom")
        assert character.needs_preview

        character.preview = ImageResult.success(character.id, "data:image/png;base64,AA")
        assert not character.needs_preview

    def test_preview_prompt_includes_context(self):
        character = Character(name="Mai", appearance_and_behavior="Tall engineer in overalls")
        assert character.build_preview_prompt("Hangar at dusk") == (
            "Tall engineer in overalls. Context: Hangar at dusk"
        )

    def test_is_mentioned_in_is_case_insensitive(self):
        assert Character(name="Mai").is_mentioned_in("mai checks the gauge")
        assert not Character(name="").is_mentioned_in("anything")

    def test_update_rejects_unknown_field(self):
        with pytest.raises(AttributeError):
            Character(name="Mai").update("preview", "x")

    def test_from_dict_camel_case(self):
        character = Character.from_dict({
            "id": "c1",
            "name": "Mai",
            "isMain": True,
            "appearanceAndBehavior": "Tall",
            "referenceImageUrl": "data:image/png;base64,AA",
        })
        assert character.is_main
        assert character.appearance_and_behavior == "Tall"
        assert character.reference_image_url == "data:image/png;base64,AA"

    def test_main_characters(self):
        cast = [Character(name="A", is_main=True), Character(name="B")]
        assert [c.name for c in main_characters(cast)] == ["A"]
