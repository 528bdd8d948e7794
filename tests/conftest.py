"""Shared test fixtures for all test modules."""

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from series_studio.api.base import BaseImageProvider
from series_studio.core.config import Config
from series_studio.series.models import SeriesPrompt, Setting
from series_studio.workflow.ledger import ResultLedger
from series_studio.workflow.runner import SequentialDrain
from series_studio.workflow.signals import BatchSignals
from series_studio.workflow.studio import SeriesStudio

PNG_URL = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_sleep():
    """Pacing sleep that records requested delays without waiting."""
    return AsyncMock(return_value=None)


@pytest.fixture
def drain(fake_sleep):
    """Sequential drain with a recording sleep and no per-call deadline."""
    return SequentialDrain(pacing_delay=2.5, call_timeout=None, sleep=fake_sleep)


@pytest.fixture
def signals():
    return BatchSignals()


@pytest.fixture
def ledger():
    return ResultLedger()


@pytest.fixture
def config():
    """Default configuration, independent of any config file on disk."""
    return Config.from_dict({})


@pytest.fixture
def sample_setting():
    return Setting(
        place="Hangar 4",
        time="November 2nd, 1993, 5:13 PM EST",
        weather="overcast",
        season="autumn",
        mood="tense",
    )


@pytest.fixture
def prompt_a():
    """Prompt with a fixed id and two variations."""
    return SeriesPrompt(value="Pilot enters the cockpit", id="a", variations=2)


@pytest.fixture
def mock_provider():
    """Provider double whose generation methods are AsyncMocks returning images."""
    provider = MagicMock(spec=BaseImageProvider)
    provider.generate_image = AsyncMock(return_value=PNG_URL)
    provider.generate_image_with_references = AsyncMock(return_value=PNG_URL)
    provider.generate_thumbnail = AsyncMock(return_value=PNG_URL)
    provider.edit_image = AsyncMock(return_value="data:image/png;base64,RURJVA==")
    provider.detect_language = AsyncMock(return_value="English")
    provider.extract_details = AsyncMock(return_value=(Setting(place="Hangar"), []))
    provider.summarize_script = AsyncMock(return_value="A short summary")
    provider.generate_video_prompt = AsyncMock(return_value="Slow dolly in on the cockpit")
    return provider


@pytest.fixture
def studio(mock_provider, config, fake_sleep):
    """Studio session with a mocked provider and a recording sleep."""
    return SeriesStudio(mock_provider, config=config, sleep=fake_sleep)

