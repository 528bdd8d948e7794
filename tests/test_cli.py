"""Tests for scripts/generate_series.py - the command-line runner."""

import argparse
import importlib.util
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from series_studio.core.exceptions import GenerationError
from series_studio.series.models import ImageResult, ImageStatus
from series_studio.workflow.studio import SeriesStudio

SCRIPT_PATH = Path(__file__).parent.parent / "scripts" / "generate_series.py"
URL = "data:image/png;base64,iVBORw0KGgo="


def load_cli():
    spec = importlib.util.spec_from_file_location("generate_series_cli", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def cli():
    return load_cli()


@pytest.fixture
def cli_args(temp_dir):
    script = temp_dir / "script.txt"
    script.write_text("Pilot enters the cockpit\nTakeoff\n", encoding="utf-8")
    return argparse.Namespace(
        script=str(script),
        project=None,
        retry_failed=False,
        analyze=False,
        variations=1,
        member=None,
        language=None,
        config=None,
        output=str(temp_dir / "out.tmproj"),
        verbose=False,
    )


class TestRun:
    """Tests for run()."""

    @pytest.mark.asyncio
    async def test_project_saved_when_batch_raises(self, cli, cli_args, config, mock_provider):
        """Test that outcomes recorded before a failure reach the project file."""

        async def failing_series(self):
            self.images.put(ImageResult.success("series-x-var-0", URL, prompt_id="x"))
            raise GenerationError("batch aborted")

        with patch.object(cli, "Config", MagicMock(load=MagicMock(return_value=config))), \
                patch.object(cli, "get_provider", return_value=mock_provider), \
                patch.object(SeriesStudio, "generate_series", failing_series):
            with pytest.raises(GenerationError):
                await cli.run(cli_args)

        restored = SeriesStudio(mock_provider, config=config)
        restored.load(cli_args.output)
        assert restored.images.get("series-x-var-0").status == ImageStatus.SUCCESS
        assert [p.value for p in restored.series_prompts] == ["Pilot enters the cockpit", "Takeoff"]

    @pytest.mark.asyncio
    async def test_exit_code_reflects_failures(self, cli, cli_args, config, mock_provider):
        async def partial_series(self):
            self.images.put(ImageResult.failure("series-x-var-0", "boom", prompt_id="x"))

        with patch.object(cli, "Config", MagicMock(load=MagicMock(return_value=config))), \
                patch.object(cli, "get_provider", return_value=mock_provider), \
                patch.object(SeriesStudio, "generate_series", partial_series):
            assert await cli.run(cli_args) == 1

        assert Path(cli_args.output).exists()
