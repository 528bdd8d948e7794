#!/usr/bin/env python3
"""
CLI Script: Generate Series
===========================

Command-line tool for generating an image series from a script, one shot
at a time.

Usage:
    python scripts/generate_series.py script.txt --variations 2 --member Linh
    python scripts/generate_series.py --project saved.tmproj --retry-failed
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from series_studio import Config, SeriesStudio, StudioError, get_provider
from series_studio.series import ImageStatus
from series_studio.utils import project_filename

logger = logging.getLogger("generate_series")


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate an image series from a script",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s script.txt
  %(prog)s script.txt --analyze --variations 3 -o series.tmproj
  %(prog)s --project series.tmproj --retry-failed
        """,
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file, one scene per line",
    )
    parser.add_argument(
        "--project",
        help="Resume from a saved project file",
    )
    parser.add_argument(
        "--retry-failed",
        action="store_true",
        help="Retry failed and cancelled images instead of generating the series",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Analyze the script for setting and characters before generating",
    )
    parser.add_argument(
        "--variations",
        type=int,
        default=1,
        help="Shots per scene for a new series (default: 1)",
    )
    parser.add_argument(
        "--member",
        help="Team member name credited for generated images",
    )
    parser.add_argument(
        "--language",
        help="Script language (default: from config)",
    )

    # Config
    parser.add_argument(
        "--config",
        help="Path to config file",
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        help="Project output path (default: auto-generated)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args()


def print_summary(studio: SeriesStudio) -> bool:
    """Print per-status counts. Returns True if every image succeeded."""
    counts = studio.images.count_by_status()
    for status in ImageStatus:
        print(f"  {status.value:<10} {counts[status]}")

    failed = [image for image in studio.images if image.status != ImageStatus.SUCCESS]
    for image in failed:
        print(f"  - {image.id}: {image.error}")

    if studio.signals.error:
        print(f"\n{studio.signals.error}")

    return not failed


async def run(args) -> int:
    config = Config.load(args.config)

    provider = get_provider(
        config.provider.name,
        api_key=config.provider.api_key,
        base_url=config.provider.base_url,
        timeout=config.provider.request_timeout,
        image_model=config.generation.image_model,
        text_model=config.generation.text_model,
        reasoning_model=config.generation.reasoning_model,
        max_attempts=config.generation.max_attempts,
    )

    async with provider:
        studio = SeriesStudio(provider, config=config)

        if args.project:
            metadata = studio.load(args.project)
            print(f"Loaded project (saved by {metadata.get('saved_by', 'unknown')})")
        else:
            studio.script = Path(args.script).read_text(encoding="utf-8")

        if args.member:
            member = studio.add_member(args.member)
            studio.set_active_member(member.id)
        if args.language:
            studio.language = args.language

        if args.analyze:
            await studio.analyze_script()
            print(f"Setting: {studio.context_prompt}")
            print(f"Characters: {', '.join(c.name for c in studio.characters)}")

        if not studio.series_prompts:
            studio.proceed_to_series()
            for prompt in studio.series_prompts:
                prompt.variations = args.variations

        # Ctrl-C stops the batch before its next call
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, studio.stop)
        except NotImplementedError:
            logger.warning("Cooperative stop on Ctrl-C is not supported on this platform")

        output = args.output or args.project or project_filename(
            "series-project", config.project.file_suffix
        )

        try:
            if args.retry_failed:
                await studio.retry_failed()
            else:
                await studio.generate_series()
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                pass
            # Outcomes recorded before a failure are kept
            studio.save(output)
            print(f"Project saved: {output}")

        print("\n" + "-" * 50)
        complete = print_summary(studio)
        print("=" * 50)

        return 0 if complete else 1


def main():
    """Main CLI entry point."""
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.script and not args.project:
        print("Error: Either a script file or --project is required")
        sys.exit(1)

    if args.script and not args.project and not Path(args.script).exists():
        print(f"Error: Script file not found: {args.script}")
        sys.exit(1)

    if args.variations < 1:
        print("Error: --variations must be at least 1")
        sys.exit(1)

    print("=" * 50)
    print("Series Studio")
    print("=" * 50)

    try:
        sys.exit(asyncio.run(run(args)))
    except StudioError as e:
        print(f"\nError: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
