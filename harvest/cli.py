"""
Knowledge harvest CLI - run one harvest pass over all configured sources.

Usage:
    python -m harvest
    python -m harvest --no-summary --no-publish
    python -m harvest --sources sources.toml --output-dir ./outputs

Environment Variables:
    FIRECRAWL_API_KEY - Firecrawl key (plain URLs use direct extraction without it)
    GROQ_API_KEY - Summary backend key (summaries are skipped without it)
    PUBLISH_MODE - docker (default) | local | none
    REINDEX_URL - Knowledge store rebuild endpoint (empty disables)

Exit codes:
    0 - run completed (individual sources may have failed)
    2 - run completed but the reindex notification failed
    1 - unexpected error
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging

from dotenv import load_dotenv

from harvest.core.harvest_job import ReindexStatus, run_harvest
from harvest.core.logging_setup import configure_logging
from harvest.core.settings import Settings
from harvest.core.sources import load_sources_file

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_REINDEX_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="knowledge-harvest",
        description="Harvest web and Reddit sources into a knowledge store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--sources", help="TOML file with [[sources]] entries (default: built-in list)")
    parser.add_argument("--no-summary", action="store_true", help="Store raw text, skip summarization")
    parser.add_argument("--no-publish", action="store_true", help="Write artifacts locally only")
    parser.add_argument("--output-dir", help="Local artifact directory (default: HARVEST_OUTPUT_DIR)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply command-line flags on top of environment settings."""
    changes: dict = {}
    if args.sources:
        changes["sources"] = load_sources_file(args.sources)
    if args.no_summary:
        changes["summarize_mode"] = "0"
    if args.no_publish:
        changes["publish_mode"] = "none"
    if args.output_dir:
        changes["output_dir"] = args.output_dir
    if args.verbose:
        changes["log_level"] = "DEBUG"
    return dataclasses.replace(settings, **changes) if changes else settings


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        settings = apply_overrides(Settings.from_env(), args)
    except (ValueError, OSError) as e:
        # Logging is not configured yet
        configure_logging(None)
        logger.error(f"Invalid configuration: {e}")
        return EXIT_ERROR
    except Exception as e:
        configure_logging(None)
        logger.exception(f"Failed to load configuration: {e}")
        return EXIT_ERROR

    try:
        configure_logging(settings.log_file, settings.log_level)
    except OSError as e:
        configure_logging(None, settings.log_level)
        logger.error(f"Cannot open log file {settings.log_file}: {e}")
        return EXIT_ERROR

    try:
        summary = asyncio.run(run_harvest(settings))
    except KeyboardInterrupt:
        logger.info("Harvest interrupted")
        return EXIT_ERROR
    except Exception as e:
        logger.exception(f"Harvest failed: {e}")
        return EXIT_ERROR

    if summary.reindex is ReindexStatus.FAILED:
        return EXIT_REINDEX_FAILED
    return EXIT_OK
