# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Command line runner for the code intelligence suite."""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from codenav_e2e.config import DEFAULT_CONFIG_FILENAME, Config
from codenav_e2e.logging_setup import setup_logging
from codenav_e2e.playwright_driver import launch_session
from codenav_e2e.scenarios import CodeIntelligenceSuite, ScenarioResult

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Code intelligence UI scenarios for the Code app",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to configuration file. Default: ./{DEFAULT_CONFIG_FILENAME}",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Root URL of the application under test (overrides app.base_url)",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window instead of running headless",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for JSON log files. Default: ./.codenav_e2e_logs",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log retry attempts at DEBUG level",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    config = Config(config_path=args.config)
    if args.base_url:
        config.override("app.base_url", args.base_url)
    return config


def summarize(results: List[ScenarioResult]) -> int:
    """Log one line per result and return the process exit code."""
    for result in results:
        if result.passed:
            logger.info(result.describe())
        else:
            logger.error(result.describe())
    failed = sum(1 for result in results if not result.passed)
    logger.info(f"{len(results) - failed} passed, {failed} failed")
    return 1 if failed else 0


async def run_suite(config: Config, headless: Optional[bool] = None) -> List[ScenarioResult]:
    async with launch_session(config, headless=headless) as session:
        return await CodeIntelligenceSuite(session).run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point: run the suite in Chromium and report results."""
    args = parse_args(argv)

    setup_logging(
        log_dir=args.log_dir,
        log_level=logging.DEBUG if args.verbose else logging.INFO,
    )

    config = build_config(args)
    logger.info(f"Running code intelligence scenarios against {config.base_url}")
    results = asyncio.run(run_suite(config, headless=False if args.headed else None))
    return summarize(results)
