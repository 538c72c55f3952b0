# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Explicit per-run context handed to every page object and scenario step."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from codenav_e2e.config import Config
from codenav_e2e.interfaces import BrowserDriver, ElementLocator
from codenav_e2e.retry import ClockFunc, RetryPoller, SleepFunc


@dataclass
class ScenarioSession:
    """Browser, locator, configuration and retry engine for one run.

    Steps receive the session as an argument instead of reaching for
    module-level browser or page-object state.
    """

    browser: BrowserDriver
    locator: ElementLocator
    config: Config
    retry: RetryPoller
    log: logging.Logger = field(default_factory=lambda: logging.getLogger("codenav_e2e.scenario"))

    @classmethod
    def create(
        cls,
        browser: BrowserDriver,
        locator: ElementLocator,
        config: Optional[Config] = None,
        sleep: Optional[SleepFunc] = None,
        clock: Optional[ClockFunc] = None,
    ) -> "ScenarioSession":
        """Build a session whose poller follows the configured retry policy.

        Args:
            browser: Browser driver for navigation and mouse movement.
            locator: Element locator for lookups and clicks.
            config: Configuration. If None, loads from default location.
            sleep: Optional sleep coroutine for the poller.
            clock: Optional monotonic clock for the poller.
        """
        if config is None:
            config = Config()
        policy = config.default_policy()
        retry = RetryPoller(
            default_timeout_ms=policy.timeout_ms,
            default_interval_ms=policy.interval_ms,
            default_backoff_factor=policy.backoff_factor,
            default_max_interval_ms=policy.max_interval_ms,
            sleep=sleep,
            clock=clock,
        )
        return cls(browser=browser, locator=locator, config=config, retry=retry)
