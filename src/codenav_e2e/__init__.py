# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Code intelligence UI scenarios with a polling retry engine."""

from .config import Config, ConfigurationError
from .interfaces import (
    BrowserDriver,
    ConfigProvider,
    ElementHandle,
    ElementLocator,
    ElementNotFound,
)
from .retry import (
    Failure,
    PollState,
    ProbeFailure,
    RetryExhausted,
    RetryPolicy,
    RetryPoller,
    Success,
)
from .scenarios import CodeIntelligenceSuite, ScenarioResult
from .session import ScenarioSession

__version__ = "0.1.0"

__all__ = [
    "RetryPoller",
    "RetryPolicy",
    "PollState",
    "Success",
    "Failure",
    "ProbeFailure",
    "RetryExhausted",
    "Config",
    "ConfigurationError",
    "BrowserDriver",
    "ElementLocator",
    "ElementHandle",
    "ElementNotFound",
    "ConfigProvider",
    "ScenarioSession",
    "CodeIntelligenceSuite",
    "ScenarioResult",
]
