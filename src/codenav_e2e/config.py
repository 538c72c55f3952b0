# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the Code UI scenario runner."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from codenav_e2e.interfaces import ConfigProvider
from codenav_e2e.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".codenav_e2e.yml"


class ConfigurationError(Exception):
    """Raised when an unknown configuration key is requested."""

    pass


class Config(ConfigProvider):
    """Configuration for Code UI scenario runs.

    Loads configuration from .codenav_e2e.yml with validation and defaults.
    Nested YAML mappings are flattened to dotted keys, so

        timeouts:
          find: 20000

    is read back with config.get("timeouts.find").
    """

    DEFAULTS: Dict[str, Any] = {
        "app.base_url": "http://localhost:5601",
        "app.name": "code",
        "repository.url": "https://github.com/Microsoft/TypeScript-Node-Starter",
        "repository.name": "Microsoft/TypeScript-Node-Starter",
        "timeouts.find": 10000,
        "timeouts.try": 120000,
        "timeouts.index": 300000,
        "timeouts.navigation": 5000,
        "retry.interval_ms": 500,
        "retry.backoff_factor": 1.0,
        "retry.max_interval_ms": 5000,
        # Monaco renders every highlighted token as a span with an mtk* class;
        # tokens are then picked by their visible text, not by their color class.
        "selectors.token": ".view-line span[class^='mtk']",
        "selectors.reference_highlight": ".code-search-highlight",
        "browser.headless": True,
    }

    _POSITIVE_INT_KEYS = (
        "timeouts.find",
        "timeouts.try",
        "timeouts.index",
        "timeouts.navigation",
    )

    # Millisecond and factor values may be fractional
    _NUMERIC_KEYS = (
        "retry.interval_ms",
        "retry.max_interval_ms",
        "retry.backoff_factor",
    )

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        self._config = self.DEFAULTS.copy()

        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            return
        except OSError as e:
            logger.warning(
                f"Could not read configuration file {self.config_path}: {e}, using defaults"
            )
            return

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            return

        self._validate_and_merge(_flatten(loaded_config))

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        default = self.DEFAULTS[key]

        # bool is an int subclass, keep them apart
        if isinstance(default, bool) or isinstance(value, bool):
            return isinstance(value, bool) and isinstance(default, bool)

        if key in self._NUMERIC_KEYS:
            if not isinstance(value, (int, float)):
                return False
        elif not isinstance(value, type(default)):
            return False

        if key in self._POSITIVE_INT_KEYS:
            return value > 0
        elif key in ("retry.interval_ms", "retry.max_interval_ms"):
            return value >= 0
        elif key == "retry.backoff_factor":
            return value >= 1.0
        elif isinstance(value, str):
            return bool(value.strip())

        return True

    def get(self, key: str) -> Any:
        """Return the configured value for a dotted key.

        Raises:
            ConfigurationError: If the key is not a known configuration parameter.
        """
        if key not in self._config:
            raise ConfigurationError(f"Unknown configuration key '{key}'")
        return self._config[key]

    def override(self, key: str, value: Any) -> None:
        """Set a value at runtime, e.g. from a command-line flag.

        Raises:
            ConfigurationError: If the key is unknown or the value is invalid.
        """
        if key not in self.DEFAULTS:
            raise ConfigurationError(f"Unknown configuration key '{key}'")
        if not self._validate_parameter(key, value):
            raise ConfigurationError(f"Invalid value for '{key}': {value}")
        self._config[key] = value

    def default_policy(self, timeout_ms: Optional[float] = None) -> RetryPolicy:
        """Build a RetryPolicy from the configured retry settings.

        Args:
            timeout_ms: Deadline for the policy. Defaults to timeouts.try.
        """
        return RetryPolicy(
            timeout_ms=timeout_ms if timeout_ms is not None else self.try_timeout_ms,
            interval_ms=self.get("retry.interval_ms"),
            backoff_factor=float(self.get("retry.backoff_factor")),
            max_interval_ms=self.get("retry.max_interval_ms"),
        )

    @property
    def base_url(self) -> str:
        """Root URL of the application under test."""
        value = self._config["app.base_url"]
        assert isinstance(value, str)
        return value.rstrip("/")

    @property
    def find_timeout_ms(self) -> int:
        """Timeout for element lookups."""
        value = self._config["timeouts.find"]
        assert isinstance(value, int)
        return value

    @property
    def try_timeout_ms(self) -> int:
        """Default deadline for retried checks."""
        value = self._config["timeouts.try"]
        assert isinstance(value, int)
        return value

    @property
    def index_timeout_ms(self) -> int:
        """Deadline for repository import and indexing."""
        value = self._config["timeouts.index"]
        assert isinstance(value, int)
        return value

    @property
    def navigation_timeout_ms(self) -> int:
        """Deadline for a jump to land on the expected URL."""
        value = self._config["timeouts.navigation"]
        assert isinstance(value, int)
        return value

    @property
    def retry_interval_ms(self) -> float:
        """Delay between retry attempts."""
        value = self._config["retry.interval_ms"]
        assert isinstance(value, (int, float))
        return value

    @property
    def headless(self) -> bool:
        """Whether to launch the browser headless."""
        value = self._config["browser.headless"]
        assert isinstance(value, bool)
        return value


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{full_key}."))
        else:
            flat[full_key] = value
    return flat
