# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Collaborator interfaces consumed by the page objects and scenarios.

Components:
- BrowserDriver: app navigation, current URL, mouse movement
- ElementLocator: CSS and test-subject lookups, clicks and input
- ElementHandle: a single located element
- ConfigProvider: read-only keyed configuration

Concrete implementations live in playwright_driver (real browser) and in the
test suite (in-memory fakes). Logging goes through any logging.Logger.
"""

from abc import ABC, abstractmethod
from typing import Any, List

from codenav_e2e.retry import ProbeFailure


class ElementNotFound(ProbeFailure):
    """Raised when a selector or test subject matches no element."""

    pass


class ElementHandle(ABC):
    """A located UI element."""

    @abstractmethod
    async def get_visible_text(self) -> str:
        pass

    @abstractmethod
    async def click(self) -> None:
        pass


class BrowserDriver(ABC):
    """Browser-level operations."""

    @abstractmethod
    async def navigate_to_app(self, name: str) -> None:
        """Navigate to the named application and wait for the page to load."""
        pass

    @abstractmethod
    async def get_current_url(self) -> str:
        pass

    @abstractmethod
    async def move_mouse_to(self, element: ElementHandle) -> None:
        """Move the pointer over the element, triggering hover behaviour."""
        pass


class ElementLocator(ABC):
    """Element lookup by CSS selector or test subject id.

    A test subject id addresses elements by their data-test-subj attribute.
    Space-separated ids select descendants, e.g.
    "codeRepositoryList codeRepositoryItem".
    """

    @abstractmethod
    async def find_all(self, selector: str, timeout_ms: float) -> List[ElementHandle]:
        """Return all elements matching a CSS selector.

        Waits up to timeout_ms for at least one match; returns an empty
        list if none appears.
        """
        pass

    @abstractmethod
    async def find_all_test_subjects(self, test_id: str) -> List[ElementHandle]:
        """Return all elements currently matching a test subject id."""
        pass

    @abstractmethod
    async def exists(self, test_id: str) -> bool:
        """Check, without waiting, whether a test subject is present."""
        pass

    @abstractmethod
    async def click(self, test_id: str) -> None:
        """Click the test subject.

        Raises:
            ElementNotFound: If the test subject is not present.
        """
        pass

    @abstractmethod
    async def set_value(self, test_id: str, text: str) -> None:
        """Replace the value of an input test subject.

        Raises:
            ElementNotFound: If the test subject is not present.
        """
        pass


class ConfigProvider(ABC):
    """Keyed configuration lookup."""

    @abstractmethod
    def get(self, key: str) -> Any:
        pass
