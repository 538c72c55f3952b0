# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures: a fake clock and an in-memory Code application.

FakeCodeApp models just enough of the Code app's UI for the page objects
and scenarios: repository import and indexing, the file tree, token hover
actions, go-to-definition, find references and logout. Slow UI behaviour
(indexing, loading spinners, hover actions, URL changes) is simulated by
requiring a number of polls before the state flips.
"""

import asyncio
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

import pytest

from codenav_e2e.config import Config
from codenav_e2e.interfaces import BrowserDriver, ElementHandle, ElementLocator, ElementNotFound
from codenav_e2e.session import ScenarioSession

BASE_URL = "http://code.test"


class FakeClock:
    """Monotonic clock advanced only by its own sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeElement(ElementHandle):
    def __init__(self, text: str, on_click: Optional[Callable[[], None]] = None):
        self.text = text
        self.on_click = on_click
        self.clicks = 0

    async def get_visible_text(self) -> str:
        return self.text

    async def click(self) -> None:
        self.clicks += 1
        if self.on_click is not None:
            self.on_click()


class FakeCodeApp:
    """In-memory stand-in for the Code application UI."""

    def __init__(self) -> None:
        self.files: Dict[str, List[str]] = {
            "src/controllers/user.ts": ["import", "async", "UserModel", "User", "UserModel"],
            "src/models/User.ts": ["export", "type", "UserModel", "UserModel"],
        }
        self.definitions: Dict[Tuple[str, str], str] = {
            ("src/controllers/user.ts", "UserModel"): "src/models/User.ts!L5:13",
            ("src/controllers/user.ts", "async"): "github.com/DefinitelyTyped/DefinitelyTyped",
        }
        self.references: Dict[Tuple[str, str], List[str]] = {
            ("src/models/User.ts", "UserModel"): ["src/controllers/user.ts!L42:0"],
        }

        # Knobs for simulated slowness
        self.loading_polls = 1
        self.index_polls = 3
        self.hover_polls = 1
        self.url_polls = 1

        self.logged_in = True
        self.user_menu_open = False
        self.repositories: List[str] = []
        self.import_url = ""
        self.indexed = False
        self._index_polls_left = 0
        self._reset_view()

        self.navigations: List[str] = []
        self.hovers: List[str] = []
        self.clicked: List[str] = []

    def _reset_view(self) -> None:
        self.url = f"{BASE_URL}/app/code"
        self._loading_polls_left = self.loading_polls
        self.repository_open: Optional[str] = None
        self.expanded: Set[str] = set()
        self.open_file: Optional[str] = None
        self.hovered: Optional[str] = None
        self._hover_polls_left = 0
        self.references_open: Optional[List[str]] = None
        self._pending_url: Optional[str] = None
        self._url_polls_left = 0

    # -- browser ---------------------------------------------------------

    def navigate_to_app(self, name: str) -> None:
        self.navigations.append(name)
        self._reset_view()
        self.url = f"{BASE_URL}/app/{name}"

    def current_url(self) -> str:
        if self._pending_url is not None:
            if self._url_polls_left > 0:
                self._url_polls_left -= 1
            else:
                self.url = self._pending_url
                self._pending_url = None
        return self.url

    def hover(self, element: ElementHandle) -> None:
        assert isinstance(element, FakeElement)
        self.hovers.append(element.text)
        if self.hovered != element.text:
            self.hovered = element.text
            self._hover_polls_left = self.hover_polls

    # -- visible state ---------------------------------------------------

    def _tree_nodes(self) -> List[str]:
        if self.repository_open is None:
            return []
        nodes: Set[str] = set()
        for path in self.files:
            parts = path.split("/")
            for depth in range(1, len(parts) + 1):
                parent = "/".join(parts[: depth - 1])
                if depth > 1 and parent not in self.expanded:
                    break
                prefix = "/".join(parts[:depth])
                kind = "File" if depth == len(parts) else "Directory"
                nodes.add(f"codeFileTreeNode-{kind}-{prefix}")
        return sorted(nodes)

    def _hover_actions_ready(self) -> bool:
        if self.hovered is None:
            return False
        if self._hover_polls_left > 0:
            self._hover_polls_left -= 1
            return False
        return True

    def subject_present(self, test_id: str) -> bool:
        if test_id == "globalLoadingIndicator":
            if self._loading_polls_left > 0:
                self._loading_polls_left -= 1
                return True
            return False
        if test_id == "repositoryIndexDone":
            if self.repositories and not self.indexed:
                if self._index_polls_left > 0:
                    self._index_polls_left -= 1
                else:
                    self.indexed = True
            return self.indexed
        if test_id in ("codeGoToDefinitionButton", "codeFindReferenceButton"):
            return self._hover_actions_ready()
        return test_id in self._static_subjects()

    def _static_subjects(self) -> Set[str]:
        subjects: Set[str] = set()
        if not self.logged_in:
            return {"loginForm"}
        subjects.add("userMenuButton")
        if self.user_menu_open:
            subjects.add("logoutLink")
        if self.repository_open is None:
            subjects.update({"importRepositoryUrlInputBox", "importRepositoryButton"})
            if self.repositories:
                subjects.update({"codeRepositoryList codeRepositoryItem", "deleteRepositoryButton"})
        subjects.update(self._tree_nodes())
        if self.open_file is not None:
            subjects.add("codeSourceViewer")
        return subjects

    # -- clicks ----------------------------------------------------------

    def click_subject(self, test_id: str) -> None:
        if not self.subject_present(test_id):
            raise ElementNotFound(f"Test subject '{test_id}' not found")
        self.clicked.append(test_id)

        if test_id == "importRepositoryButton":
            name = self.import_url.replace("https://github.com/", "")
            self.repositories = [name]
            self.indexed = False
            self._index_polls_left = self.index_polls
        elif test_id == "deleteRepositoryButton":
            self.repositories = []
            self.indexed = False
        elif test_id == "codeRepositoryList codeRepositoryItem":
            self.repository_open = self.repositories[0]
            self.url = f"{BASE_URL}/app/code/github.com/{self.repository_open}"
        elif test_id.startswith("codeFileTreeNode-Directory-"):
            self.expanded.add(test_id[len("codeFileTreeNode-Directory-"):])
        elif test_id.startswith("codeFileTreeNode-File-"):
            self.open_file = test_id[len("codeFileTreeNode-File-"):]
            self.hovered = None
            self.url = f"{BASE_URL}/app/code/github.com/{self.repository_open}/blob/master/{self.open_file}"
        elif test_id == "codeGoToDefinitionButton":
            target = self.definitions.get((self.open_file, self.hovered))
            if target is not None:
                self._navigate_later(target)
        elif test_id == "codeFindReferenceButton":
            self.references_open = self.references.get((self.open_file, self.hovered), [])
        elif test_id == "userMenuButton":
            self.user_menu_open = True
        elif test_id == "logoutLink":
            self.user_menu_open = False
            self.logged_in = False

    def _navigate_later(self, target: str) -> None:
        if target.startswith("github.com/"):
            url = f"{BASE_URL}/app/code/{target}"
        else:
            url = f"{BASE_URL}/app/code/github.com/{self.repository_open}/blob/master/{target}"
        # Repeated clicks on the same target do not restart the pending navigation
        if self._pending_url != url:
            self._pending_url = url
            self._url_polls_left = self.url_polls

    # -- css lookups -----------------------------------------------------

    def css(self, selector: str) -> List[FakeElement]:
        if selector == Config.DEFAULTS["selectors.token"]:
            if self.open_file is None:
                return []
            return [FakeElement(text) for text in self.files[self.open_file]]
        if selector == Config.DEFAULTS["selectors.reference_highlight"]:
            if not self.references_open:
                return []
            return [
                FakeElement(target, on_click=lambda t=target: self._navigate_later(t))
                for target in self.references_open
            ]
        return []


class FakeBrowser(BrowserDriver):
    def __init__(self, app: FakeCodeApp):
        self.app = app

    async def navigate_to_app(self, name: str) -> None:
        self.app.navigate_to_app(name)

    async def get_current_url(self) -> str:
        return self.app.current_url()

    async def move_mouse_to(self, element: ElementHandle) -> None:
        self.app.hover(element)


class FakeLocator(ElementLocator):
    def __init__(self, app: FakeCodeApp):
        self.app = app
        self.find_timeouts: List[float] = []

    async def find_all(self, selector: str, timeout_ms: float) -> List[ElementHandle]:
        self.find_timeouts.append(timeout_ms)
        return list(self.app.css(selector))

    async def find_all_test_subjects(self, test_id: str) -> List[ElementHandle]:
        if test_id == "codeRepositoryList codeRepositoryItem" and self.app.subject_present(test_id):
            return [FakeElement(name) for name in self.app.repositories]
        if self.app.subject_present(test_id):
            return [FakeElement(test_id)]
        return []

    async def exists(self, test_id: str) -> bool:
        return self.app.subject_present(test_id)

    async def click(self, test_id: str) -> None:
        self.app.click_subject(test_id)

    async def set_value(self, test_id: str, text: str) -> None:
        if not self.app.subject_present(test_id):
            raise ElementNotFound(f"Test subject '{test_id}' not found")
        self.app.import_url = text


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def code_app() -> FakeCodeApp:
    return FakeCodeApp()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(config_path=tmp_path / "missing.yml")


@pytest.fixture
def session(code_app: FakeCodeApp, config: Config, fake_clock: FakeClock) -> ScenarioSession:
    return ScenarioSession.create(
        FakeBrowser(code_app),
        FakeLocator(code_app),
        config,
        sleep=fake_clock.sleep,
        clock=fake_clock,
    )
