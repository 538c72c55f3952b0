# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Page object for the Code search/navigation application.

Every wait goes through the session's RetryPoller; nothing here sleeps or
loops on its own.
"""

from typing import List

from codenav_e2e.interfaces import ElementHandle
from codenav_e2e.retry import ProbeFailure
from codenav_e2e.session import ScenarioSession

REPOSITORY_ITEMS = "codeRepositoryList codeRepositoryItem"
REPOSITORY_INDEX_DONE = "repositoryIndexDone"
IMPORT_URL_INPUT = "importRepositoryUrlInputBox"
IMPORT_BUTTON = "importRepositoryButton"
DELETE_BUTTON = "deleteRepositoryButton"
SOURCE_VIEWER = "codeSourceViewer"
GO_TO_DEFINITION_BUTTON = "codeGoToDefinitionButton"
FIND_REFERENCE_BUTTON = "codeFindReferenceButton"
LOADING_INDICATOR = "globalLoadingIndicator"
USER_MENU_BUTTON = "userMenuButton"
LOGOUT_LINK = "logoutLink"
LOGIN_FORM = "loginForm"


def require(condition: bool, message: str) -> None:
    """Fail the current probe with message unless condition holds."""
    if not condition:
        raise ProbeFailure(message)


def directory_node(path: str) -> str:
    return f"codeFileTreeNode-Directory-{path}"


def file_node(path: str) -> str:
    return f"codeFileTreeNode-File-{path}"


class CodePage:
    """Actions and waits on the Code app, bound to one session."""

    def __init__(self, session: ScenarioSession):
        self.session = session
        self.locator = session.locator

    async def open_app(self) -> None:
        """Navigate to the Code app and wait until the page stops loading."""
        await self.session.browser.navigate_to_app(self.session.config.get("app.name"))
        await self.wait_until_loading_finished()

    async def wait_until_loading_finished(self) -> None:
        async def loading_finished() -> None:
            require(
                not await self.locator.exists(LOADING_INDICATOR),
                "Page is still loading",
            )

        await self.session.retry.try_(loading_finished)

    async def wait_for_subject(self, test_id: str) -> None:
        """Wait until the test subject is present."""

        async def present() -> None:
            await self.require_subject(test_id)

        await self.session.retry.try_(present)

    async def require_subject(self, test_id: str) -> None:
        """Fail the current probe unless the test subject is present right now."""
        require(await self.locator.exists(test_id), f"Test subject '{test_id}' not present")

    async def fill_import_repository_url(self, url: str) -> None:
        await self.wait_for_subject(IMPORT_URL_INPUT)
        await self.locator.set_value(IMPORT_URL_INPUT, url)

    async def click_import_repository(self) -> None:
        await self.locator.click(IMPORT_BUTTON)

    async def click_delete_repository(self) -> None:
        await self.wait_for_subject(DELETE_BUTTON)
        await self.locator.click(DELETE_BUTTON)

    async def repository_items(self) -> List[ElementHandle]:
        return await self.locator.find_all_test_subjects(REPOSITORY_ITEMS)

    async def open_first_repository(self) -> None:
        await self.wait_for_subject(REPOSITORY_ITEMS)
        await self.locator.click(REPOSITORY_ITEMS)

    async def logout(self) -> None:
        await self.locator.click(USER_MENU_BUTTON)
        await self.wait_for_subject(LOGOUT_LINK)
        await self.locator.click(LOGOUT_LINK)
        await self.wait_for_subject(LOGIN_FORM)

    async def open_file(self, path: str) -> None:
        """Open a file by walking the file tree down to it.

        Each directory node is clicked once it has rendered, then the file
        node, then the source viewer is awaited.

        Args:
            path: Repository-relative file path, e.g. "src/controllers/user.ts".
        """
        parts = path.strip("/").split("/")
        for depth in range(1, len(parts)):
            node = directory_node("/".join(parts[:depth]))
            await self.wait_for_subject(node)
            await self.locator.click(node)

        node = file_node("/".join(parts))
        await self.wait_for_subject(node)
        await self.locator.click(node)
        await self.wait_for_subject(SOURCE_VIEWER)

    async def find_token(self, text: str, occurrence: int = 0) -> ElementHandle:
        """Locate the n-th rendered source token whose visible text equals text.

        Raises:
            ProbeFailure: If fewer than occurrence + 1 matching tokens are rendered.
        """
        spans = await self.locator.find_all(
            self.session.config.get("selectors.token"),
            self.session.config.find_timeout_ms,
        )
        matches = []
        for span in spans:
            if await span.get_visible_text() == text:
                matches.append(span)

        require(
            len(matches) > occurrence,
            f"Expected at least {occurrence + 1} '{text}' token(s), found {len(matches)}",
        )
        return matches[occurrence]

    async def hover_token(self, text: str, occurrence: int = 0) -> ElementHandle:
        """Move the mouse over a source token to bring up its hover actions."""
        token = await self.find_token(text, occurrence)
        await self.session.browser.move_mouse_to(token)
        return token

    async def reference_highlights(self) -> List[ElementHandle]:
        return await self.locator.find_all(
            self.session.config.get("selectors.reference_highlight"),
            self.session.config.find_timeout_ms,
        )
