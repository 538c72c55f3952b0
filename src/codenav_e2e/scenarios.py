# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Code intelligence scenarios in the source view page.

Covers:
- Importing a repository and waiting for it to finish indexing
- Hovering a reference and jumping to its definition in another file
- Finding references and jumping to one of them
- Hovering a reference whose definition lives in a different repository
- Deleting the imported repository afterwards

Each step takes the ScenarioSession explicitly and waits only through
session.retry.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from codenav_e2e.pages import (
    FIND_REFERENCE_BUTTON,
    GO_TO_DEFINITION_BUTTON,
    REPOSITORY_INDEX_DONE,
    CodePage,
    require,
)
from codenav_e2e.session import ScenarioSession

logger = logging.getLogger(__name__)

ScenarioStep = Callable[[ScenarioSession], Awaitable[object]]


@dataclass
class ScenarioResult:
    """Outcome of one scenario case."""

    name: str
    passed: bool
    duration_ms: float
    error: Optional[BaseException] = None

    def describe(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        line = f"[{status}] {self.name} ({self.duration_ms:.0f}ms)"
        if self.error is not None:
            line += f": {type(self.error).__name__}: {self.error}"
        return line


@dataclass
class ScenarioCase:
    name: str
    run: ScenarioStep


async def import_repository(session: ScenarioSession, url: str, name: str) -> None:
    """Import a git repository and wait until it is listed and indexed."""
    page = CodePage(session)
    await page.open_app()
    await page.fill_import_repository_url(url)
    await page.click_import_repository()

    async def imported_and_indexed() -> None:
        items = await page.repository_items()
        require(len(items) == 1, f"Expected 1 repository, found {len(items)}")
        text = await items[0].get_visible_text()
        require(text == name, f"Expected repository '{name}', found '{text}'")
        require(
            await session.locator.exists(REPOSITORY_INDEX_DONE),
            f"Repository '{name}' is not indexed yet",
        )

    await session.retry.try_for_time(session.config.index_timeout_ms, imported_and_indexed)
    session.log.info(f"Repository {name} imported and indexed")


async def delete_repository(session: ScenarioSession) -> None:
    """Delete the imported repository, wait until the list is empty, log out."""
    page = CodePage(session)
    await page.open_app()
    await page.click_delete_repository()

    async def repository_list_empty() -> None:
        items = await page.repository_items()
        require(len(items) == 0, f"Expected no repositories, found {len(items)}")

    await session.retry.try_(repository_list_empty)
    await page.logout()


async def prepare_repository_view(session: ScenarioSession) -> None:
    """Open the Code app and enter the first listed repository."""
    page = CodePage(session)
    await page.open_app()
    await page.open_first_repository()


async def wait_for_url(session: ScenarioSession, fragment: str) -> str:
    """Wait until the current URL contains fragment past its first character.

    Returns:
        The matching URL.
    """

    async def url_contains_fragment() -> str:
        current_url = await session.browser.get_current_url()
        session.log.info(f"Jump to url: {current_url}")
        require(
            current_url.find(fragment) > 0,
            f"Expected url containing '{fragment}', got '{current_url}'",
        )
        return current_url

    return await session.retry.try_for_time(
        session.config.navigation_timeout_ms, url_contains_fragment
    )


async def jump_to_definition(
    session: ScenarioSession,
    file_path: str,
    token: str,
    expected_fragment: str,
    occurrence: int = 0,
) -> str:
    """Hover a reference in file_path and jump to its definition.

    Returns:
        The URL landed on.
    """
    session.log.debug(f"Jump to definition of '{token}' from {file_path}")
    page = CodePage(session)
    await page.open_file(file_path)

    async def hover_and_jump() -> str:
        await page.hover_token(token, occurrence)
        await page.require_subject(GO_TO_DEFINITION_BUTTON)
        await session.locator.click(GO_TO_DEFINITION_BUTTON)
        return await wait_for_url(session, expected_fragment)

    return await session.retry.try_(hover_and_jump)


async def find_references_and_jump(
    session: ScenarioSession,
    file_path: str,
    token: str,
    expected_fragment: str,
    occurrence: int = 0,
) -> str:
    """Hover a symbol, open its references panel and jump to the first reference.

    Returns:
        The URL landed on.
    """
    session.log.debug(f"Find references of '{token}' in {file_path}")
    page = CodePage(session)
    await page.open_file(file_path)

    async def hover_and_find_references() -> str:
        await page.hover_token(token, occurrence)
        await page.require_subject(FIND_REFERENCE_BUTTON)
        await session.locator.click(FIND_REFERENCE_BUTTON)

        async def jump_to_first_reference() -> str:
            highlights = await page.reference_highlights()
            require(len(highlights) > 0, "No reference highlights rendered")
            await highlights[0].click()
            current_url = await session.browser.get_current_url()
            session.log.info(f"Jump to url: {current_url}")
            require(
                current_url.find(expected_fragment) > 0,
                f"Expected url containing '{expected_fragment}', got '{current_url}'",
            )
            return current_url

        return await session.retry.try_for_time(
            session.config.navigation_timeout_ms, jump_to_first_reference
        )

    return await session.retry.try_(hover_and_find_references)


async def jump_to_external_definition(
    session: ScenarioSession,
    file_path: str,
    token: str,
    expected_fragment: Optional[str] = None,
    occurrence: int = 0,
) -> Optional[str]:
    """Hover a reference defined in another repository and jump to it.

    Cross-repository resolution may need the dependency to be indexed first,
    so the hover is retried for the indexing timeout. When expected_fragment
    is None only the presence of the go-to-definition action is checked.

    Returns:
        The URL landed on, or None when no fragment was expected.
    """
    session.log.debug(f"Jump to external definition of '{token}' from {file_path}")
    page = CodePage(session)
    await page.open_file(file_path)

    async def hover_and_jump() -> Optional[str]:
        await page.hover_token(token, occurrence)
        await page.require_subject(GO_TO_DEFINITION_BUTTON)
        await session.locator.click(GO_TO_DEFINITION_BUTTON)
        if expected_fragment is None:
            return None
        return await wait_for_url(session, expected_fragment)

    return await session.retry.try_for_time(session.config.index_timeout_ms, hover_and_jump)


@dataclass
class CodeIntelligenceSuite:
    """The code intelligence cases run against one imported repository.

    before_all imports the repository, before_each re-enters it, after_all
    deletes it and logs out. A failing before_all fails every case without
    running it; after_all always runs.
    """

    session: ScenarioSession
    repository_url: str = ""
    repository_name: str = ""
    results: List[ScenarioResult] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.repository_url:
            self.repository_url = self.session.config.get("repository.url")
        if not self.repository_name:
            self.repository_name = self.session.config.get("repository.name")

    def cases(self) -> List[ScenarioCase]:
        return [
            ScenarioCase(
                "Hover on a reference and jump to definition across file",
                lambda s: jump_to_definition(
                    s, "src/controllers/user.ts", "UserModel", "src/models/User.ts!L5:13"
                ),
            ),
            ScenarioCase(
                "Find references and jump to reference",
                lambda s: find_references_and_jump(
                    s, "src/models/User.ts", "UserModel", "src/controllers/user.ts!L42:0"
                ),
            ),
            ScenarioCase(
                "Hover on a reference and jump to a different repository",
                lambda s: jump_to_external_definition(s, "src/controllers/user.ts", "async"),
            ),
        ]

    async def before_all(self) -> None:
        await import_repository(self.session, self.repository_url, self.repository_name)

    async def before_each(self) -> None:
        await prepare_repository_view(self.session)

    async def after_all(self) -> None:
        await delete_repository(self.session)

    async def run(self) -> List[ScenarioResult]:
        """Run every case and return one result per case."""
        self.results = []
        cases = self.cases()

        try:
            await self.before_all()
        except Exception as e:
            logger.error(f"Suite setup failed: {e}", exc_info=True)
            self.results = [ScenarioResult(case.name, False, 0.0, e) for case in cases]
            await self._teardown()
            return self.results

        for case in cases:
            self.results.append(await self._run_case(case))

        await self._teardown()
        return self.results

    async def _run_case(self, case: ScenarioCase) -> ScenarioResult:
        start = time.monotonic()
        try:
            await self.before_each()
            await case.run(self.session)
        except Exception as e:
            logger.error(f"Scenario '{case.name}' failed: {e}", exc_info=True)
            return ScenarioResult(case.name, False, (time.monotonic() - start) * 1000.0, e)
        return ScenarioResult(case.name, True, (time.monotonic() - start) * 1000.0)

    async def _teardown(self) -> None:
        try:
            await self.after_all()
        except Exception as e:
            logger.error(f"Suite teardown failed: {e}", exc_info=True)
            self.results.append(ScenarioResult("teardown", False, 0.0, e))
