"""Shared test fixtures: fake Playwright pages and a fake LLM client."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock

import pytest

from voicereplica.executor import CONTENT_SCRIPT


@dataclass
class FakeElement:
    tag: str
    name: str = ""
    id: str = ""
    value: str = ""


class FakePage:
    """Stands in for a Playwright page that has the content script."""

    def __init__(
        self,
        url: str = "https://example.com/",
        elements: list[FakeElement] | None = None,
        focused: bool = False,
        has_search: bool = False,
        has_submit: bool = False,
        text: str = "",
    ) -> None:
        self.url = url
        self.elements = elements or []
        self.focused = focused
        self.has_search = has_search
        self.has_submit = has_submit
        self.text = text
        self.installed = False
        self.closed = False
        self.calls: list[tuple[str, list[Any]]] = []
        self.waits: list[int] = []
        self.visited: list[str] = []
        self.search_value = ""
        self.submitted = False
        self.clicked_submit = False
        self.redirect_to = ""

    def is_closed(self) -> bool:
        return self.closed

    def bring_to_front(self) -> None:
        pass

    def goto(self, url: str, **kwargs: Any) -> None:
        self.visited.append(url)
        self.url = url

    def wait_for_timeout(self, ms: int) -> None:
        self.waits.append(ms)

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        if expression == CONTENT_SCRIPT:
            self.installed = True
            return True
        if "document.hasFocus" in expression:
            return self.focused
        match = re.search(r"__voiceReplica\.(\w+)", expression)
        assert match, f"unexpected expression: {expression}"
        assert self.installed, "content script was not installed"
        method = match.group(1)
        args = list(arg or [])
        self.calls.append((method, args))
        return getattr(self, f"_js_{method}")(*args)

    def _js_fillSearch(self, query: str) -> bool:
        if not self.has_search:
            return False
        self.search_value = query
        return True

    def _js_submitSearch(self) -> bool:
        self.submitted = True
        return True

    def _js_fillField(self, key: str, value: str, selector: str) -> bool:
        tags = {part.strip() for part in selector.split(",")}
        for element in self.elements:
            if element.tag in tags and (key in element.name or key in element.id):
                element.value = value
                return True
        return False

    def _js_clickSubmit(self) -> bool:
        self.clicked_submit = self.has_submit
        return self.has_submit

    def _js_pageText(self) -> str:
        return self.text

    def _js_redirect(self, url: str, delay_ms: int) -> bool:
        self.redirect_to = url
        return True


class FakeRuntime:
    def __init__(self, pages: list[FakePage] | None = None) -> None:
        self._pages = list(pages or [])
        self.created: list[FakePage] = []
        self.closed = False

    def pages(self) -> list[FakePage]:
        return [page for page in self._pages if not page.is_closed()]

    def new_page(self) -> FakePage:
        page = FakePage(url="about:blank")
        self._pages.append(page)
        self.created.append(page)
        return page

    def close(self) -> None:
        self.closed = True


class FakeResponses:
    def __init__(self, output_text: str | None = None, error: Exception | None = None) -> None:
        self.output_text = output_text
        self.error = error
        self.requests: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        response = MagicMock()
        response.output_text = self.output_text
        return response


class FakeLlmClient:
    """Mimics the slice of openai.AsyncOpenAI the classifier uses."""

    def __init__(self, output_text: str | None = None, error: Exception | None = None) -> None:
        self.responses = FakeResponses(output_text, error)


@pytest.fixture
def fake_page() -> FakePage:
    page = FakePage()
    page.evaluate(CONTENT_SCRIPT)
    return page
