"""Browser-side execution of dispatched actions.

DOM work happens inside an injected content script exposed as
``window.__voiceReplica``. Field lookup is heuristic: the first element in
DOM order whose name or id contains the key (case-sensitive) wins, even if
later elements would be a better match.
"""

import re
from typing import Any, Callable, Dict
from urllib.parse import quote_plus

from voicereplica.config import (
    FIELD_SETTLE_MS,
    REDIRECT_DELAY_MS,
    SEARCH_SUBMIT_SETTLE_MS,
    SEARCH_URL,
    SUMMARY_MAX_CHARS,
)
from voicereplica.console import log_line
from voicereplica.errors import ElementNotFound, ValidationError, describe_error
from voicereplica.models import ActionRequest, ExecutionResult, Message, Reply

CONTENT_SCRIPT = """
(() => {
  if (window.__voiceReplica) return true;
  let searchInput = null;
  const notify = (el) => {
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
  };
  const setValue = (el, value) => {
    try { el.focus(); } catch (e) {}
    el.value = value;
    notify(el);
  };
  const findByKey = (selector, key) => {
    for (const el of document.querySelectorAll(selector)) {
      const name = el.getAttribute('name') || '';
      const id = el.getAttribute('id') || '';
      if (name.includes(key) || id.includes(key)) return el;
    }
    return null;
  };
  window.__voiceReplica = {
    fillSearch(query) {
      searchInput = document.querySelector(
        'input[type="search"], [role="search"] input, input[name*="search"], input[id*="search"]'
      );
      if (!searchInput) return false;
      setValue(searchInput, query);
      return true;
    },
    submitSearch() {
      if (!searchInput) return false;
      const form = searchInput.form;
      if (form) {
        if (typeof form.requestSubmit === 'function') form.requestSubmit();
        else form.submit();
        return true;
      }
      const opts = { key: 'Enter', code: 'Enter', keyCode: 13, which: 13, bubbles: true };
      searchInput.dispatchEvent(new KeyboardEvent('keydown', opts));
      searchInput.dispatchEvent(new KeyboardEvent('keyup', opts));
      return false;
    },
    fillField(key, value, selector) {
      const el = findByKey(selector || 'input, textarea', key);
      if (!el) return false;
      setValue(el, value);
      return true;
    },
    clickSubmit() {
      const el = document.querySelector('button[type="submit"], input[type="submit"]');
      if (!el) return false;
      el.click();
      return true;
    },
    pageText() {
      return document.body ? (document.body.innerText || '') : '';
    },
    redirect(url, delayMs) {
      setTimeout(() => { window.location.href = url; }, delayMs);
      return true;
    },
  };
  return true;
})()
""".strip()

BOOKING_FIELDS = ("from", "to", "date")


def normalize_page_text(text: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    return re.sub(r"\s+", " ", text or "").strip()[:limit]


class ContentExecutor:
    """Runs one action against a Playwright page that has the content script."""

    def __init__(self, page: Any, field_settle_ms: int = FIELD_SETTLE_MS) -> None:
        self._page = page
        self._field_settle_ms = field_settle_ms
        self._handlers: Dict[str, Callable[[Dict[str, Any]], ExecutionResult]] = {
            "SEARCH": self._search,
            "NAVIGATION": self._navigate,
            "WEBSITE_SEARCH": self._website_search,
            "FORM_FILL": self._form_fill,
            "BOOK_TICKET": self._book_ticket,
            "SUMMARIZE": self._summarize,
        }

    @property
    def page(self) -> Any:
        return self._page

    def install(self) -> None:
        self._page.evaluate(CONTENT_SCRIPT)

    def execute(self, request: ActionRequest) -> ExecutionResult:
        message_type = request.message_type
        if message_type is None:
            return ExecutionResult(success=False, error=f"Unknown command: {request.action}")
        return self.handle(Message(message_type, request.payload)).to_execution_result()

    def handle(self, message: Message) -> Reply:
        log_line(f"  RUN: {message.type}")
        handler = self._handlers.get(message.type)
        if handler is None:
            return Reply(success=False, error="Unknown command")
        try:
            return Reply(success=True, data=handler(message.payload))
        except Exception as exc:
            error = describe_error(exc)
            log_line(f"WARN: {message.type} failed ({error}).")
            return Reply(success=False, data=ExecutionResult(success=False, error=error), error=error)

    def _call(self, method: str, *args: Any) -> Any:
        return self._page.evaluate(
            f"(args) => window.__voiceReplica.{method}(...args)",
            list(args),
        )

    def _search(self, payload: Dict[str, Any]) -> ExecutionResult:
        query = str(payload.get("query") or "").strip()
        if not query:
            raise ValidationError("No query")
        # Navigation is fire-and-forget; the page may unload before it reports back.
        self._call("redirect", SEARCH_URL + quote_plus(query), REDIRECT_DELAY_MS)
        return ExecutionResult(success=True, message="Redirecting to Google")

    def _navigate(self, payload: Dict[str, Any]) -> ExecutionResult:
        url = str(payload.get("url") or "").strip()
        if not url:
            raise ValidationError("No URL to open")
        self._page.goto(url, wait_until="domcontentloaded", timeout=30000)
        return ExecutionResult(success=True, message=f"Opened {url}")

    def _website_search(self, payload: Dict[str, Any]) -> ExecutionResult:
        query = str(payload.get("query") or "").strip()
        if not query:
            raise ValidationError("No query")
        if not self._call("fillSearch", query):
            raise ElementNotFound("Search box not found")
        self._page.wait_for_timeout(SEARCH_SUBMIT_SETTLE_MS)
        self._call("submitSearch")
        return ExecutionResult(success=True, message="Search submitted")

    def _form_fill(self, payload: Dict[str, Any]) -> ExecutionResult:
        fields = payload.get("form_fields")
        if not isinstance(fields, dict) or not fields:
            raise ValidationError("No form fields provided")
        filled = 0
        for key, value in fields.items():
            if self._call("fillField", str(key), str(value), "input, textarea"):
                filled += 1
        return ExecutionResult(success=True, message=f"Filled {filled} fields")

    def _book_ticket(self, payload: Dict[str, Any]) -> ExecutionResult:
        for key in BOOKING_FIELDS:
            value = str(payload.get(key) or "").strip()
            if not value:
                continue
            if self._call("fillField", key, value, "input"):
                self._page.wait_for_timeout(self._field_settle_ms)
        self._call("clickSubmit")
        return ExecutionResult(success=True, message="Booking form processed")

    def _summarize(self, payload: Dict[str, Any]) -> ExecutionResult:
        text = normalize_page_text(self._call("pageText"))
        return ExecutionResult(success=True, summary=text, message="Page content extracted")
