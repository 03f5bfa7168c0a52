import re
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, List, TypeVar

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from voicereplica.config import (
    BROWSER_ENGINE,
    BROWSER_HEADLESS,
    DEFAULT_PAGE_URL,
    LISTENER_SETTLE_MS,
    NEW_PAGE_SETTLE_MS,
    REPLY_TIMEOUT_SECONDS,
    RESTRICTED_URL_PREFIXES,
)
from voicereplica.console import log_line
from voicereplica.errors import MessagingTimeoutError, describe_error
from voicereplica.executor import ContentExecutor
from voicereplica.models import ActionRequest, ExecutionResult, Message, Reply

T = TypeVar("T")

STAGE_TIMEOUT_SECONDS = 60.0


CLOSED_BROWSER_MARKERS = (
    "browser has been closed",
    "target page, context or browser has been closed",
)


def compact_playwright_error(exc: Exception, limit: int = 220) -> str:
    """One line of Playwright error text, without its call log."""
    head = re.split(r"(?:Browser logs|Call log):", str(exc), maxsplit=1)[0]
    text = " ".join(head.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def is_closed_browser_error(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in CLOSED_BROWSER_MARKERS)


class BrowserRuntime:
    """Lazily launched Playwright browser. Only touch it from one thread."""

    def __init__(self, engine: str = BROWSER_ENGINE, headless: bool = BROWSER_HEADLESS) -> None:
        self._engine = engine
        self._headless = headless
        self._playwright = None
        self._browser = None
        self._context = None

    def _launch(self) -> None:
        if self._context is not None:
            return
        self._playwright = sync_playwright().start()
        launch_kwargs: Dict[str, Any] = {"headless": self._headless}
        if self._engine in {"edge", "msedge"}:
            launch_kwargs["channel"] = "msedge"
        elif self._engine == "chrome":
            launch_kwargs["channel"] = "chrome"
        args: List[str] = [] if self._headless else ["--start-maximized"]
        self._browser = self._playwright.chromium.launch(args=args, **launch_kwargs)
        self._context = self._browser.new_context(no_viewport=not self._headless)

    def pages(self) -> List[Any]:
        self._launch()
        return [page for page in self._context.pages if not page.is_closed()]

    def new_page(self) -> Any:
        self._launch()
        return self._context.new_page()

    def close(self) -> None:
        try:
            if self._context is not None:
                try:
                    self._context.close()
                except PlaywrightError:
                    pass
        finally:
            self._context = None
            if self._browser is not None:
                try:
                    self._browser.close()
                except PlaywrightError:
                    pass
                self._browser = None
            if self._playwright is not None:
                self._playwright.stop()
                self._playwright = None


def _has_focus(page: Any) -> bool:
    try:
        return bool(page.evaluate("() => document.hasFocus()"))
    except PlaywrightError:
        return False


def resolve_target_page(
    runtime: Any,
    default_url: str = DEFAULT_PAGE_URL,
    settle_ms: int = NEW_PAGE_SETTLE_MS,
) -> Any:
    """Pick the page a command runs in.

    Focused page first, then any page off the browser's internal schemes,
    then a fresh page on the default URL.
    """
    pages = runtime.pages()
    for candidate in reversed(pages):
        if _has_focus(candidate):
            return candidate
    for candidate in pages:
        url = candidate.url or ""
        if url and not url.startswith(RESTRICTED_URL_PREFIXES):
            return candidate
    log_line("No usable page; opening a new one.")
    page = runtime.new_page()
    page.goto(default_url, wait_until="domcontentloaded", timeout=30000)
    page.wait_for_timeout(settle_ms)
    return page


class Messenger:
    """Carries one action into the target page and waits for one reply.

    Every browser call runs on a single worker thread, so at most one
    action touches the DOM at a time.
    """

    def __init__(
        self,
        runtime_factory: Callable[[], Any] = BrowserRuntime,
        executor_factory: Callable[[Any], ContentExecutor] = ContentExecutor,
        reply_timeout: float = REPLY_TIMEOUT_SECONDS,
        stage_timeout: float = STAGE_TIMEOUT_SECONDS,
        default_url: str = DEFAULT_PAGE_URL,
        new_page_settle_ms: int = NEW_PAGE_SETTLE_MS,
        listener_settle_ms: int = LISTENER_SETTLE_MS,
    ) -> None:
        self._runtime_factory = runtime_factory
        self._executor_factory = executor_factory
        self._reply_timeout = reply_timeout
        self._stage_timeout = stage_timeout
        self._default_url = default_url
        self._new_page_settle_ms = new_page_settle_ms
        self._listener_settle_ms = listener_settle_ms
        self._lock = threading.Lock()
        self._runtime = runtime_factory()
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="browser-runtime")

    def send(self, request: ActionRequest) -> ExecutionResult:
        message_type = request.message_type
        if message_type is None:
            return ExecutionResult(success=False, error=f"Unknown command: {request.action}")
        message = Message(message_type, request.payload)

        stage = "Target page resolution"
        try:
            page = self._run(self._resolve_target, stage, self._stage_timeout)
            stage = "Content script injection"
            executor = self._run(lambda: self._inject(page), stage, self._stage_timeout)
            stage = "Content script reply"
            reply = self._run(lambda: executor.handle(message), stage, self._reply_timeout)
        except MessagingTimeoutError as exc:
            return ExecutionResult(success=False, error=describe_error(exc))
        except PlaywrightError as exc:
            detail = compact_playwright_error(exc)
            error = f"{stage} failed: {detail}"
            log_line(f"WARN: {error}")
            if is_closed_browser_error(detail):
                self._reset_runtime(detail)
            return ExecutionResult(success=False, error=error)
        except Exception as exc:
            error = f"{stage} failed: {describe_error(exc)}"
            log_line(f"WARN: {error}")
            return ExecutionResult(success=False, error=error)

        if not isinstance(reply, Reply):
            return ExecutionResult(success=False, error="No response from content script")
        return reply.to_execution_result()

    def close(self) -> None:
        with self._lock:
            runtime = self._runtime
            worker = self._worker
        try:
            worker.submit(runtime.close).result(timeout=self._stage_timeout)
        except FuturesTimeoutError:
            log_line("WARN: Browser shutdown timed out.")
        except PlaywrightError as exc:
            log_line(f"WARN: Browser shutdown failed ({compact_playwright_error(exc)}).")
        except Exception as exc:
            log_line(f"WARN: Browser shutdown failed ({describe_error(exc)}).")
        finally:
            worker.shutdown(wait=False, cancel_futures=True)

    def _resolve_target(self) -> Any:
        with self._lock:
            runtime = self._runtime
        page = resolve_target_page(runtime, self._default_url, self._new_page_settle_ms)
        try:
            page.bring_to_front()
        except PlaywrightError:
            pass
        return page

    def _inject(self, page: Any) -> ContentExecutor:
        executor = self._executor_factory(page)
        executor.install()
        page.wait_for_timeout(self._listener_settle_ms)
        return executor

    def _run(self, fn: Callable[[], T], stage: str, timeout: float) -> T:
        with self._lock:
            worker = self._worker
        future = worker.submit(fn)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError:
            future.cancel()
            self._reset_runtime(f"{stage} timed out")
            raise MessagingTimeoutError(f"{stage} timed out after {timeout:g} seconds") from None

    def _reset_runtime(self, reason: str) -> None:
        log_line(f"WARN: Resetting browser runtime ({reason}).")
        with self._lock:
            old_runtime = self._runtime
            old_worker = self._worker
            self._runtime = self._runtime_factory()
            self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="browser-runtime")
        # The stuck worker owns the old runtime; let it close there once free.
        old_worker.submit(old_runtime.close)
        old_worker.shutdown(wait=False, cancel_futures=False)
