"""End-to-end command handling with an offline classifier and a fake browser."""

from __future__ import annotations

import asyncio

from conftest import FakeElement, FakePage, FakeRuntime
from voicereplica.app import run_command
from voicereplica.classifier import IntentClassifier
from voicereplica.config import LlmSettings
from voicereplica.messenger import Messenger
from voicereplica.service import IntentService


def offline_service() -> IntentService:
    return IntentService(IntentClassifier(None, LlmSettings()))


def run(text: str, page: FakePage):
    runtime = FakeRuntime([page])
    messenger = Messenger(runtime_factory=lambda: runtime, listener_settle_ms=0)
    try:
        return asyncio.run(run_command(text, offline_service(), messenger)), runtime
    finally:
        messenger.close()


def test_open_website_navigates() -> None:
    page = FakePage(focused=True)
    outcome, _ = run("open youtube", page)
    assert outcome.response["intent"] == "open_website"
    assert outcome.request.action == "NAVIGATE"
    assert outcome.execution.success
    assert page.visited == ["https://www.youtube.com"]
    assert outcome.spoken == "Opened https://www.youtube.com"


def test_search_redirects() -> None:
    page = FakePage(focused=True)
    outcome, _ = run("search for cats", page)
    assert outcome.request.payload == {"query": "cats"}
    assert page.redirect_to.endswith("q=cats")


def test_conversational_command_skips_browser() -> None:
    page = FakePage(focused=True, elements=[FakeElement("input", name="q")])
    outcome, _ = run("tell me a joke", page)
    assert outcome.request.action == "NONE"
    assert outcome.execution is None
    assert not page.installed
    assert outcome.spoken == outcome.response["message"]


def test_validation_error_response() -> None:
    outcome, runtime = run("   ", FakePage())
    assert outcome.response == {"success": False, "message": "Text cannot be empty", "statusCode": 400}
    assert outcome.request is None
    assert outcome.spoken == "Text cannot be empty"
    assert runtime.created == []
