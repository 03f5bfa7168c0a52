"""Tests for voicereplica.classifier with a fake LLM client."""

from __future__ import annotations

import asyncio
import json

import httpx
import openai
import pytest

from conftest import FakeLlmClient
from voicereplica.classifier import (
    RESPONSE_SCHEMA,
    SCHEMA_NAME,
    IntentClassifier,
    create_client,
    extract_json_object,
    parse_classifier_response,
)
from voicereplica.config import LlmSettings
from voicereplica.errors import ParseError, UpstreamAuthError, UpstreamRateLimitError
from voicereplica.models import ENTITY_KEYS, FALLBACK_MODEL

SETTINGS = LlmSettings(api_key="test-key", model="grok-test")
REQUEST = httpx.Request("POST", "https://api.x.ai/v1/responses")


def status_error(status: int) -> openai.APIStatusError:
    response = httpx.Response(status, request=REQUEST)
    return openai.APIStatusError(f"status {status}", response=response, body=None)


def contract(intent: str = "navigation", confidence: float = 0.9, **entities: str) -> str:
    base = {key: "" for key in ENTITY_KEYS}
    base.update(entities)
    base["form_fields"] = {}
    return json.dumps(
        {
            "success": True,
            "data": {
                "intent": intent,
                "entities": base,
                "message": "Opening YouTube",
                "confidence": confidence,
                "metadata": {"processingTime": "", "timestamp": "", "model": "grok-test"},
            },
            "message": "ok",
        }
    )


def classify(client: FakeLlmClient | None, text: str = "open youtube"):
    return asyncio.run(IntentClassifier(client, SETTINGS).classify(text))


class TestParsing:
    def test_plain_json(self) -> None:
        assert parse_classifier_response('{"a": 1}') == {"a": 1}

    def test_recovers_embedded_object(self) -> None:
        assert parse_classifier_response('Sure! {"a": {"b": 2}} hope that helps') == {"a": {"b": 2}}

    def test_skips_unbalanced_braces(self) -> None:
        assert extract_json_object('{oops} then {"a": [1, 2]}') == {"a": [1, 2]}
        assert extract_json_object("no braces") is None

    def test_unrecoverable(self) -> None:
        with pytest.raises(ParseError):
            parse_classifier_response("no json here")

    def test_empty(self) -> None:
        with pytest.raises(ParseError):
            parse_classifier_response("")


class TestClassify:
    def test_no_client_uses_fallback(self) -> None:
        result = classify(None)
        assert result.model == FALLBACK_MODEL
        assert result.intent == "open_website"

    def test_model_result(self) -> None:
        client = FakeLlmClient(contract(website="YouTube", url="https://www.youtube.com"))
        result = classify(client)
        assert result.intent == "navigation"
        assert result.entities["url"] == "https://www.youtube.com"
        assert result.entities["form_fields"] == {}
        assert result.model == "grok-test"
        assert result.confidence == 0.9

    def test_request_carries_schema_contract(self) -> None:
        client = FakeLlmClient(contract())
        classify(client, "open youtube")
        request = client.responses.requests[0]
        assert request["model"] == "grok-test"
        assert request["input"].endswith("User Command: open youtube")
        assert request["text"]["format"]["type"] == "json_schema"
        assert request["text"]["format"]["name"] == SCHEMA_NAME
        assert request["text"]["format"]["schema"] is RESPONSE_SCHEMA

    def test_confidence_clamped(self) -> None:
        assert classify(FakeLlmClient(contract(confidence=0.2))).confidence == 0.70
        assert classify(FakeLlmClient(contract(confidence=1.0))).confidence == 0.95

    def test_missing_entity_keys_filled(self) -> None:
        payload = {"data": {"intent": "search", "entities": {"query": "cats"}, "message": "m", "confidence": 0.8}}
        result = classify(FakeLlmClient(json.dumps(payload)))
        assert result.entities["query"] == "cats"
        assert all(result.entities[key] == "" for key in ENTITY_KEYS if key != "query")

    def test_reported_model_name_is_ignored(self) -> None:
        payload = json.loads(contract(confidence=0.2))
        payload["data"]["metadata"]["model"] = FALLBACK_MODEL
        result = classify(FakeLlmClient(json.dumps(payload)))
        assert result.model == "grok-test"
        assert result.confidence == 0.70
        assert result.entities["form_fields"] == {}

    def test_malformed_json_falls_back(self) -> None:
        result = classify(FakeLlmClient("I cannot do that"))
        assert result.model == FALLBACK_MODEL

    def test_auth_error_surfaces(self) -> None:
        with pytest.raises(UpstreamAuthError) as info:
            classify(FakeLlmClient(error=status_error(401)))
        assert info.value.status_code == 502

    def test_rate_limit_surfaces(self) -> None:
        with pytest.raises(UpstreamRateLimitError) as info:
            classify(FakeLlmClient(error=status_error(429)))
        assert info.value.status_code == 429

    @pytest.mark.parametrize("status", [500, 503])
    def test_server_error_falls_back(self, status: int) -> None:
        result = classify(FakeLlmClient(error=status_error(status)))
        assert result.model == FALLBACK_MODEL

    def test_connection_error_falls_back(self) -> None:
        error = openai.APIConnectionError(request=REQUEST)
        assert classify(FakeLlmClient(error=error)).model == FALLBACK_MODEL

    def test_unexpected_error_falls_back(self) -> None:
        assert classify(FakeLlmClient(error=KeyError("boom"))).model == FALLBACK_MODEL


class TestCreateClient:
    def test_without_key(self) -> None:
        assert create_client(LlmSettings()) is None

    def test_with_key(self) -> None:
        client = create_client(SETTINGS)
        assert isinstance(client, openai.AsyncOpenAI)
        assert client.max_retries == 0
