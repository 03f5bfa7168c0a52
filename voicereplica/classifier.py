import json
from typing import Any, Callable, Dict, Optional

import openai
from openai import AsyncOpenAI

from voicereplica.config import LlmSettings
from voicereplica.console import log_debug, log_line
from voicereplica.errors import (
    ParseError,
    UpstreamAuthError,
    UpstreamRateLimitError,
    UpstreamTransientError,
    VoiceReplicaError,
)
from voicereplica.models import ENTITY_KEYS, IntentResult, coerce_intent_result
from voicereplica.rules import resolve

SCHEMA_NAME = "voice_replica_intent_response"

MODEL_INTENTS = (
    "search",
    "qna",
    "summarize",
    "form_fill",
    "book_ticket",
    "website_search",
    "navigation",
    "other",
)

CLASSIFIER_PROMPT = """
You are the intent classification and entity extraction engine of a voice assistant named "VoiceReplica".
Analyze the user's voice command and return one JSON object that matches the required schema.

SUPPORTED INTENTS:
- search: search Google or the web ("Search best laptops", "Find hotels in Delhi", "Google cricket news").
- navigation: open, go to, or visit a website or page ("Open YouTube", "Go to Amazon", "Visit irctc website").
- website_search: search inside a website ("Search mobiles on Amazon", "Find videos on YouTube").
- qna: factual or explanatory questions ("What is AI?", "How does blockchain work?").
- summarize: summary of the current page ("Summarize this page", "Give me summary").
- form_fill: enter, fill, type, or submit form data ("Fill my name as Rahul", "My phone number is 9876543210").
- book_ticket: book or reserve tickets ("Book train from Delhi to Mumbai", "Reserve flight to Goa").
- other: unclear intent or casual conversation ("Hello", "How are you?", "Tell me a joke").

ENTITIES:
Always return every key: query, action, from, to, date, website, url (empty string when unused) and form_fields (object).
- search: query
- navigation: website and url
- website_search: website and query
- book_ticket: from, to, date
- form_fill: form_fields

URLS:
For navigation convert the site name to a URL and store it in entities.url.
YouTube -> https://www.youtube.com, Google -> https://www.google.com, Amazon -> https://www.amazon.in,
Flipkart -> https://www.flipkart.com, IRCTC -> https://www.irctc.co.in, Facebook -> https://www.facebook.com,
Instagram -> https://www.instagram.com. Otherwise use https://www.<website>.com.

FORM FIELDS:
Store values as entities.form_fields {"<field_name>": "<field_value>"} using these standard keys:
name/full name -> name; email/email id -> email; phone/mobile/number -> phone; username/user name -> username;
password/passcode -> password; address/location -> address; dob/birth date -> dob; age -> age; city -> city;
state -> state; pincode/zip -> pincode; gender -> gender.
Extract every field the user gives. Use exactly what the user said. Never invent or guess values.
If no fields are given return "form_fields": {}.
""".strip()

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "success": {"type": "boolean"},
        "data": {
            "type": "object",
            "properties": {
                "intent": {"type": "string", "enum": list(MODEL_INTENTS)},
                "entities": {
                    "type": "object",
                    "properties": {
                        **{key: {"type": "string"} for key in ENTITY_KEYS},
                        "form_fields": {
                            "type": "object",
                            "additionalProperties": {"type": "string"},
                        },
                    },
                    "required": [*ENTITY_KEYS, "form_fields"],
                    "additionalProperties": False,
                },
                "message": {"type": "string"},
                "confidence": {"type": "number", "minimum": 0.7, "maximum": 0.95},
                "metadata": {
                    "type": "object",
                    "properties": {
                        "processingTime": {"type": "string"},
                        "timestamp": {"type": "string", "format": "date-time"},
                        "model": {"type": "string"},
                    },
                    "required": ["processingTime", "timestamp", "model"],
                    "additionalProperties": False,
                },
            },
            "required": ["intent", "entities", "message", "confidence", "metadata"],
            "additionalProperties": False,
        },
        "message": {"type": "string"},
    },
    "required": ["success", "data", "message"],
    "additionalProperties": False,
}


def create_client(settings: LlmSettings) -> Optional[AsyncOpenAI]:
    if not settings.configured:
        log_line("WARN: LLM API key not configured - using fallback mode.")
        return None
    # Retries stay off: a failed call falls back to the rule engine instead.
    return AsyncOpenAI(
        api_key=settings.api_key,
        base_url=settings.api_url,
        timeout=settings.timeout,
        max_retries=0,
    )


def build_classifier_input(user_text: str) -> str:
    return (
        f"{CLASSIFIER_PROMPT}\n\n"
        "Analyze the following user command and generate a structured response in the required JSON format. "
        f"Follow all system rules strictly.\nUser Command: {user_text}"
    )


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """First JSON object embedded in free text, if any."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            payload, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict):
            return payload
        start = text.find("{", start + 1)
    return None


def parse_classifier_response(content: Optional[str]) -> Dict[str, Any]:
    if not content:
        raise ParseError("LLM response was empty")
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        payload = extract_json_object(content)
        if payload is None:
            raise ParseError("LLM response is not valid JSON") from None
    if not isinstance(payload, dict):
        raise ParseError("LLM response must be a JSON object")
    return payload


def upstream_error_for_status(status: int, detail: str) -> VoiceReplicaError:
    if status == 401:
        return UpstreamAuthError("Invalid LLM API key configuration")
    if status == 429:
        return UpstreamRateLimitError("Rate limit exceeded. Please try again later.")
    if status >= 500:
        return UpstreamTransientError(f"LLM service unavailable ({status})")
    return VoiceReplicaError(f"LLM request failed ({status}): {detail}", status_code=502)


def _response_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    if text is None and getattr(response, "output", None):
        chunks = []
        for item in response.output:
            for part in getattr(item, "content", None) or []:
                if getattr(part, "text", None):
                    chunks.append(part.text)
        text = "".join(chunks)
    return text or ""


class IntentClassifier:
    """LLM-backed classifier that degrades to the fallback rules.

    The client is injected and never mutated; reconfiguration builds a new
    classifier instead.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        settings: LlmSettings,
        fallback: Callable[[str], IntentResult] = resolve,
    ) -> None:
        self._client = client
        self._settings = settings
        self._fallback = fallback

    @property
    def has_model(self) -> bool:
        return self._client is not None

    @property
    def model(self) -> str:
        return self._settings.model

    async def classify(self, text: str) -> IntentResult:
        if self._client is None:
            log_line("WARN: LLM client not initialized; using fallback intent rules.")
            return self._fallback(text)
        try:
            payload = await self._request(text)
        except (UpstreamAuthError, UpstreamRateLimitError) as exc:
            log_line(f"ERROR: LLM call rejected ({exc}).")
            raise
        except UpstreamTransientError as exc:
            log_line(f"WARN: {exc}; using fallback intent rules.")
            return self._fallback(text)
        except ParseError as exc:
            log_line(f"WARN: Could not parse LLM response ({exc}); using fallback intent rules.")
            return self._fallback(text)
        except Exception as exc:
            log_line(f"WARN: LLM call failed ({exc}); using fallback intent rules.")
            log_debug("LLM call failure", exc)
            return self._fallback(text)
        return coerce_intent_result(payload, self._settings.model, model=self._settings.model)

    async def _request(self, text: str) -> Dict[str, Any]:
        log_debug(f"Calling LLM: {self._settings.model}")
        try:
            response = await self._client.responses.create(
                model=self._settings.model,
                input=build_classifier_input(text),
                temperature=self._settings.temperature,
                max_output_tokens=self._settings.max_tokens,
                text={
                    "format": {
                        "type": "json_schema",
                        "name": SCHEMA_NAME,
                        "schema": RESPONSE_SCHEMA,
                    }
                },
            )
        except openai.APIStatusError as exc:
            raise upstream_error_for_status(exc.status_code, str(exc)) from exc
        except openai.APIConnectionError as exc:
            raise UpstreamTransientError(f"LLM service unreachable ({exc})") from exc
        content = _response_text(response)
        log_debug(f"LLM response: {content}")
        return parse_classifier_response(content)
