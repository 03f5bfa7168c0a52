import dataclasses
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from voicereplica.classifier import IntentClassifier, create_client
from voicereplica.config import MAX_TEXT_LENGTH, LlmSettings, load_llm_settings
from voicereplica.console import log_debug, log_line
from voicereplica.errors import ValidationError, VoiceReplicaError
from voicereplica.models import IntentResult, coerce_intent_result


def validate_command(text: Any, max_length: int = MAX_TEXT_LENGTH) -> str:
    if not isinstance(text, str):
        raise ValidationError("Invalid text input")
    trimmed = text.strip()
    if not trimmed:
        raise ValidationError("Text cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"Text exceeds maximum length of {max_length} characters")
    return trimmed


def build_classifier(settings: Optional[LlmSettings] = None) -> IntentClassifier:
    settings = settings or load_llm_settings()
    return IntentClassifier(create_client(settings), settings)


class IntentService:
    def __init__(
        self,
        classifier: Optional[IntentClassifier] = None,
        max_length: int = MAX_TEXT_LENGTH,
        classifier_factory: Callable[[Optional[LlmSettings]], IntentClassifier] = build_classifier,
    ) -> None:
        self._classifier_factory = classifier_factory
        self._classifier = classifier if classifier is not None else classifier_factory(None)
        self._max_length = max_length

    @property
    def classifier(self) -> IntentClassifier:
        return self._classifier

    def reconfigure(self, settings: Optional[LlmSettings] = None) -> bool:
        """Build a fresh classifier and swap it in.

        Calls already holding the previous classifier finish against it.
        """
        log_line("Reinitializing LLM client...")
        replacement = self._classifier_factory(settings)
        self._classifier = replacement
        return replacement.has_model

    async def process(self, text: Any) -> IntentResult:
        trimmed = validate_command(text, self._max_length)
        started = time.perf_counter()
        preview = trimmed[:50] + ("..." if len(trimmed) > 50 else "")
        log_line(f'Processing command: "{preview}"')

        classifier = self._classifier
        try:
            raw = await classifier.classify(trimmed)
        except VoiceReplicaError:
            raise
        except Exception as exc:
            log_line(f"ERROR: Intent processing error ({exc}).")
            log_debug("Intent processing error", exc)
            raise VoiceReplicaError("Failed to process intent", status_code=500) from exc

        result = coerce_intent_result(raw, default_model=classifier.model)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        result = dataclasses.replace(
            result,
            metadata={
                "processingTime": f"{elapsed_ms}ms",
                "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                "model": result.model,
            },
        )
        log_line(f"Command processed - Intent: {result.intent} ({elapsed_ms}ms)")
        return result


def to_response(result: IntentResult) -> Dict[str, Any]:
    return {
        "intent": result.intent,
        "entities": result.entities,
        "message": result.message,
        "confidence": result.confidence,
        "metadata": dict(result.metadata),
    }


def to_error_response(exc: VoiceReplicaError) -> Dict[str, Any]:
    return {"success": False, "message": exc.message, "statusCode": exc.status_code}
