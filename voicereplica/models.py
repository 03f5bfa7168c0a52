from dataclasses import dataclass, field
from typing import Any, Dict, Optional

FALLBACK_MODEL = "fallback-rule-based"

INTENTS = frozenset(
    {
        "search",
        "qna",
        "summarize",
        "form_fill",
        "book_ticket",
        "website_search",
        "navigation",
        "other",
        "unknown",
    }
)

# Fallback pattern intents and the retired "open_site" prompt variant,
# folded onto the canonical set.
INTENT_ALIASES = {
    "open_site": "navigation",
    "open_website": "navigation",
    "greeting": "other",
    "farewell": "other",
    "thanks": "other",
    "help": "other",
    "time": "other",
    "date": "other",
    "weather": "other",
    "reminder": "other",
    "calculation": "other",
    "joke": "other",
}

ENTITY_KEYS = ("query", "action", "from", "to", "date", "website", "url")

ACTIONS = frozenset(
    {
        "SEARCH",
        "NAVIGATE",
        "WEBSITE_SEARCH",
        "FORM_FILL",
        "BOOK_TICKET",
        "SUMMARIZE",
        "NONE",
    }
)

# Action -> message type understood by the content script.
MESSAGE_TYPES = {
    "SEARCH": "SEARCH",
    "NAVIGATE": "NAVIGATION",
    "WEBSITE_SEARCH": "WEBSITE_SEARCH",
    "FORM_FILL": "FORM_FILL",
    "BOOK_TICKET": "BOOK_TICKET",
    "SUMMARIZE": "SUMMARIZE",
}

MODEL_CONFIDENCE_MIN = 0.70
MODEL_CONFIDENCE_MAX = 0.95


def canonical_intent(intent: str) -> str:
    lowered = (intent or "").strip().lower()
    lowered = INTENT_ALIASES.get(lowered, lowered)
    return lowered if lowered in INTENTS else "unknown"


@dataclass(frozen=True)
class IntentResult:
    intent: str
    entities: Dict[str, Any] = field(default_factory=dict)
    message: str = ""
    confidence: float = 0.0
    model: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_fallback(self) -> bool:
        return self.model == FALLBACK_MODEL


def _clamp_confidence(value: Any, default: float) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        confidence = default
    return max(MODEL_CONFIDENCE_MIN, min(MODEL_CONFIDENCE_MAX, confidence))


def _contract_entities(raw: Any) -> Dict[str, Any]:
    entities: Dict[str, Any] = dict(raw) if isinstance(raw, dict) else {}
    for key in ENTITY_KEYS:
        value = entities.get(key)
        entities[key] = "" if value is None else value
    fields = entities.get("form_fields")
    if isinstance(fields, dict):
        entities["form_fields"] = {str(k): "" if v is None else str(v) for k, v in fields.items()}
    else:
        entities["form_fields"] = {}
    return entities


def coerce_intent_result(raw: Any, default_model: str, model: Optional[str] = None) -> IntentResult:
    """Fold a model payload, a flat fallback dict or an IntentResult into one shape.

    ``model`` pins the producing model; payload-supplied names are ignored then.
    """
    if isinstance(raw, IntentResult):
        return raw
    payload = raw if isinstance(raw, dict) else {}
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    if model is None:
        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        model = str(data.get("model") or metadata.get("model") or default_model)

    intent = str(data.get("intent") or "unknown").strip().lower()
    if intent not in INTENTS and intent not in INTENT_ALIASES:
        intent = "unknown"
    message = str(data.get("message") or "Processing complete")

    if model == FALLBACK_MODEL:
        entities = dict(data.get("entities") or {})
        try:
            confidence = float(data.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5
        confidence = max(0.0, min(1.0, confidence))
    else:
        entities = _contract_entities(data.get("entities"))
        confidence = _clamp_confidence(data.get("confidence"), 0.5)

    return IntentResult(
        intent=intent,
        entities=entities,
        message=message,
        confidence=confidence,
        model=model,
    )


@dataclass(frozen=True)
class ActionRequest:
    action: str
    payload: Dict[str, Any] = field(default_factory=dict)
    intent: str = "unknown"

    @property
    def message_type(self) -> Optional[str]:
        return MESSAGE_TYPES.get(self.action)


@dataclass
class ExecutionResult:
    success: bool
    message: str = ""
    summary: str = ""
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        for key in ("message", "summary", "error"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data

    @property
    def spoken(self) -> str:
        if not self.success:
            return f"I couldn't complete that action: {self.error or 'unknown error'}"
        return self.message or "Done."


@dataclass(frozen=True)
class Message:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "payload": dict(self.payload)}


@dataclass(frozen=True)
class Reply:
    success: bool
    data: Optional[ExecutionResult] = None
    error: str = ""

    def to_execution_result(self) -> ExecutionResult:
        if self.success and self.data is not None:
            return self.data
        if self.data is not None and self.data.error:
            return self.data
        return ExecutionResult(success=False, error=self.error or "No response from content script")
