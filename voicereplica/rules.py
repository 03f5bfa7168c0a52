"""Deterministic fallback intent rules.

Used whenever the language model is unconfigured or fails. Patterns are
scanned in declaration order and the first keyword hit wins; there is no
scoring across patterns.
"""

import ast
import operator
import random
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Union

from voicereplica.entities import extract_entities
from voicereplica.models import FALLBACK_MODEL, IntentResult

Number = Union[int, float]
HandlerOutput = Tuple[str, Dict[str, Any]]
Handler = Callable[[str, datetime, random.Random], HandlerOutput]

UNKNOWN_CONFIDENCE = 0.30

JOKES = (
    "Why don't scientists trust atoms? Because they make up everything!",
    "I told my wife she was drawing her eyebrows too high. She looked surprised.",
    "Why did the scarecrow win an award? He was outstanding in his field!",
    "What do you call a fake noodle? An impasta!",
    "Why don't eggs tell jokes? They'd crack each other up!",
    "What do you call a bear with no teeth? A gummy bear!",
    "Why did the math book look sad? Because it had too many problems.",
    "What do you call a pile of cats? A meowtain!",
    "Why don't oysters donate to charity? Because they're shellfish!",
    "What did the ocean say to the beach? Nothing, it just waved!",
)

HELP_MESSAGE = (
    "I can help you with:\n"
    "• Answering questions\n"
    "• Checking time and date\n"
    "• Opening websites\n"
    "• Setting reminders\n"
    "• Simple calculations\n"
    "• Telling jokes\n"
    "• And much more!"
)


@dataclass(frozen=True)
class RulePattern:
    intent: str
    keywords: Tuple[str, ...]
    confidence: float
    message: str = ""
    entities: Dict[str, Any] = field(default_factory=dict)
    handler: Optional[Handler] = None

    def matches(self, lowered_text: str) -> bool:
        return any(keyword in lowered_text for keyword in self.keywords)


def _time_handler(text: str, now: datetime, rng: random.Random) -> HandlerOutput:
    time_string = now.strftime("%I:%M:%S %p")
    return f"The current time is {time_string}.", {"time": time_string}


def _date_handler(text: str, now: datetime, rng: random.Random) -> HandlerOutput:
    date_string = f"{now:%A}, {now:%B} {now.day}, {now.year}"
    return f"Today is {date_string}.", {"date": date_string}


def _search_handler(text: str, now: datetime, rng: random.Random) -> HandlerOutput:
    query = re.sub(r"search for|look up|find|google", "", text, flags=re.IGNORECASE).strip()
    return f'I\'ll help you search for "{query}".', {"query": query, "action": "search"}


def _open_website_handler(text: str, now: datetime, rng: random.Random) -> HandlerOutput:
    match = re.search(r"(?:open|go to|navigate to|visit|launch)\s+(.+)", text, re.IGNORECASE)
    site = match.group(1).strip() if match else "the website"
    return f"Opening {site}...", {"website": site, "action": "open"}


def _reminder_handler(text: str, now: datetime, rng: random.Random) -> HandlerOutput:
    match = re.search(r"remind me (?:to )?(.+)", text, re.IGNORECASE)
    reminder = match.group(1).strip() if match else "that"
    time_match = re.search(
        r"at (\d{1,2}:\d{2}(?:\s?(?:am|pm))?|\d{1,2}\s?(?:am|pm))",
        reminder,
        re.IGNORECASE,
    )
    when = time_match.group(1) if time_match else None
    task = re.sub(r"at .+", "", reminder, flags=re.IGNORECASE).strip() if when else reminder
    entities: Dict[str, Any] = {"task": task, "action": "reminder"}
    if when:
        entities["time"] = when
    suffix = f" at {when}" if when else ""
    return f"I'll remind you to {task}{suffix}.", entities


_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def _evaluate_node(node: ast.AST) -> Number:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_evaluate_node(node.left), _evaluate_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate_node(node.operand))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


def evaluate_arithmetic(expression: str) -> Number:
    """Evaluate + - * / over numeric literals and parentheses only."""
    # Python rejects leading zeros in integer literals.
    cleaned = re.sub(r"(?<![\d.])0+(?=\d)", "", expression)
    result = _evaluate_node(ast.parse(cleaned, mode="eval"))
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


def arithmetic_expression(text: str) -> str:
    match = re.search(r"(?:calculate|what is)\s+(.+)", text, re.IGNORECASE)
    expression = match.group(1) if match else text
    for pattern, symbol in (
        (r"plus", "+"),
        (r"add", "+"),
        (r"minus", "-"),
        (r"subtract", "-"),
        (r"times", "*"),
        (r"multiply(?:ed)? by", "*"),
        (r"divided by", "/"),
    ):
        expression = re.sub(pattern, symbol, expression, flags=re.IGNORECASE)
    expression = re.sub(r"[^0-9+\-*/().\s]", "", expression)
    return expression.strip()


def _calculation_handler(text: str, now: datetime, rng: random.Random) -> HandlerOutput:
    expression = arithmetic_expression(text)
    if not re.fullmatch(r"[0-9+\-*/().\s]+", expression):
        return "I couldn't understand that calculation. Try asking like 'what is 5 plus 3?'", {}
    try:
        result = evaluate_arithmetic(expression)
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError, RecursionError, MemoryError):
        return "Sorry, I couldn't calculate that. Please try again.", {}
    return f"The answer is {result}.", {"expression": expression, "result": result, "action": "calculate"}


def _joke_handler(text: str, now: datetime, rng: random.Random) -> HandlerOutput:
    return rng.choice(JOKES), {"type": "joke"}


FALLBACK_PATTERNS: Tuple[RulePattern, ...] = (
    RulePattern(
        "greeting",
        ("hello", "hi", "hey", "greetings", "good morning", "good afternoon", "good evening"),
        0.85,
        message="Hello! I'm VoiceReplica. How can I help you today?",
    ),
    RulePattern(
        "farewell",
        ("bye", "goodbye", "see you", "farewell", "good night"),
        0.85,
        message="Goodbye! Have a great day!",
    ),
    RulePattern(
        "thanks",
        ("thank", "thanks", "appreciate", "grateful"),
        0.85,
        message="You're welcome! Happy to help!",
    ),
    RulePattern("help", ("help", "assist", "what can you do", "support"), 0.80, message=HELP_MESSAGE),
    RulePattern(
        "time",
        ("time", "what time", "what's the time", "current time"),
        0.90,
        handler=_time_handler,
    ),
    RulePattern(
        "date",
        ("date", "what date", "what's the date", "today", "what day"),
        0.90,
        handler=_date_handler,
    ),
    RulePattern(
        "weather",
        ("weather", "temperature", "forecast", "raining", "sunny", "cloudy"),
        0.75,
        message="I don't have real-time weather data yet, but you can check your local weather service!",
        entities={"needsWeatherAPI": True},
    ),
    RulePattern("search", ("search for", "look up", "find", "google"), 0.85, handler=_search_handler),
    RulePattern(
        "open_website",
        ("open", "go to", "navigate to", "visit", "launch"),
        0.88,
        handler=_open_website_handler,
    ),
    RulePattern(
        "reminder",
        ("remind me", "set reminder", "remember to", "don't forget"),
        0.82,
        handler=_reminder_handler,
    ),
    RulePattern(
        "calculation",
        ("calculate", "what is", "plus", "minus", "times", "divided", "multiply", "add", "subtract"),
        0.85,
        handler=_calculation_handler,
    ),
    RulePattern(
        "joke",
        ("joke", "make me laugh", "something funny", "tell me a joke", "funny"),
        0.80,
        handler=_joke_handler,
    ),
)


def match_pattern(text: str) -> Optional[RulePattern]:
    lowered = text.lower().strip()
    for pattern in FALLBACK_PATTERNS:
        if pattern.matches(lowered):
            return pattern
    return None


def resolve(
    text: str,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> IntentResult:
    """Resolve an intent without the network. Never raises."""
    pattern = match_pattern(text)
    generic = extract_entities(text)
    if pattern is None:
        return IntentResult(
            intent="unknown",
            entities=generic,
            message=(
                f'I heard: "{text}". I\'m not sure how to help with that yet. '
                "Try saying 'help' to see what I can do!"
            ),
            confidence=UNKNOWN_CONFIDENCE,
            model=FALLBACK_MODEL,
        )

    message = pattern.message
    entities = dict(pattern.entities)
    if pattern.handler is not None:
        message, handler_entities = pattern.handler(
            text,
            now if now is not None else datetime.now(),
            rng if rng is not None else random.Random(),
        )
        entities.update(handler_entities)

    return IntentResult(
        intent=pattern.intent,
        entities={**generic, **entities},
        message=message,
        confidence=pattern.confidence,
        model=FALLBACK_MODEL,
    )
