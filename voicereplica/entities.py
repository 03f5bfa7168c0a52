import re
from typing import Any, Dict

NUMBER_RE = re.compile(r"\d+")
TIME_RE = re.compile(r"\d{1,2}:\d{2}\s?(?:am|pm)?|\d{1,2}\s?(?:am|pm)", re.IGNORECASE)
URL_RE = re.compile(r"https?://[^\s]+")
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# MM/DD/YYYY is tried before YYYY-MM-DD.
DATE_RES = (
    re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}"),
    re.compile(r"\d{4}-\d{2}-\d{2}"),
)


def extract_entities(text: str) -> Dict[str, Any]:
    """Scan free text for generic entities.

    Keys are only present when the signal was found.
    """
    entities: Dict[str, Any] = {}
    if not text:
        return entities

    numbers = NUMBER_RE.findall(text)
    if numbers:
        entities["numbers"] = [int(n) for n in numbers]

    time_match = TIME_RE.search(text)
    if time_match:
        entities["time"] = time_match.group(0)

    url_match = URL_RE.search(text)
    if url_match:
        entities["url"] = url_match.group(0)

    email_match = EMAIL_RE.search(text)
    if email_match:
        entities["email"] = email_match.group(0)

    for pattern in DATE_RES:
        date_match = pattern.search(text)
        if date_match:
            entities["date"] = date_match.group(0)
            break

    return entities
