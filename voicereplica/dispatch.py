import re
from typing import Any, Dict, List

from voicereplica.console import log_line
from voicereplica.models import ActionRequest, IntentResult, canonical_intent

SITE_DOMAINS = {
    "youtube": "https://www.youtube.com",
    "google": "https://www.google.com",
    "gmail": "https://mail.google.com",
    "amazon": "https://www.amazon.in",
    "flipkart": "https://www.flipkart.com",
    "irctc": "https://www.irctc.co.in",
    "facebook": "https://www.facebook.com",
    "instagram": "https://www.instagram.com",
    "twitter": "https://www.twitter.com",
    "x": "https://www.x.com",
    "linkedin": "https://www.linkedin.com",
    "github": "https://www.github.com",
    "wikipedia": "https://www.wikipedia.org",
    "reddit": "https://www.reddit.com",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _keywords(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def build_query(entities: Dict[str, Any], site_prefix: bool = True) -> str:
    query = _text(entities.get("query"))
    keywords = _keywords(entities.get("keywords"))
    if keywords:
        query = " ".join([query, *keywords]).strip()
    website = _text(entities.get("website"))
    if site_prefix and website:
        query = f"site:{website} {query}".strip()
    return query


def resolve_site_url(entities: Dict[str, Any]) -> str:
    url = _text(entities.get("url"))
    if url:
        return url
    website = _text(entities.get("website"))
    if not website:
        return ""
    if re.match(r"^[a-zA-Z]+://", website):
        return website
    name = re.sub(r"\s+(?:website|site|page|\.com)$", "", website.lower()).strip()
    name = re.sub(r"\s+", "", name)
    if "." in name:
        return f"https://{name}"
    if name in SITE_DOMAINS:
        return SITE_DOMAINS[name]
    return f"https://www.{name}.com"


def _search(result: IntentResult) -> ActionRequest:
    return ActionRequest(
        "SEARCH",
        {"query": build_query(result.entities)},
        intent="search",
    )


def _website_search(result: IntentResult) -> ActionRequest:
    return ActionRequest(
        "WEBSITE_SEARCH",
        {
            "query": build_query(result.entities, site_prefix=False),
            "website": _text(result.entities.get("website")),
        },
        intent="website_search",
    )


def _navigate(result: IntentResult) -> ActionRequest:
    return ActionRequest(
        "NAVIGATE",
        {
            "url": resolve_site_url(result.entities),
            "website": _text(result.entities.get("website")),
        },
        intent="navigation",
    )


def _form_fill(result: IntentResult) -> ActionRequest:
    fields = result.entities.get("form_fields")
    if not isinstance(fields, dict):
        fields = {}
    return ActionRequest(
        "FORM_FILL",
        {"form_fields": {str(k): _text(v) for k, v in fields.items()}},
        intent="form_fill",
    )


def _book_ticket(result: IntentResult) -> ActionRequest:
    return ActionRequest(
        "BOOK_TICKET",
        {key: _text(result.entities.get(key)) for key in ("from", "to", "date")},
        intent="book_ticket",
    )


def _summarize(result: IntentResult) -> ActionRequest:
    return ActionRequest("SUMMARIZE", {}, intent="summarize")


HANDLERS = {
    "search": _search,
    "website_search": _website_search,
    "navigation": _navigate,
    "form_fill": _form_fill,
    "book_ticket": _book_ticket,
    "summarize": _summarize,
}


def dispatch(result: IntentResult) -> ActionRequest:
    """Map a resolved intent onto exactly one browser action."""
    intent = canonical_intent(result.intent)
    handler = HANDLERS.get(intent)
    if handler is None:
        log_line(f"No browser action for intent '{result.intent}'.")
        return ActionRequest("NONE", {}, intent=intent)
    return handler(result)
