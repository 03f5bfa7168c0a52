import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV = os.environ.get("VOICE_REPLICA_ENV", "development").strip().lower() or "development"
DEBUG = os.environ.get("VOICE_REPLICA_DEBUG", "0").strip() == "1"
MAX_TEXT_LENGTH = int(os.environ.get("VOICE_REPLICA_MAX_TEXT_LENGTH", "1000"))

BROWSER_ENGINE = os.environ.get("VOICE_REPLICA_BROWSER", "chromium").strip().lower()
BROWSER_HEADLESS = os.environ.get("VOICE_REPLICA_HEADLESS", "0").strip() == "1"
DEFAULT_PAGE_URL = os.environ.get("VOICE_REPLICA_DEFAULT_URL", "https://www.google.com").strip()
SEARCH_URL = "https://www.google.com/search?q="
REPLY_TIMEOUT_SECONDS = float(os.environ.get("VOICE_REPLICA_REPLY_TIMEOUT", "30"))
NEW_PAGE_SETTLE_MS = int(os.environ.get("VOICE_REPLICA_NEW_PAGE_SETTLE_MS", "2000"))
LISTENER_SETTLE_MS = int(os.environ.get("VOICE_REPLICA_LISTENER_SETTLE_MS", "600"))
FIELD_SETTLE_MS = 200
SEARCH_SUBMIT_SETTLE_MS = 300
REDIRECT_DELAY_MS = 200
SUMMARY_MAX_CHARS = 5000
RESTRICTED_URL_PREFIXES = ("chrome://", "edge://", "about:")

LISTEN_TIMEOUT = int(os.environ.get("VOICE_REPLICA_LISTEN_TIMEOUT", "10"))
PHRASE_TIME_LIMIT = int(os.environ.get("VOICE_REPLICA_PHRASE_LIMIT", "15"))
PAUSE_THRESHOLD = float(os.environ.get("VOICE_REPLICA_PAUSE_THRESHOLD", "1.2"))
STT_LANGUAGE = os.environ.get("VOICE_REPLICA_STT_LANGUAGE", "en-US").strip() or "en-US"
TTS_ENABLED = os.environ.get("VOICE_REPLICA_TTS_ENABLED", "1").strip() != "0"
TTS_RATE = int(os.environ.get("VOICE_REPLICA_TTS_RATE", "180"))


@dataclass(frozen=True)
class LlmSettings:
    api_key: str = ""
    api_url: str = "https://api.x.ai/v1"
    model: str = "grok-beta"
    temperature: float = 0.7
    max_tokens: int = 500
    timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def load_llm_settings(env: Optional[Mapping[str, str]] = None) -> LlmSettings:
    """Read LLM settings from the environment at call time.

    Called again on reconfiguration so a rotated key is picked up without a
    restart.
    """
    source = os.environ if env is None else env
    return LlmSettings(
        api_key=source.get("LLM_API_KEY", "").strip(),
        api_url=source.get("LLM_API_URL", "https://api.x.ai/v1").strip() or "https://api.x.ai/v1",
        model=source.get("LLM_MODEL", "grok-beta").strip() or "grok-beta",
        temperature=float(source.get("LLM_TEMPERATURE", "0.7")),
        max_tokens=int(source.get("LLM_MAX_TOKENS", "500")),
        timeout=float(source.get("LLM_TIMEOUT", "30")),
    )


def validate_config(env: Optional[Mapping[str, str]] = None) -> None:
    source = os.environ if env is None else env
    missing = []
    if source.get("VOICE_REPLICA_ENV", ENV).strip().lower() == "production":
        if not source.get("LLM_API_KEY", "").strip():
            missing.append("LLM_API_KEY")
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
