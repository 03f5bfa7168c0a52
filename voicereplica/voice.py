"""Speech intake and spoken feedback around the command pipeline."""

import threading
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import pyttsx3
import speech_recognition as sr

from voicereplica.config import (
    LISTEN_TIMEOUT,
    PAUSE_THRESHOLD,
    PHRASE_TIME_LIMIT,
    STT_LANGUAGE,
    TTS_ENABLED,
    TTS_RATE,
)
from voicereplica.console import log_line

RESTART_DELAY_SECONDS = 0.3


@dataclass(frozen=True)
class SpeechErrorInfo:
    kind: str
    message: str
    recoverable: bool


SPEECH_ERRORS = {
    "no-speech": SpeechErrorInfo("no-speech", "No speech was detected", True),
    "not-understood": SpeechErrorInfo("not-understood", "Speech was heard but not understood", True),
    "network": SpeechErrorInfo("network", "Network error occurred during recognition", True),
    "audio-capture": SpeechErrorInfo(
        "audio-capture",
        "No microphone was found or microphone is not working",
        False,
    ),
}


class SpeechError(RuntimeError):
    def __init__(self, info: SpeechErrorInfo, detail: str = "") -> None:
        super().__init__(f"{info.message} ({detail})" if detail else info.message)
        self.info = info

    @property
    def recoverable(self) -> bool:
        return self.info.recoverable


def categorize_speech_error(exc: BaseException) -> SpeechErrorInfo:
    if isinstance(exc, sr.WaitTimeoutError):
        return SPEECH_ERRORS["no-speech"]
    if isinstance(exc, sr.UnknownValueError):
        return SPEECH_ERRORS["not-understood"]
    if isinstance(exc, sr.RequestError):
        return SPEECH_ERRORS["network"]
    if isinstance(exc, OSError):
        return SPEECH_ERRORS["audio-capture"]
    return SpeechErrorInfo("unknown", f"Unknown error: {exc}", False)


def create_microphone(device_index: Optional[int] = None) -> Tuple[sr.Microphone, str]:
    names: List[str] = sr.Microphone.list_microphone_names()
    if not names:
        raise SpeechError(SPEECH_ERRORS["audio-capture"], "no input devices")
    if device_index is not None and not 0 <= device_index < len(names):
        log_line(f"WARN: Microphone index {device_index} is out of range (0-{len(names) - 1}). Using system default.")
        device_index = None
    name = "System default microphone" if device_index is None else f"{device_index}: {names[device_index]}"
    return sr.Microphone(device_index=device_index), name


class SpeechListener:
    """Blocking speech-to-text source. Run it off the event loop."""

    def __init__(self, device_index: Optional[int] = None, language: str = STT_LANGUAGE) -> None:
        self._recognizer = sr.Recognizer()
        self._recognizer.pause_threshold = max(0.3, PAUSE_THRESHOLD)
        self._language = language
        self._microphone, self.microphone_name = create_microphone(device_index)

    def calibrate(self, duration: float = 1.5) -> None:
        with self._microphone as source:
            self._recognizer.adjust_for_ambient_noise(source, duration=duration)

    def listen(self) -> str:
        try:
            with self._microphone as source:
                audio = self._recognizer.listen(
                    source,
                    timeout=LISTEN_TIMEOUT,
                    phrase_time_limit=PHRASE_TIME_LIMIT,
                )
            return self._recognizer.recognize_google(audio, language=self._language).strip()
        except (sr.WaitTimeoutError, sr.UnknownValueError, sr.RequestError, OSError) as exc:
            raise SpeechError(categorize_speech_error(exc), str(exc)) from exc


class Speaker:
    def __init__(self, enabled: bool = TTS_ENABLED, rate: int = TTS_RATE) -> None:
        self._lock = threading.Lock()
        self._engine: Optional[Any] = None
        if not enabled:
            return
        try:
            engine = pyttsx3.init()
            engine.setProperty("rate", rate)
            self._engine = engine
        except (RuntimeError, OSError, ImportError) as exc:
            log_line(f"WARN: pyttsx3 init failed ({exc}). Speech output disabled.")

    def say(self, text: str) -> None:
        log_line(f"  SAY: {text}")
        if self._engine is None or not text:
            return
        with self._lock:
            self._engine.say(text)
            self._engine.runAndWait()
