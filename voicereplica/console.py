import traceback
from typing import Callable, List, Optional

from voicereplica.config import DEBUG

_listeners: List[Callable[[str], None]] = []


def add_log_listener(listener: Callable[[str], None]) -> None:
    _listeners.append(listener)


def remove_log_listener(listener: Callable[[str], None]) -> None:
    if listener in _listeners:
        _listeners.remove(listener)


def log_line(message: str) -> None:
    print(message)
    for listener in list(_listeners):
        listener(message)


def log_debug(message: str, exc: Optional[BaseException] = None) -> None:
    if not DEBUG:
        return
    log_line(f"DEBUG: {message}")
    if exc is None:
        return
    trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).strip()
    for line in trace.splitlines():
        log_line(f"DEBUG: {line}")
