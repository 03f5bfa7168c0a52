class VoiceReplicaError(RuntimeError):
    """Error carrying the HTTP-style status the calling layer reports."""

    status_code = 500

    def __init__(self, message: str = "Something went wrong", status_code: int = 0) -> None:
        super().__init__(message)
        if status_code:
            self.status_code = status_code
        self.message = message


class ValidationError(VoiceReplicaError):
    status_code = 400


class UpstreamAuthError(VoiceReplicaError):
    status_code = 502


class UpstreamRateLimitError(VoiceReplicaError):
    status_code = 429


class UpstreamTransientError(VoiceReplicaError):
    status_code = 503


class UpstreamConfigError(VoiceReplicaError):
    status_code = 502


class ParseError(VoiceReplicaError):
    status_code = 502


class ElementNotFound(VoiceReplicaError):
    status_code = 404


class MessagingTimeoutError(VoiceReplicaError):
    status_code = 504


# Conditions that reach the caller as hard failures; everything else is
# absorbed into a best-effort result.
HARD_FAILURES = (ValidationError, UpstreamAuthError, UpstreamRateLimitError)


def describe_error(exc: BaseException) -> str:
    details = str(exc).strip()
    if isinstance(exc, VoiceReplicaError):
        return f"{exc.__class__.__name__}: {details}" if details else exc.__class__.__name__
    return details or exc.__class__.__name__
