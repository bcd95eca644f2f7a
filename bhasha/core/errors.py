"""
core/errors.py

Closed error taxonomy shared by every feature.

Adapters raise ServiceError with an explicit ErrorKind; the response
normalizer switches on the kind to pick the HTTP status. Nothing downstream
inspects error message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION_FAILURE = "validation_failure"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    UNSUPPORTED_FORMAT = "unsupported_format"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UPSTREAM_QUOTA_EXCEEDED = "upstream_quota_exceeded"
    UPSTREAM_INPUT_REJECTED = "upstream_input_rejected"
    SESSION_EXPIRED = "session_expired"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL_FAILURE = "internal_failure"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_FAILURE: 400,
    ErrorKind.UNSUPPORTED_LANGUAGE: 400,
    ErrorKind.UNSUPPORTED_FORMAT: 400,
    ErrorKind.PAYLOAD_TOO_LARGE: 400,
    ErrorKind.UPSTREAM_QUOTA_EXCEEDED: 429,
    ErrorKind.UPSTREAM_INPUT_REJECTED: 400,
    ErrorKind.SESSION_EXPIRED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.UNIMPLEMENTED: 501,
    ErrorKind.INTERNAL_FAILURE: 500,
}


def status_for(kind: Optional[ErrorKind]) -> int:
    """HTTP status for an error kind. Unknown kinds map to 500."""
    return STATUS_BY_KIND.get(kind, 500) if kind is not None else 500


class ServiceError(Exception):
    """Typed failure raised by validators' callers, adapters and stores."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail

    @property
    def status_code(self) -> int:
        return status_for(self.kind)

    def __repr__(self) -> str:
        return f"ServiceError(kind={self.kind.value!r}, message={self.message!r})"


class ValidationFailed(ServiceError):
    """A request was rejected by its validator; carries every reported issue."""

    def __init__(self, issues: list):
        first = issues[0] if issues else None
        super().__init__(
            kind=first.kind if first else ErrorKind.VALIDATION_FAILURE,
            message=first.message if first else "Validation failed",
        )
        self.issues = issues


class UnsupportedLanguageError(ServiceError):
    def __init__(self, message: str):
        super().__init__(ErrorKind.UNSUPPORTED_LANGUAGE, message)


class SessionNotFoundError(ServiceError):
    def __init__(self, session_id: str):
        super().__init__(ErrorKind.NOT_FOUND, "Chat session not found or access denied")
        self.session_id = session_id


class SessionExpiredError(ServiceError):
    def __init__(self, session_id: str):
        super().__init__(
            ErrorKind.SESSION_EXPIRED,
            "Chat session expired. Please start a new session.",
        )
        self.session_id = session_id
