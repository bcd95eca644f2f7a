"""
services/normalizer.py

Uniform response envelope for every JSON endpoint.

  success → {"success": true,  "message", "data", "statusCode"}
  failure → {"success": false, "message", "statusCode", "error"?, "errors"?}

`error` carries the raw failure detail and is omitted in production.
Internal failures never leak their message; the caller gets a generic
one in their UI language instead.
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from bhasha.core.config import settings
from bhasha.core.errors import ErrorKind, ServiceError, ValidationFailed, status_for
from bhasha.core.languages import DEFAULT_LANGUAGE, LanguageTag
from bhasha.models.response import Envelope, ExportArtifact, FieldIssue

INTERNAL_MESSAGES: dict[str, str] = {
    "en": "Internal server error. Please try again later.",
    "hi": "आंतरिक सर्वर त्रुटि। कृपया बाद में पुनः प्रयास करें।",
    "pa": "ਅੰਦਰੂਨੀ ਸਰਵਰ ਗਲਤੀ। ਕਿਰਪਾ ਕਰਕੇ ਬਾਅਦ ਵਿੱਚ ਦੁਬਾਰਾ ਕੋਸ਼ਿਸ਼ ਕਰੋ।",
}

VALIDATION_MESSAGE = "Validation failed"


def internal_message(language: Optional[LanguageTag] = None) -> str:
    tag = language or DEFAULT_LANGUAGE
    return INTERNAL_MESSAGES.get(tag.short_code, INTERNAL_MESSAGES["en"])


def _payload(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_payload(item) for item in data]
    if isinstance(data, dict):
        return {key: _payload(value) for key, value in data.items()}
    return data


def _respond(envelope: Envelope) -> JSONResponse:
    return JSONResponse(
        status_code=envelope.status_code,
        content=envelope.model_dump(mode="json", by_alias=True, exclude_none=envelope.success is False),
    )


def success(data: Any = None, message: str = "OK", status_code: int = 200) -> JSONResponse:
    return _respond(Envelope(
        success=True,
        message=message,
        status_code=status_code,
        data=_payload(data),
    ))


def failure(
    exc: ServiceError,
    language: Optional[LanguageTag] = None,
) -> JSONResponse:
    status_code = status_for(exc.kind)
    message = exc.message
    if exc.kind == ErrorKind.INTERNAL_FAILURE:
        message = internal_message(language)

    errors = None
    if isinstance(exc, ValidationFailed):
        errors = [FieldIssue(field=i.field, message=i.message) for i in exc.issues]

    detail = None
    if not settings.is_production:
        detail = exc.detail or (exc.message if message != exc.message else None)

    return _respond(Envelope(
        success=False,
        message=message,
        status_code=status_code,
        error=detail,
        errors=errors,
    ))


def failure_from_status(
    status_code: int,
    message: str,
    language: Optional[LanguageTag] = None,
    detail: Optional[str] = None,
) -> JSONResponse:
    """Envelope for failures that arrive as a bare HTTP status (routing, auth, rate limit)."""
    if status_code >= 500:
        message = internal_message(language)
    return _respond(Envelope(
        success=False,
        message=message,
        status_code=status_code,
        error=None if settings.is_production else detail,
    ))


def attachment(artifact: ExportArtifact) -> Response:
    """Rendered export as a downloadable binary body (not enveloped)."""
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "Cache-Control": "no-cache",
        },
    )
