"""
core/validators.py

Per-operation request validators.

Each public validator is a pure function: it applies its checks in a fixed
order, stops at the first failing check, and returns a ValidationResult
(never raises). On success `result.value` holds the normalized input with
defaults filled in and the language resolved to a LanguageTag.
"""

from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Generic, Optional, TypeVar

from bhasha.core.errors import ErrorKind, ServiceError, ValidationFailed
from bhasha.core.languages import LanguageTag, resolve
from bhasha.models.request import UploadedAsset

T = TypeVar("T")

MB = 1024 * 1024

# ─── Caps ──────────────────────────────────────────────────────────────────
GRAMMAR_MAX_CHARS = 5000
CHAT_MAX_CHARS = 2000
BATCH_ITEM_MAX_CHARS = 2000
BATCH_MAX_ITEMS = 20
EXPORT_MAX_CHARS = 100_000
IMAGE_MAX_BYTES = 5 * MB
AUDIO_MAX_BYTES = 10 * MB

# ─── Allow-lists ───────────────────────────────────────────────────────────
IMAGE_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
AUDIO_MIME_TYPES = (
    "audio/wav", "audio/wave", "audio/x-wav",
    "audio/mpeg", "audio/mp3",
    "audio/mp4", "audio/m4a",
    "audio/webm", "audio/ogg",
)
CHECK_TYPES = ("comprehensive", "spelling", "grammar", "punctuation", "style")
EVALUATION_TYPES = ("pronunciation", "fluency", "accuracy", "completeness", "comprehensive")
MESSAGE_TYPES = ("text", "grammar_question", "pronunciation_help", "exercise_request")
SESSION_TYPES = ("general", "grammar_focused", "pronunciation_focused", "writing_help")
LEVELS = ("beginner", "intermediate", "advanced")
DOCUMENT_FORMATS = ("docx", "pdf", "txt")
REPORT_FORMATS = ("docx", "pdf", "html")
DATA_EXPORT_FORMATS = ("pdf", "docx", "txt", "json", "csv")

DEFAULT_EXPORT_TITLE = "Extracted Text Document"


@dataclass
class ValidationIssue:
    field: str
    message: str
    kind: ErrorKind = ErrorKind.VALIDATION_FAILURE


@dataclass
class ValidationResult(Generic[T]):
    value: Optional[T] = None
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    def unwrap(self) -> T:
        """Return the validated value or raise ValidationFailed for the handler."""
        if self.issues:
            raise ValidationFailed(self.issues)
        return self.value


class _Reject(Exception):
    def __init__(self, issue: ValidationIssue):
        self.issue = issue


def _reject(field: str, message: str, kind: ErrorKind = ErrorKind.VALIDATION_FAILURE):
    raise _Reject(ValidationIssue(field, message, kind))


def validator(fn: Callable[..., T]) -> Callable[..., ValidationResult[T]]:
    """Turn a check sequence that raises _Reject into a result-returning validator."""
    @wraps(fn)
    def wrapper(*args, **kwargs) -> ValidationResult[T]:
        try:
            return ValidationResult(value=fn(*args, **kwargs))
        except _Reject as rejected:
            return ValidationResult(issues=[rejected.issue])
    return wrapper


# ─────────────────────────────────────────────────────────────────────────────
# Shared checks
# ─────────────────────────────────────────────────────────────────────────────

def _text(value: Any, field: str, required_msg: str, cap: int, cap_msg: str) -> str:
    if not isinstance(value, str) or not value.strip():
        _reject(field, required_msg)
    if len(value) > cap:
        _reject(field, cap_msg, ErrorKind.PAYLOAD_TOO_LARGE)
    return value


def _language(value: Any, field: str = "language", default: str = "en") -> LanguageTag:
    if value is None or (isinstance(value, str) and not value.strip()):
        value = default
    try:
        return resolve(value)
    except ServiceError as exc:
        _reject(field, exc.message, ErrorKind.UNSUPPORTED_LANGUAGE)


def _choice(value: Any, field: str, allowed: tuple[str, ...], default: str, message: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    normalized = str(value).strip().lower()
    if normalized not in allowed:
        _reject(field, message)
    return normalized


def _mime(value: Optional[str]) -> str:
    return (value or "").split(";")[0].strip().lower()


def _asset(
    asset: Optional[UploadedAsset],
    field: str,
    missing_msg: str,
    allowed: tuple[str, ...],
    format_msg: str,
    cap: int,
    size_msg: str,
    language: Any,
) -> tuple[UploadedAsset, LanguageTag]:
    if asset is None or asset.size_bytes == 0:
        _reject(field, missing_msg)
    tag = _language(language)
    if _mime(asset.mime_type) not in allowed:
        _reject(field, format_msg, ErrorKind.UNSUPPORTED_FORMAT)
    if asset.size_bytes > cap:
        _reject(field, size_msg, ErrorKind.PAYLOAD_TOO_LARGE)
    return asset, tag


def _object(value: Any, field: str, message: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        _reject(field, message)
    return value


# ─────────────────────────────────────────────────────────────────────────────
# OCR
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ImageInput:
    asset: UploadedAsset
    language: LanguageTag
    preprocess: bool = False


@validator
def validate_extract_text(asset: Optional[UploadedAsset], language: Any, preprocess: bool = False) -> ImageInput:
    asset, tag = _asset(
        asset, "image",
        missing_msg="No image file uploaded",
        allowed=IMAGE_MIME_TYPES,
        format_msg="Invalid file type. Supported formats: JPEG, JPG, PNG, WebP",
        cap=IMAGE_MAX_BYTES,
        size_msg="File size too large. Maximum size is 5MB.",
        language=language,
    )
    return ImageInput(asset=asset, language=tag, preprocess=bool(preprocess))


# ─────────────────────────────────────────────────────────────────────────────
# Speech
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class AudioInput:
    asset: UploadedAsset
    language: LanguageTag
    enable_punctuation: bool = True


@dataclass
class PronunciationInput:
    asset: UploadedAsset
    language: LanguageTag
    target_text: Optional[str]
    evaluation_type: str = "pronunciation"
    difficulty: str = "intermediate"


_AUDIO_RULES = dict(
    missing_msg="No audio file uploaded",
    allowed=AUDIO_MIME_TYPES,
    format_msg="Invalid audio format. Supported formats: WAV, MP3, M4A, WebM, OGG",
    cap=AUDIO_MAX_BYTES,
    size_msg="Audio file too large. Maximum size: 10MB",
)


@validator
def validate_transcribe_audio(asset: Optional[UploadedAsset], language: Any, enable_punctuation: bool = True) -> AudioInput:
    asset, tag = _asset(asset, "audio", language=language, **_AUDIO_RULES)
    return AudioInput(asset=asset, language=tag, enable_punctuation=bool(enable_punctuation))


@validator
def validate_evaluate_pronunciation(
    asset: Optional[UploadedAsset],
    language: Any,
    target_text: Any = None,
    evaluation_type: Any = None,
    difficulty: Any = None,
) -> PronunciationInput:
    asset, tag = _asset(asset, "audio", language=language, **_AUDIO_RULES)
    evaluation = _choice(
        evaluation_type, "evaluationType", EVALUATION_TYPES, "pronunciation",
        "Invalid evaluation type. Supported types: " + ", ".join(EVALUATION_TYPES),
    )
    level = _choice(
        difficulty, "difficulty", LEVELS, "intermediate",
        "Invalid difficulty. Supported levels: " + ", ".join(LEVELS),
    )
    if target_text is not None and not isinstance(target_text, str):
        _reject("targetText", "Target text must be a string")
    if isinstance(target_text, str) and len(target_text) > CHAT_MAX_CHARS:
        _reject(
            "targetText",
            f"Target text exceeds maximum length of {CHAT_MAX_CHARS} characters",
            ErrorKind.PAYLOAD_TOO_LARGE,
        )
    target = target_text.strip() if isinstance(target_text, str) and target_text.strip() else None
    return PronunciationInput(
        asset=asset,
        language=tag,
        target_text=target,
        evaluation_type=evaluation,
        difficulty=level,
    )


@dataclass
class SynthesisInput:
    text: str
    language: LanguageTag
    voice: Optional[str] = None


@validator
def validate_synthesize_speech(text: Any, language: Any, voice: Any = None) -> SynthesisInput:
    text = _text(
        text, "text", "Text is required for speech synthesis.",
        GRAMMAR_MAX_CHARS, f"Text exceeds maximum length of {GRAMMAR_MAX_CHARS} characters",
    )
    return SynthesisInput(text=text, language=_language(language), voice=voice)


# ─────────────────────────────────────────────────────────────────────────────
# Grammar
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class GrammarInput:
    text: str
    language: LanguageTag
    check_type: str = "comprehensive"


@dataclass
class BatchGrammarInput:
    texts: list[str]
    language: LanguageTag
    check_type: str = "comprehensive"


def _check_type(value: Any) -> str:
    return _choice(
        value, "checkType", CHECK_TYPES, "comprehensive",
        "Invalid check type. Supported types: " + ", ".join(CHECK_TYPES),
    )


@validator
def validate_check_grammar(text: Any, language: Any = None, check_type: Any = None) -> GrammarInput:
    text = _text(
        text, "text", "Text is required for grammar checking",
        GRAMMAR_MAX_CHARS, f"Text exceeds maximum length of {GRAMMAR_MAX_CHARS} characters",
    )
    return GrammarInput(text=text, language=_language(language), check_type=_check_type(check_type))


@validator
def validate_batch_grammar_check(texts: Any, language: Any = None, check_type: Any = None) -> BatchGrammarInput:
    if not isinstance(texts, list) or not texts:
        _reject("texts", "Array of texts is required for batch processing")
    if len(texts) > BATCH_MAX_ITEMS:
        _reject(
            "texts",
            f"Maximum {BATCH_MAX_ITEMS} texts allowed for batch processing",
            ErrorKind.PAYLOAD_TOO_LARGE,
        )
    for i, item in enumerate(texts):
        _text(
            item, f"texts[{i}]", f"Text at index {i} is empty or invalid",
            BATCH_ITEM_MAX_CHARS,
            f"Text at index {i} exceeds maximum length of {BATCH_ITEM_MAX_CHARS} characters for batch processing",
        )
    tag = _language(language)
    return BatchGrammarInput(texts=list(texts), language=tag, check_type=_check_type(check_type))


# ─────────────────────────────────────────────────────────────────────────────
# Chat
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ChatMessageInput:
    message: str
    session_id: str
    language: LanguageTag
    message_type: str = "text"
    subject: Optional[str] = None
    context: dict = field(default_factory=dict)


@dataclass
class ChatSessionInput:
    language: LanguageTag
    session_type: str = "general"
    user_level: str = "intermediate"


@validator
def validate_send_chat_message(
    message: Any,
    session_id: Any,
    language: Any = None,
    message_type: Any = None,
    subject: Any = None,
    context: Any = None,
) -> ChatMessageInput:
    message = _text(
        message, "message", "Message is required",
        CHAT_MAX_CHARS, f"Message exceeds maximum length of {CHAT_MAX_CHARS} characters",
    )
    if not isinstance(session_id, str) or not session_id.strip():
        _reject("sessionId", "Session ID is required")
    tag = _language(language)
    kind = _choice(
        message_type, "messageType", MESSAGE_TYPES, "text",
        "Invalid message type. Supported types: " + ", ".join(MESSAGE_TYPES),
    )
    ctx = _object(context, "context", "Context must be a valid JSON object.")
    subject = subject or ctx.get("subject")
    return ChatMessageInput(
        message=message,
        session_id=session_id.strip(),
        language=tag,
        message_type=kind,
        subject=str(subject).strip() if subject else None,
        context=ctx,
    )


@validator
def validate_start_chat_session(language: Any = None, session_type: Any = None, user_level: Any = None) -> ChatSessionInput:
    tag = _language(language)
    kind = _choice(
        session_type, "sessionType", SESSION_TYPES, "general",
        "Invalid session type. Supported types: " + ", ".join(SESSION_TYPES),
    )
    level = _choice(
        user_level, "userLevel", LEVELS, "intermediate",
        "Invalid user level. Supported levels: " + ", ".join(LEVELS),
    )
    return ChatSessionInput(language=tag, session_type=kind, user_level=level)


@validator
def validate_session_id(session_id: Any) -> str:
    if not isinstance(session_id, str) or not session_id.strip():
        _reject("sessionId", "Session ID is required.")
    return session_id.strip()


@validator
def validate_preferences(preferences: Any) -> dict:
    if not isinstance(preferences, dict) or not preferences:
        _reject("preferences", "Preferences must be a non-empty JSON object.")
    return preferences


# ─────────────────────────────────────────────────────────────────────────────
# Export
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class DocumentExportInput:
    text: str
    title: str
    language: LanguageTag
    format: str
    formatting: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)
    include_metadata: bool = False


@dataclass
class GrammarReportInput:
    original_text: str
    corrected_text: str
    language: LanguageTag
    format: str = "docx"
    errors: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    confidence: Optional[float] = None
    include_explanations: bool = True


@dataclass
class DataExportInput:
    data: Any
    format: str
    language: LanguageTag
    title: str = "Data Export"
    filename: Optional[str] = None


@validator
def validate_export_document(
    fmt: str,
    text: Any,
    title: Any = None,
    language: Any = None,
    formatting: Any = None,
    metadata: Any = None,
    include_metadata: bool = False,
) -> DocumentExportInput:
    if fmt not in DOCUMENT_FORMATS:
        _reject("format", "Supported document formats are: " + ", ".join(DOCUMENT_FORMATS), ErrorKind.UNSUPPORTED_FORMAT)
    text = _text(
        text, "text", "Text content is required for document export",
        EXPORT_MAX_CHARS, "Text content exceeds maximum length of 100,000 characters",
    )
    tag = _language(language)
    formatting = _object(formatting, "formatting", "Invalid formatting options provided")
    metadata = _object(metadata, "metadata", "Metadata must be a valid JSON object.")
    return DocumentExportInput(
        text=text,
        title=title.strip() if isinstance(title, str) and title.strip() else DEFAULT_EXPORT_TITLE,
        language=tag,
        format=fmt,
        formatting=formatting,
        metadata=metadata,
        include_metadata=bool(include_metadata),
    )


def _string_list(value: Any, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        _reject(field, f"{field} must be an array")
    items = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("message") or item.get("text") or ""
        if str(item).strip():
            items.append(str(item).strip())
    return items


@validator
def validate_export_grammar_report(
    original_text: Any,
    corrected_text: Any,
    language: Any = None,
    fmt: Any = None,
    errors: Any = None,
    suggestions: Any = None,
    confidence: Any = None,
    include_explanations: bool = True,
) -> GrammarReportInput:
    if not (isinstance(original_text, str) and original_text.strip()) or not (
        isinstance(corrected_text, str) and corrected_text.strip()
    ):
        _reject("originalText", "Original text and corrected text are required")
    for name, value in (("originalText", original_text), ("correctedText", corrected_text)):
        if len(value) > EXPORT_MAX_CHARS:
            _reject(name, "Text content exceeds maximum length of 100,000 characters", ErrorKind.PAYLOAD_TOO_LARGE)
    tag = _language(language)
    report_format = _choice(
        fmt, "format", REPORT_FORMATS, "docx",
        "Unsupported format. Supported formats: " + ", ".join(REPORT_FORMATS),
    )
    return GrammarReportInput(
        original_text=original_text,
        corrected_text=corrected_text,
        language=tag,
        format=report_format,
        errors=_string_list(errors, "errors"),
        suggestions=_string_list(suggestions, "suggestions"),
        confidence=confidence,
        include_explanations=bool(include_explanations),
    )


@validator
def validate_export_data(
    data: Any,
    fmt: Any,
    filename: Any = None,
    title: Any = None,
    language: Any = None,
) -> DataExportInput:
    if data is None or data == "" or data == []:
        _reject("data", "Data is required for export.")
    if not isinstance(fmt, str) or fmt.strip().lower() not in DATA_EXPORT_FORMATS:
        _reject(
            "format",
            "Supported export formats are: PDF, DOCX, TXT, JSON, CSV.",
            ErrorKind.UNSUPPORTED_FORMAT,
        )
    if filename is not None and (not isinstance(filename, str) or not filename.strip()):
        _reject("filename", "Filename must be a valid string.")
    return DataExportInput(
        data=data,
        format=fmt.strip().lower(),
        language=_language(language),
        title=title.strip() if isinstance(title, str) and title.strip() else "Data Export",
        filename=filename.strip() if filename else None,
    )
