"""
models/request.py
All incoming request schemas.

Only types are checked here. Presence, length and enum rules
live in core/validators.py.
"""

from dataclasses import dataclass
from typing import Any, Optional
from pydantic import Field

from bhasha.models.base import CamelModel


@dataclass
class UploadedAsset:
    """One uploaded file, buffered in memory for a single adapter call."""
    content: bytes
    mime_type: str
    size_bytes: int
    filename: str = ""


# ── Grammar ──────────────────────────────────────────────────────────────────

class GrammarRequest(CamelModel):
    text: Optional[str] = Field(None, description="Text to check")
    language: Optional[str] = Field(None, description="en | hi | pa (or full name)")
    check_type: Optional[str] = Field(None, description="comprehensive | spelling | grammar | punctuation | style")


class BatchGrammarRequest(CamelModel):
    texts: Optional[list[Any]] = Field(None, description="Up to 20 texts")
    language: Optional[str] = None
    check_type: Optional[str] = None


# ── Chat ─────────────────────────────────────────────────────────────────────

class ChatMessageRequest(CamelModel):
    message: Optional[str] = None
    session_id: Optional[str] = None
    language: Optional[str] = None
    message_type: Optional[str] = None
    subject: Optional[str] = Field(None, description="Subject area, e.g. grammar, science")
    context: Optional[Any] = Field(None, description="Extra context object from the client")


class ChatSessionRequest(CamelModel):
    language: Optional[str] = None
    session_type: Optional[str] = None
    user_level: Optional[str] = None


class PreferencesRequest(CamelModel):
    preferences: Optional[Any] = None


# ── Speech ───────────────────────────────────────────────────────────────────

class SynthesizeRequest(CamelModel):
    text: Optional[str] = None
    language: Optional[str] = None
    voice: Optional[str] = None


# ── Export ───────────────────────────────────────────────────────────────────

class ExportDocumentRequest(CamelModel):
    text: Optional[str] = None
    title: Optional[str] = None
    language: Optional[str] = None
    formatting: Optional[Any] = None
    metadata: Optional[Any] = None
    include_metadata: bool = False


class GrammarReportRequest(CamelModel):
    original_text: Optional[str] = None
    corrected_text: Optional[str] = None
    errors: Optional[list[Any]] = None
    suggestions: Optional[list[Any]] = None
    confidence: Optional[float] = None
    language: Optional[str] = None
    format: Optional[str] = None
    include_explanations: bool = True


class DataExportRequest(CamelModel):
    data: Optional[Any] = None
    format: Optional[str] = None
    filename: Optional[Any] = None
    title: Optional[str] = None
    language: Optional[str] = None
