"""
models/response.py
All outgoing response schemas.

Every handler answers with Envelope; `data` holds one of the
feature results below (camelCase on the wire).
"""

from datetime import datetime
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

from bhasha.models.base import CamelModel


# ─────────────────────────────────────────────────────────────────────────────
# ENVELOPE
# ─────────────────────────────────────────────────────────────────────────────

class FieldIssue(CamelModel):
    field: str
    message: str


class Envelope(CamelModel):
    success: bool
    message: str
    status_code: int
    data: Optional[Any] = None
    error: Optional[str] = None           # raw detail, never in production
    errors: Optional[list[FieldIssue]] = None


# ─────────────────────────────────────────────────────────────────────────────
# OCR
# ─────────────────────────────────────────────────────────────────────────────

class BoundingBox(CamelModel):
    x0: int = 0
    y0: int = 0
    x1: int = 0
    y1: int = 0


class OcrWord(CamelModel):
    text: str
    confidence: float = Field(0.0, ge=0, le=100)
    bounding_box: BoundingBox = Field(default_factory=BoundingBox)


class OcrResult(CamelModel):
    extracted_text: str
    confidence: float = Field(0.0, ge=0, le=100)
    language: str
    detected_language: str
    word_count: int = 0
    words: list[OcrWord] = []
    preprocessing_applied: bool = False
    processing_time: int = 0              # ms


# ─────────────────────────────────────────────────────────────────────────────
# SPEECH
# ─────────────────────────────────────────────────────────────────────────────

class WordTimestamp(CamelModel):
    word: str
    start_time: float = 0.0
    end_time: float = 0.0
    confidence: float = Field(0.0, ge=0, le=1)


class AudioMetrics(CamelModel):
    duration: float = 0.0                 # seconds
    sample_rate: Optional[int] = None
    channels: Optional[int] = None
    speech_rate: Optional[float] = None   # words per minute
    pause_count: Optional[int] = None
    longest_pause: Optional[float] = None


class TranscriptionResult(CamelModel):
    transcribed_text: str
    confidence: float = Field(0.0, ge=0, le=1)
    language: str
    detected_language: str
    alternatives: list[str] = []
    word_timestamps: list[WordTimestamp] = []
    word_count: int = 0
    audio_metrics: AudioMetrics = Field(default_factory=AudioMetrics)
    processing_time: int = 0


class WordScore(CamelModel):
    word: str
    spoken: Optional[str] = None
    score: float = Field(0.0, ge=0, le=100)
    status: Literal["correct", "mispronounced", "missed"] = "correct"


class PronunciationFeedback(CamelModel):
    strengths: list[str] = []
    improvements: list[str] = []
    specific_errors: list[str] = []
    recommendations: list[str] = []


class PronunciationResult(CamelModel):
    overall_score: float = Field(0.0, ge=0, le=100)
    pronunciation_score: float = Field(0.0, ge=0, le=100)
    fluency_score: float = Field(0.0, ge=0, le=100)
    accuracy_score: float = Field(0.0, ge=0, le=100)
    completeness_score: float = Field(0.0, ge=0, le=100)
    spoken_text: str
    target_text: Optional[str] = None
    language: str
    evaluation_type: str
    difficulty: str
    feedback: PronunciationFeedback = Field(default_factory=PronunciationFeedback)
    word_level_scores: list[WordScore] = []
    time_alignment: list[WordTimestamp] = []
    audio_metrics: AudioMetrics = Field(default_factory=AudioMetrics)
    processing_time: int = 0


# ─────────────────────────────────────────────────────────────────────────────
# GRAMMAR
# ─────────────────────────────────────────────────────────────────────────────

ErrorType = Literal["grammar", "spelling", "punctuation", "style"]


class GrammarError(CamelModel):
    message: str
    type: ErrorType = "grammar"


class GrammarStatistics(CamelModel):
    total_errors: int = 0
    errors_by_type: dict[str, int] = {}
    readability_score: float = Field(0.0, ge=0, le=100)
    word_count: int = 0


class GrammarResult(CamelModel):
    original_text: str
    corrected_text: str
    errors: list[GrammarError] = []
    suggestions: list[str] = []
    overall_score: float = Field(0.0, ge=0, le=100)
    confidence: float = Field(0.0, ge=0, le=1)
    language: str
    check_type: str
    statistics: GrammarStatistics = Field(default_factory=GrammarStatistics)
    processing_time: int = 0


class BatchGrammarSummary(CamelModel):
    total_texts: int
    total_errors: int
    average_score: float = Field(0.0, ge=0, le=100)
    processing_time: int = 0


class BatchGrammarResult(CamelModel):
    results: list[GrammarResult]
    summary: BatchGrammarSummary


# ─────────────────────────────────────────────────────────────────────────────
# CHAT
# ─────────────────────────────────────────────────────────────────────────────

class ChatMessage(CamelModel):
    timestamp: datetime
    user_message: str
    bot_response: str
    intent: str = "Unknown"
    confidence: float = Field(0.0, ge=0, le=1)
    message_type: str = "text"
    subject: Optional[str] = None


class ChatReplyMetadata(CamelModel):
    response_time: int = 0
    context_updated: bool = True
    message_count: int = 0
    subjects: list[str] = []


class ChatReply(CamelModel):
    bot_response: str
    intent: str = "Unknown"
    confidence: float = Field(0.0, ge=0, le=1)
    language: str
    session_id: str
    message_type: str = "text"
    follow_up_questions: list[str] = []
    suggested_actions: list[str] = []
    metadata: ChatReplyMetadata = Field(default_factory=ChatReplyMetadata)


class ChatSessionInfo(CamelModel):
    session_id: str
    welcome_message: str
    language: str
    session_type: str
    user_level: str
    suggested_questions: list[str] = []
    session_capabilities: list[str] = []
    expires_at: datetime


class ChatHistory(CamelModel):
    session_id: str
    history: list[ChatMessage] = []
    total_messages: int = 0
    subjects: list[str] = []
    preferences: dict[str, Any] = {}
    start_time: Optional[datetime] = None
    last_activity: Optional[datetime] = None


# ─────────────────────────────────────────────────────────────────────────────
# EXPORT
# ─────────────────────────────────────────────────────────────────────────────

class ExportArtifact(BaseModel):
    """Rendered document, returned as a binary body (never enveloped)."""
    content: bytes
    filename: str
    media_type: str

    @property
    def size(self) -> int:
        return len(self.content)


# ─────────────────────────────────────────────────────────────────────────────
# HEALTH
# ─────────────────────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    environment: str
    llm_provider: str
    llm_model: str
    session_store: str
