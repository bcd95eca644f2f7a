"""
models/upstream.py

Decoders for the upstream payload shapes we accept.

Each external service has exactly one decode function here. Every field
that may be missing, null, NaN or out of range resolves through a
documented default, so adapters never reach into raw payloads.
"""

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable, Optional

from bhasha.models.response import BoundingBox, OcrWord, WordTimestamp


def clamp(value: Any, low: float, high: float, default: float = 0.0) -> float:
    """
    Coerce to float within [low, high].
    None / non-numeric / NaN → default; negatives → low; above high → high.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    if math.isinf(number):
        return high if number > 0 else low
    return max(low, min(high, number))


# ─────────────────────────────────────────────────────────────────────────────
# TESSERACT  (pytesseract.image_to_data(..., output_type=Output.DICT))
#   {"text": [...], "conf": [...], "left": [...], "top": [...],
#    "width": [...], "height": [...], ...}   conf = -1 for non-word rows
# ─────────────────────────────────────────────────────────────────────────────

def decode_tesseract_words(data: dict[str, list]) -> list[OcrWord]:
    texts = data.get("text") or []
    confs = data.get("conf") or []
    lefts = data.get("left") or []
    tops = data.get("top") or []
    widths = data.get("width") or []
    heights = data.get("height") or []

    def at(column: list, i: int, default: Any = 0) -> Any:
        return column[i] if i < len(column) else default

    words: list[OcrWord] = []
    for i, raw_text in enumerate(texts):
        text = str(raw_text or "").strip()
        raw_conf = at(confs, i, -1)
        if not text or clamp(raw_conf, -1, 100, default=-1) < 0:
            continue
        x0, y0 = int(at(lefts, i)), int(at(tops, i))
        words.append(OcrWord(
            text=text,
            confidence=round(clamp(raw_conf, 0, 100), 2),
            bounding_box=BoundingBox(
                x0=x0,
                y0=y0,
                x1=x0 + int(at(widths, i)),
                y1=y0 + int(at(heights, i)),
            ),
        ))
    return words


# ─────────────────────────────────────────────────────────────────────────────
# GOOGLE CLOUD SPEECH  (RecognizeResponse)
#   results[*].alternatives[*].{transcript, confidence, words[*]}
#   words[*].{word, start_time, end_time, confidence}
#   start_time may be timedelta (proto-plus), a Duration-like object with
#   seconds/nanos, or a plain number.
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class SpeechSegment:
    transcript: str
    confidence: float
    words: list[WordTimestamp] = field(default_factory=list)
    alternatives: list[str] = field(default_factory=list)
    language_code: Optional[str] = None


def _seconds(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, timedelta):
        return value.total_seconds()
    if hasattr(value, "seconds"):
        nanos = getattr(value, "nanos", 0) or 0
        return float(value.seconds or 0) + float(nanos) / 1e9
    return clamp(value, 0, float("inf"))


def decode_speech_results(results: Iterable[Any]) -> list[SpeechSegment]:
    segments: list[SpeechSegment] = []
    for result in results or []:
        alternatives = list(getattr(result, "alternatives", None) or [])
        if not alternatives:
            continue
        best = alternatives[0]
        transcript = (getattr(best, "transcript", "") or "").strip()
        if not transcript:
            continue
        words = [
            WordTimestamp(
                word=getattr(w, "word", "") or "",
                start_time=round(_seconds(getattr(w, "start_time", None)), 3),
                end_time=round(_seconds(getattr(w, "end_time", None)), 3),
                confidence=clamp(getattr(w, "confidence", None), 0, 1),
            )
            for w in (getattr(best, "words", None) or [])
        ]
        segments.append(SpeechSegment(
            transcript=transcript,
            confidence=clamp(getattr(best, "confidence", None), 0, 1),
            words=words,
            alternatives=[
                (getattr(alt, "transcript", "") or "").strip()
                for alt in alternatives[1:]
                if getattr(alt, "transcript", "")
            ],
            language_code=getattr(result, "language_code", None) or None,
        ))
    return segments


# ─────────────────────────────────────────────────────────────────────────────
# DIALOG ENGINE  (JSON object produced by the tutor model)
#   reply     ← "reply" | "text_response" | "fulfillmentText" | "text"
#   intent    ← "intent" (string or {"displayName": ...})
#   confidence← "confidence" | "intentDetectionConfidence"
#   parameters← "parameters" (object)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class DialogReply:
    reply: str
    intent: str = "Unknown"
    confidence: float = 0.0
    parameters: dict[str, Any] = field(default_factory=dict)


_REPLY_KEYS = ("reply", "text_response", "fulfillmentText", "text")
_CONFIDENCE_KEYS = ("confidence", "intentDetectionConfidence")


def decode_dialog_reply(data: dict[str, Any]) -> DialogReply:
    reply = next(
        (str(data[k]).strip() for k in _REPLY_KEYS if isinstance(data.get(k), str) and data[k].strip()),
        "",
    )

    raw_intent = data.get("intent")
    if isinstance(raw_intent, dict):
        raw_intent = raw_intent.get("displayName") or raw_intent.get("name")
    intent = str(raw_intent).strip() if raw_intent else "Unknown"

    raw_conf = next((data[k] for k in _CONFIDENCE_KEYS if k in data), None)
    parameters = data.get("parameters")

    return DialogReply(
        reply=reply,
        intent=intent or "Unknown",
        confidence=clamp(raw_conf, 0, 1),
        parameters=parameters if isinstance(parameters, dict) else {},
    )
