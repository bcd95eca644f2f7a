"""
services/grammar_service.py

Grammar correction through the generative model.

The model is asked to answer in a labelled block format:

    CORRECTED: <corrected text>
    CHANGES:
    - <one change per line>
    SUGGESTIONS:
    - <one suggestion per line>

parse_grammar_response() turns that free text into GrammarSections;
everything the caller sees (errors, scores, statistics) is derived from
the sections. Raw model text never leaves this module.
"""

import re
import time
from dataclasses import dataclass, field

from bhasha.core.config import settings
from bhasha.core.logger import get_logger
from bhasha.core.validators import BatchGrammarInput, GrammarInput
from bhasha.models.response import (
    BatchGrammarResult,
    BatchGrammarSummary,
    GrammarError,
    GrammarResult,
    GrammarStatistics,
)
from bhasha.models.upstream import clamp
from bhasha.services.llm_service import llm_service, strip_fences

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# PROMPTS
# ─────────────────────────────────────────────────────────────────────────────

SYSTEM_PROMPT = """You are a careful language teacher correcting student writing in English, Hindi and Punjabi.
Never translate the text. Keep the original meaning and the original language.

Answer ONLY in this format, with the labels in English:
CORRECTED: <the full corrected text>
CHANGES:
- <one change per line, e.g. "Changed 'goed' to 'went' (verb tense)">
SUGGESTIONS:
- <optional additional suggestions, one per line>

If the text has no errors, repeat it after CORRECTED: and leave CHANGES empty."""

LANGUAGE_PROMPTS = {
    "en": "Please correct the grammar errors in the following English text and provide the improved version. Maintain the original meaning.",
    "hi": "कृपया निम्नलिखित हिंदी पाठ में व्याकरण की त्रुटियों को ठीक करें और सुधारा हुआ पाठ प्रदान करें। मूल अर्थ को बनाए रखें।",
    "pa": "ਕਿਰਪਾ ਕਰਕੇ ਇਸ ਪੰਜਾਬੀ ਟੈਕਸਟ ਵਿੱਚ ਵਿਆਕਰਣ ਦੀਆਂ ਗਲਤੀਆਂ ਨੂੰ ਸੁਧਾਰੋ ਅਤੇ ਸੁਧਾਰਿਆ ਹੋਇਆ ਟੈਕਸਟ ਪ੍ਰਦਾਨ ਕਰੋ। ਮੂਲ ਅਰਥ ਬਣਾਈ ਰੱਖੋ।",
}

FOCUS = {
    "comprehensive": "Check grammar, spelling, punctuation and style.",
    "spelling": "Focus only on spelling mistakes.",
    "grammar": "Focus on grammatical errors such as agreement, tense and word order.",
    "punctuation": "Focus only on punctuation.",
    "style": "Focus on style, clarity and word choice.",
}


def build_prompt(text: str, language: str, check_type: str) -> str:
    return (
        f"{LANGUAGE_PROMPTS.get(language, LANGUAGE_PROMPTS['en'])}\n"
        f"{FOCUS.get(check_type, FOCUS['comprehensive'])}\n\n"
        f'Text: "{text}"'
    )


# ─────────────────────────────────────────────────────────────────────────────
# PARSING
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class GrammarSections:
    corrected: str
    changes: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


_BOLD_LABEL = re.compile(r"\*\*\s*(CORRECTED|CHANGES|SUGGESTIONS)\s*:?\s*\*\*[ \t]*:?")
_CORRECTED = re.compile(r"CORRECTED:\s*(.*?)(?=CHANGES:|SUGGESTIONS:|$)", re.S)
_CHANGES = re.compile(r"CHANGES:\s*(.*?)(?=SUGGESTIONS:|$)", re.S)
_SUGGESTIONS = re.compile(r"SUGGESTIONS:\s*(.*)", re.S)
_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_EMPTY_ITEMS = {"none", "n/a", "na", "-", "no changes", "no changes.", "none."}


def _lines(block: str) -> list[str]:
    items = []
    for line in block.splitlines():
        item = _BULLET.sub("", line, count=1).strip()
        if item and item.lower() not in _EMPTY_ITEMS:
            items.append(item)
    return items


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] == '"' and text.count('"') == 2:
        return text[1:-1].strip()
    return text


def parse_grammar_response(raw: str) -> GrammarSections:
    """
    Extract the labelled sections.
    Missing CORRECTED → the whole trimmed response; missing lists → [].
    """
    text = _BOLD_LABEL.sub(r"\1:", strip_fences(raw))

    corrected_match = _CORRECTED.search(text)
    changes_match = _CHANGES.search(text)
    suggestions_match = _SUGGESTIONS.search(text)

    return GrammarSections(
        corrected=_unquote(corrected_match.group(1).strip()) if corrected_match else text.strip(),
        changes=_lines(changes_match.group(1)) if changes_match else [],
        suggestions=_lines(suggestions_match.group(1)) if suggestions_match else [],
    )


def format_grammar_sections(sections: GrammarSections) -> str:
    """Inverse of parse_grammar_response for well-formed sections."""
    lines = [f"CORRECTED: {sections.corrected}", "CHANGES:"]
    lines += [f"- {c}" for c in sections.changes]
    lines.append("SUGGESTIONS:")
    lines += [f"- {s}" for s in sections.suggestions]
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# SCORING
# ─────────────────────────────────────────────────────────────────────────────

ERROR_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("spelling", ("spell", "misspel", "typo", "वर्तनी", "ਸ਼ਬਦ-ਜੋੜ", "ਸਪੈਲਿੰਗ")),
    ("punctuation", (
        "punctuat", "comma", "period", "full stop", "apostrophe", "question mark",
        "capital", "विराम", "ਵਿਰਾਮ",
    )),
    ("style", ("style", "clarity", "word choice", "rephras", "concise", "wordy", "शैली", "ਸ਼ੈਲੀ")),
]


def classify_change(change: str) -> str:
    lowered = change.lower()
    for error_type, keywords in ERROR_KEYWORDS:
        if any(k in lowered for k in keywords):
            return error_type
    return "grammar"


def similarity(text1: str, text2: str) -> float:
    words1 = text1.lower().split()
    words2 = text2.lower().split()
    longest = max(len(words1), len(words2))
    if longest == 0:
        return 1.0
    present = set(words2)
    return sum(1 for w in words1 if w in present) / longest


def correction_confidence(original: str, corrected: str) -> float:
    """clamp(word overlap − length delta × 0.5, 0, 1)."""
    longest = max(len(original), len(corrected))
    delta = abs(len(original) - len(corrected)) / longest if longest else 0.0
    return round(clamp(similarity(original, corrected) - delta * 0.5, 0, 1), 4)


_SENTENCE_END = re.compile(r"[.!?।॥]+")


def readability_score(text: str) -> float:
    sentences = [s for s in _SENTENCE_END.split(text) if s.strip()] or [text]
    words = text.split()
    if not words:
        return 0.0
    avg_sentence = len(words) / len(sentences)
    avg_word = sum(len(w) for w in words) / len(words)
    score = 100.0 - max(0.0, avg_sentence - 15) * 2.0 - max(0.0, avg_word - 5) * 10.0
    return round(clamp(score, 0, 100), 1)


def overall_score(error_count: int, word_count: int) -> float:
    if error_count == 0:
        return 100.0
    return round(clamp(100.0 * (1 - 2.0 * error_count / max(word_count, 1)), 0, 100), 1)


def derive_errors(original: str, sections: GrammarSections) -> list[GrammarError]:
    errors = [GrammarError(message=c, type=classify_change(c)) for c in sections.changes]
    if not errors and sections.corrected.strip() != original.strip():
        errors.append(GrammarError(
            message="The text was corrected; compare the original and corrected versions",
            type="grammar",
        ))
    return errors


# ─────────────────────────────────────────────────────────────────────────────
# SERVICE
# ─────────────────────────────────────────────────────────────────────────────

class GrammarService:
    async def check(self, req: GrammarInput) -> GrammarResult:
        t0 = time.perf_counter()
        raw = await llm_service.complete(
            SYSTEM_PROMPT,
            build_prompt(req.text, req.language.short_code, req.check_type),
            max_tokens=settings.GRAMMAR_MAX_TOKENS,
            temperature=settings.GRAMMAR_TEMPERATURE,
            service="Grammar check",
            rejected_message="Text contains content that cannot be processed by the grammar service",
        )
        sections = parse_grammar_response(raw)
        if not sections.corrected:
            sections.corrected = req.text

        errors = derive_errors(req.text, sections)
        by_type: dict[str, int] = {}
        for e in errors:
            by_type[e.type] = by_type.get(e.type, 0) + 1
        word_count = len(req.text.split())
        elapsed_ms = int((time.perf_counter() - t0) * 1000)

        logger.info(
            f"Grammar [{req.language.short_code}/{req.check_type}] "
            f"errors={len(errors)} [{elapsed_ms}ms]"
        )
        return GrammarResult(
            original_text=req.text,
            corrected_text=sections.corrected,
            errors=errors,
            suggestions=sections.suggestions,
            overall_score=overall_score(len(errors), word_count),
            confidence=correction_confidence(req.text, sections.corrected),
            language=req.language.short_code,
            check_type=req.check_type,
            statistics=GrammarStatistics(
                total_errors=len(errors),
                errors_by_type=by_type,
                readability_score=readability_score(sections.corrected),
                word_count=word_count,
            ),
            processing_time=elapsed_ms,
        )

    async def check_batch(self, req: BatchGrammarInput) -> BatchGrammarResult:
        t0 = time.perf_counter()
        results = []
        for text in req.texts:
            results.append(await self.check(GrammarInput(
                text=text,
                language=req.language,
                check_type=req.check_type,
            )))

        total_errors = sum(r.statistics.total_errors for r in results)
        average = sum(r.overall_score for r in results) / len(results) if results else 0.0
        return BatchGrammarResult(
            results=results,
            summary=BatchGrammarSummary(
                total_texts=len(results),
                total_errors=total_errors,
                average_score=round(average, 1),
                processing_time=int((time.perf_counter() - t0) * 1000),
            ),
        )


# Singleton
grammar_service = GrammarService()
