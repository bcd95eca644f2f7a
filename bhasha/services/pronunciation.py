"""
services/pronunciation.py

Pronunciation scoring from a recognized transcript.

Target and spoken words are aligned with difflib; each target word gets a
0–100 score weighted by the recognizer's word confidence. The four
component scores (pronunciation, fluency, accuracy, completeness) are
combined per evaluation type into the overall score.
"""

import string
from difflib import SequenceMatcher
from typing import Optional

from bhasha.models.response import (
    AudioMetrics,
    PronunciationFeedback,
    PronunciationResult,
    WordScore,
    WordTimestamp,
)
from bhasha.models.upstream import clamp

PUNCTUATION = string.punctuation + "।॥“”‘’…"
PAUSE_SECONDS = 0.5
IDEAL_WPM = (110.0, 170.0)

WEIGHTS: dict[str, dict[str, float]] = {
    "pronunciation": {"pronunciation": 0.5, "accuracy": 0.3, "fluency": 0.1, "completeness": 0.1},
    "fluency":       {"fluency": 0.5, "pronunciation": 0.2, "accuracy": 0.15, "completeness": 0.15},
    "accuracy":      {"accuracy": 0.5, "pronunciation": 0.2, "completeness": 0.2, "fluency": 0.1},
    "completeness":  {"completeness": 0.5, "accuracy": 0.3, "pronunciation": 0.1, "fluency": 0.1},
    "comprehensive": {"pronunciation": 0.25, "fluency": 0.25, "accuracy": 0.25, "completeness": 0.25},
}

# Score a component must reach to count as a strength
THRESHOLDS = {"beginner": 60.0, "intermediate": 70.0, "advanced": 80.0}

RECOMMENDATIONS = {
    "pronunciation": "Listen to native speakers and repeat difficult sounds slowly",
    "fluency": "Practice reading aloud at a steady pace with fewer long pauses",
    "accuracy": "Focus on saying each word clearly before increasing speed",
    "completeness": "Read the full passage without skipping words",
}


def normalize_word(word: str) -> str:
    return word.strip(PUNCTUATION).lower()


def tokenize(text: str) -> list[str]:
    return [w for w in (normalize_word(t) for t in (text or "").split()) if w]


def audio_metrics(words: list[WordTimestamp], sample_rate: Optional[int] = None) -> AudioMetrics:
    """Duration, speaking rate and pauses from recognizer word offsets."""
    if not words:
        return AudioMetrics(duration=0.0, sample_rate=sample_rate)

    duration = max(w.end_time for w in words)
    gaps = [
        max(0.0, nxt.start_time - cur.end_time)
        for cur, nxt in zip(words, words[1:])
    ]
    pauses = [g for g in gaps if g > PAUSE_SECONDS]
    return AudioMetrics(
        duration=round(duration, 3),
        sample_rate=sample_rate,
        speech_rate=round(len(words) / (duration / 60.0), 1) if duration > 0 else None,
        pause_count=len(pauses),
        longest_pause=round(max(pauses), 3) if pauses else 0.0,
    )


def _fluency(metrics: AudioMetrics) -> float:
    rate = metrics.speech_rate
    if not rate:
        rate_score = 70.0
    elif rate < IDEAL_WPM[0]:
        rate_score = 100.0 * rate / IDEAL_WPM[0]
    elif rate > IDEAL_WPM[1]:
        rate_score = 100.0 - (rate - IDEAL_WPM[1]) * 0.5
    else:
        rate_score = 100.0
    penalty = min(40.0, 5.0 * (metrics.pause_count or 0))
    return clamp(rate_score - penalty, 0, 100)


def _word_score(similarity: float, confidence: float) -> float:
    return round(clamp(100.0 * similarity * (0.6 + 0.4 * confidence), 0, 100), 1)


def align_words(
    target: list[str],
    spoken: list[str],
    confidences: list[float],
) -> list[WordScore]:
    """One WordScore per target word, in target order."""
    scores: list[WordScore] = []
    matcher = SequenceMatcher(a=target, b=spoken, autojunk=False)

    for op, a0, a1, b0, b1 in matcher.get_opcodes():
        if op == "equal":
            for i, j in zip(range(a0, a1), range(b0, b1)):
                scores.append(WordScore(
                    word=target[i], spoken=spoken[j],
                    score=_word_score(1.0, confidences[j]), status="correct",
                ))
        elif op == "replace":
            pairs = list(zip(range(a0, a1), range(b0, b1)))
            for i, j in pairs:
                ratio = SequenceMatcher(a=target[i], b=spoken[j]).ratio()
                scores.append(WordScore(
                    word=target[i], spoken=spoken[j],
                    score=_word_score(ratio, confidences[j]), status="mispronounced",
                ))
            for i in range(a0 + len(pairs), a1):
                scores.append(WordScore(word=target[i], score=0.0, status="missed"))
        elif op == "delete":
            for i in range(a0, a1):
                scores.append(WordScore(word=target[i], score=0.0, status="missed"))
        # "insert": extra spoken words carry no target word
    return scores


def _feedback(
    components: dict[str, float],
    word_scores: list[WordScore],
    difficulty: str,
) -> PronunciationFeedback:
    threshold = THRESHOLDS.get(difficulty, THRESHOLDS["intermediate"])
    feedback = PronunciationFeedback()

    for name, value in components.items():
        label = name.capitalize()
        if value >= threshold:
            feedback.strengths.append(f"{label} is good ({value:.0f}/100)")
        else:
            feedback.improvements.append(f"{label} needs work ({value:.0f}/100)")
            feedback.recommendations.append(RECOMMENDATIONS[name])

    for ws in word_scores:
        if ws.status == "missed":
            feedback.specific_errors.append(f"Missed word: '{ws.word}'")
        elif ws.status == "mispronounced":
            feedback.specific_errors.append(f"Mispronounced '{ws.word}' (heard '{ws.spoken}')")

    if not feedback.recommendations:
        feedback.recommendations.append("Keep practicing with longer and more difficult passages")
    return feedback


def score_pronunciation(
    target_text: str,
    spoken_text: str,
    words: list[WordTimestamp],
    metrics: AudioMetrics,
    evaluation_type: str = "pronunciation",
    difficulty: str = "intermediate",
    fallback_confidence: float = 0.0,
) -> PronunciationResult:
    target = tokenize(target_text)

    if words:
        spoken_pairs = [(normalize_word(w.word), w.confidence) for w in words]
        spoken_pairs = [(w, c) for w, c in spoken_pairs if w]
    else:
        spoken_pairs = [(w, fallback_confidence) for w in tokenize(spoken_text)]
    spoken = [w for w, _ in spoken_pairs]
    confidences = [c for _, c in spoken_pairs]

    word_scores = align_words(target, spoken, confidences)

    accuracy = sum(ws.score for ws in word_scores) / len(word_scores) if word_scores else 0.0
    spoken_count = sum(1 for ws in word_scores if ws.status != "missed")
    completeness = 100.0 * spoken_count / len(target) if target else 0.0
    mean_conf = sum(confidences) / len(confidences) if confidences else fallback_confidence
    components = {
        "pronunciation": clamp(mean_conf * 100.0, 0, 100),
        "fluency": _fluency(metrics),
        "accuracy": clamp(accuracy, 0, 100),
        "completeness": clamp(completeness, 0, 100),
    }

    weights = WEIGHTS.get(evaluation_type, WEIGHTS["pronunciation"])
    overall = sum(components[name] * weight for name, weight in weights.items())

    return PronunciationResult(
        overall_score=round(clamp(overall, 0, 100), 1),
        pronunciation_score=round(components["pronunciation"], 1),
        fluency_score=round(components["fluency"], 1),
        accuracy_score=round(components["accuracy"], 1),
        completeness_score=round(components["completeness"], 1),
        spoken_text=spoken_text,
        target_text=target_text,
        language="en",
        evaluation_type=evaluation_type,
        difficulty=difficulty,
        feedback=_feedback(components, word_scores, difficulty),
        word_level_scores=word_scores,
        time_alignment=words,
        audio_metrics=metrics,
    )
