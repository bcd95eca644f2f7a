"""
tests/test_upstream.py
pytest tests for upstream payload decoders and JSON extraction.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from bhasha.models.upstream import (
    clamp,
    decode_dialog_reply,
    decode_speech_results,
    decode_tesseract_words,
)
from bhasha.services.llm_service import llm_service, strip_fences


@pytest.mark.parametrize("value,expected", [
    (0.5, 0.5),
    ("0.7", 0.7),
    (None, 0.0),
    ("abc", 0.0),
    (float("nan"), 0.0),
    (-3, 0.0),
    (7, 1.0),
    (float("inf"), 1.0),
])
def test_clamp_unit_interval(value, expected):
    assert clamp(value, 0, 1) == expected


def test_clamp_custom_default():
    assert clamp(None, 0, 100, default=50) == 50


def test_decode_tesseract_skips_non_words():
    data = {
        "text": ["", "Hello", "  ", "world", "ghost"],
        "conf": ["-1", "96.5", "-1", 88, -1],
        "left": [0, 10, 0, 60, 0],
        "top": [0, 5, 0, 5, 0],
        "width": [0, 40, 0, 45, 0],
        "height": [0, 12, 0, 12, 0],
    }
    words = decode_tesseract_words(data)
    assert [w.text for w in words] == ["Hello", "world"]
    assert words[0].confidence == 96.5
    assert (words[1].bounding_box.x0, words[1].bounding_box.x1) == (60, 105)


def test_decode_tesseract_tolerates_short_columns():
    words = decode_tesseract_words({"text": ["Hi"], "conf": [90]})
    assert words[0].bounding_box.x1 == 0


def _alt(transcript, confidence=None, words=()):
    return SimpleNamespace(transcript=transcript, confidence=confidence, words=list(words))


def test_decode_speech_results():
    word = SimpleNamespace(word="hello", start_time=timedelta(seconds=0.2),
                           end_time=SimpleNamespace(seconds=1, nanos=500_000_000), confidence=0.9)
    results = [
        SimpleNamespace(alternatives=[_alt(" hello ", 0.92, [word]), _alt("yellow")], language_code="en-us"),
        SimpleNamespace(alternatives=[]),
        SimpleNamespace(alternatives=[_alt("   ")]),
    ]
    segments = decode_speech_results(results)
    assert len(segments) == 1
    assert segments[0].transcript == "hello"
    assert segments[0].alternatives == ["yellow"]
    assert segments[0].words[0].start_time == 0.2
    assert segments[0].words[0].end_time == 1.5
    assert segments[0].language_code == "en-us"


def test_decode_speech_missing_confidence():
    segments = decode_speech_results([SimpleNamespace(alternatives=[_alt("hi")])])
    assert segments[0].confidence == 0.0
    assert segments[0].language_code is None


@pytest.mark.parametrize("data,reply,intent,confidence", [
    ({"reply": "Hi", "intent": "greeting", "confidence": 0.8}, "Hi", "greeting", 0.8),
    ({"fulfillmentText": "Hello", "intent": {"displayName": "Welcome"},
      "intentDetectionConfidence": 2}, "Hello", "Welcome", 1.0),
    ({"text_response": "Ok"}, "Ok", "Unknown", 0.0),
    ({"reply": "   ", "text": "Fallback"}, "Fallback", "Unknown", 0.0),
])
def test_decode_dialog_reply(data, reply, intent, confidence):
    decoded = decode_dialog_reply(data)
    assert (decoded.reply, decoded.intent, decoded.confidence) == (reply, intent, confidence)


def test_decode_dialog_reply_ignores_non_object_parameters():
    assert decode_dialog_reply({"reply": "x", "parameters": ["a"]}).parameters == {}


@pytest.mark.parametrize("raw", [
    '{"reply": "Hi", "intent": "greeting"}',
    '```json\n{"reply": "Hi", "intent": "greeting"}\n```',
    'Sure! {"reply": "Hi", "intent": "greeting"} hope that helps',
])
def test_parse_json_object(raw):
    assert llm_service.parse_json_object(raw)["reply"] == "Hi"


def test_parse_json_object_repairs_truncation():
    data = llm_service.parse_json_object('{"intent":"greeting","reply":"Hello how can I')
    assert data == {"intent": "greeting", "reply": "Hello how can I"}


def test_parse_json_object_gives_up_on_prose():
    assert llm_service.parse_json_object("I cannot answer that.") is None


def test_strip_fences():
    assert strip_fences("```json\n{}\n```") == "{}"
    assert strip_fences(None) == ""
