"""
core/languages.py

Language registry: the three supported languages and their representations.
  - short code     en / hi / pa          (API payloads)
  - full name      english / hindi / punjabi
  - speech locale  en-US / hi-IN / pa-IN (Google Cloud Speech)
  - tesseract      eng / hin / pan       (OCR traineddata)
"""

import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from bhasha.core.errors import UnsupportedLanguageError


@dataclass(frozen=True)
class LanguageTag:
    short_code: str
    full_name: str
    speech_locale: str
    tesseract_code: str
    display_name: str


ENGLISH = LanguageTag("en", "english", "en-US", "eng", "English")
HINDI = LanguageTag("hi", "hindi", "hi-IN", "hin", "Hindi")
PUNJABI = LanguageTag("pa", "punjabi", "pa-IN", "pan", "Punjabi")

LANGUAGES: tuple[LanguageTag, ...] = (ENGLISH, HINDI, PUNJABI)
DEFAULT_LANGUAGE = ENGLISH

_LOOKUP: dict[str, LanguageTag] = {}
for _tag in LANGUAGES:
    _LOOKUP[_tag.short_code] = _tag
    _LOOKUP[_tag.full_name] = _tag

SUPPORTED_LANGUAGES_MESSAGE = (
    "Unsupported language. Supported languages: "
    + ", ".join(f"{t.display_name} ({t.short_code})" for t in LANGUAGES)
)

DEVANAGARI = re.compile(r"[\u0900-\u097F]")
GURMUKHI = re.compile(r"[\u0A00-\u0A7F]")


def resolve(value: Optional[str]) -> LanguageTag:
    """
    Resolve a short code or full name (any case) to its LanguageTag.
    Raises UnsupportedLanguageError for anything outside the table.
    """
    key = value.strip().lower() if isinstance(value, str) else ""
    tag = _LOOKUP.get(key)
    if tag is None:
        raise UnsupportedLanguageError(SUPPORTED_LANGUAGES_MESSAGE)
    return tag


def from_locale(locale: Optional[str]) -> Optional[LanguageTag]:
    """Map a speech locale such as 'hi-in' back to its tag (None if unknown)."""
    if not locale:
        return None
    prefix = locale.split("-")[0].strip().lower()
    return _LOOKUP.get(prefix)


def detect_script_language(text: Optional[str]) -> str:
    """
    Best-effort language guess from the script of the text.
    Devanagari → hindi, Gurmukhi → punjabi, everything else → english.
    """
    if text and DEVANAGARI.search(text):
        return HINDI.full_name
    if text and GURMUKHI.search(text):
        return PUNJABI.full_name
    return ENGLISH.full_name


def supported_languages() -> list[dict[str, str]]:
    return [
        {
            "code": t.short_code,
            "name": t.full_name,
            "displayName": t.display_name,
            "speechLocale": t.speech_locale,
            "ocrCode": t.tesseract_code,
        }
        for t in LANGUAGES
    ]


def request_language(request: Request) -> LanguageTag:
    """
    UI language of the caller: ?lang= first, then Accept-Language,
    falling back to English. Never raises.
    """
    query_lang = request.query_params.get("lang")
    if query_lang and query_lang.lower() in _LOOKUP:
        return _LOOKUP[query_lang.lower()]

    accept = request.headers.get("accept-language", "")
    for part in accept.split(","):
        code = part.split(";")[0].strip().lower()
        if code in _LOOKUP:
            return _LOOKUP[code]
        base = code.split("-")[0]
        if base in _LOOKUP:
            return _LOOKUP[base]
    return DEFAULT_LANGUAGE
