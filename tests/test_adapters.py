"""
tests/test_adapters.py
pytest tests for upstream error classification in the LLM, speech and OCR adapters.
"""

import asyncio
import io
from types import SimpleNamespace

import httpx
import openai
import pytest
from google.api_core import exceptions as gexc
from PIL import Image

from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.languages import resolve
from bhasha.core.validators import AudioInput, ImageInput, PronunciationInput
from bhasha.models.request import UploadedAsset
from bhasha.services.llm_service import LLMService
from bhasha.services.ocr_service import OCRService
from bhasha.services.speech_service import Encoding, SpeechService

REQUEST = httpx.Request("POST", "https://llm.test/v1/chat/completions")


# ── LLM ──────────────────────────────────────────────────────────────────────

class FakeCompletions:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def llm_with(outcome) -> LLMService:
    service = LLMService()
    service._client = SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(outcome)))
    return service


def completion(content, finish_reason="stop"):
    return SimpleNamespace(choices=[SimpleNamespace(
        message=SimpleNamespace(content=content), finish_reason=finish_reason,
    )])


def complete(service: LLMService):
    return asyncio.run(service.complete(
        "system", "user", max_tokens=64, temperature=0.2,
        service="Grammar check", rejected_message="Text cannot be processed",
    ))


@pytest.mark.parametrize("error,kind,message", [
    (openai.RateLimitError("slow down", response=httpx.Response(429, request=REQUEST), body=None),
     ErrorKind.UPSTREAM_QUOTA_EXCEEDED, "Grammar check quota exceeded. Please try again later."),
    (openai.BadRequestError("bad input", response=httpx.Response(400, request=REQUEST), body=None),
     ErrorKind.UPSTREAM_INPUT_REJECTED, "Text cannot be processed"),
    (openai.APIConnectionError(request=REQUEST),
     ErrorKind.INTERNAL_FAILURE, "Grammar check failed"),
    (openai.InternalServerError("boom", response=httpx.Response(500, request=REQUEST), body=None),
     ErrorKind.INTERNAL_FAILURE, "Grammar check failed"),
])
def test_llm_error_classification(error, kind, message):
    with pytest.raises(ServiceError) as exc:
        complete(llm_with(error))
    assert exc.value.kind == kind
    assert exc.value.message == message


def test_llm_content_filter_is_rejected_input():
    with pytest.raises(ServiceError) as exc:
        complete(llm_with(completion("", finish_reason="content_filter")))
    assert exc.value.kind == ErrorKind.UPSTREAM_INPUT_REJECTED


def test_llm_empty_reply_is_internal():
    with pytest.raises(ServiceError) as exc:
        complete(llm_with(completion("   ")))
    assert exc.value.kind == ErrorKind.INTERNAL_FAILURE


def test_llm_history_goes_between_system_and_user():
    service = llm_with(completion("  fine  "))
    history = [{"role": "user", "content": "earlier"}, {"role": "assistant", "content": "reply"}]
    text = asyncio.run(service.complete("sys", "now", max_tokens=8, temperature=0, history=history))
    assert text == "fine"
    roles = [m["role"] for m in service._client.chat.completions.kwargs["messages"]]
    assert roles == ["system", "user", "assistant", "user"]


# ── Speech ───────────────────────────────────────────────────────────────────

class FakeSpeechClient:
    def __init__(self, outcome):
        self.outcome = outcome
        self.config = None

    async def recognize(self, config, audio):
        self.config = config
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def speech_with(outcome) -> SpeechService:
    service = SpeechService()
    service._client = FakeSpeechClient(outcome)
    return service


def audio(mime="audio/webm") -> UploadedAsset:
    return UploadedAsset(content=b"\x1a\x45\xdf\xa3", mime_type=mime, size_bytes=4)


def word(text, start, end, confidence=0.9):
    return SimpleNamespace(word=text, start_time=start, end_time=end, confidence=confidence)


def recognized(transcript, words, confidence=0.9, language_code="hi-in"):
    alt = SimpleNamespace(transcript=transcript, confidence=confidence, words=words)
    return SimpleNamespace(results=[SimpleNamespace(alternatives=[alt], language_code=language_code)])


@pytest.mark.parametrize("error,kind", [
    (gexc.ResourceExhausted("quota"), ErrorKind.UPSTREAM_QUOTA_EXCEEDED),
    (gexc.InvalidArgument("bad audio"), ErrorKind.UPSTREAM_INPUT_REJECTED),
    (gexc.ServiceUnavailable("down"), ErrorKind.INTERNAL_FAILURE),
])
def test_speech_error_classification(error, kind):
    service = speech_with(error)
    with pytest.raises(ServiceError) as exc:
        asyncio.run(service.transcribe(AudioInput(asset=audio(), language=resolve("en"))))
    assert exc.value.kind == kind


def test_speech_no_results_is_rejected_input():
    service = speech_with(SimpleNamespace(results=[]))
    with pytest.raises(ServiceError) as exc:
        asyncio.run(service.transcribe(AudioInput(asset=audio(), language=resolve("en"))))
    assert exc.value.message == "No clear speech detected in the audio recording"


def test_transcribe():
    words = [word("नमस्ते", 0.0, 0.6), word("दोस्त", 0.7, 1.2)]
    service = speech_with(recognized("नमस्ते दोस्त", words))
    result = asyncio.run(service.transcribe(AudioInput(asset=audio("audio/ogg"), language=resolve("hi"))))
    assert result.transcribed_text == "नमस्ते दोस्त"
    assert result.detected_language == "hindi"
    assert result.word_count == 2
    assert result.audio_metrics.duration == 1.2
    config = service._client.config
    assert config.language_code == "hi-IN"
    assert set(config.alternative_language_codes) == {"en-US", "pa-IN"}
    assert config.encoding == Encoding.OGG_OPUS


def test_wav_leaves_sample_rate_to_header():
    config = SpeechService().build_config(resolve("en"), "audio/wav")
    assert config.encoding == Encoding.ENCODING_UNSPECIFIED
    assert config.sample_rate_hertz == 0


def test_pronunciation_too_short():
    service = speech_with(recognized("hi", [word("hi", 0.0, 0.4)]))
    req = PronunciationInput(asset=audio(), language=resolve("en"), target_text="hi")
    with pytest.raises(ServiceError) as exc:
        asyncio.run(service.evaluate_pronunciation(req))
    assert exc.value.message == "Audio recording is too short. Minimum duration: 1 second"


def test_pronunciation_result_carries_request_fields():
    words = [word("the", 0.0, 0.4), word("cat", 0.5, 0.9), word("sat", 1.0, 1.5)]
    service = speech_with(recognized("the cat sat", words, language_code="en-us"))
    req = PronunciationInput(
        asset=audio(), language=resolve("en"), target_text="The cat sat.",
        evaluation_type="comprehensive", difficulty="advanced",
    )
    result = asyncio.run(service.evaluate_pronunciation(req))
    assert result.language == "en"
    assert result.target_text == "The cat sat."
    assert result.completeness_score == 100.0
    assert result.difficulty == "advanced"


# ── OCR ──────────────────────────────────────────────────────────────────────

def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (40, 20), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def image_input(content: bytes, preprocess=False) -> ImageInput:
    asset = UploadedAsset(content=content, mime_type="image/png", size_bytes=len(content))
    return ImageInput(asset=asset, language=resolve("pa"), preprocess=preprocess)


def test_ocr_corrupt_image_is_rejected_input():
    with pytest.raises(ServiceError) as exc:
        asyncio.run(OCRService().extract_text(image_input(b"not an image")))
    assert exc.value.kind == ErrorKind.UPSTREAM_INPUT_REJECTED
    assert exc.value.message == "Invalid or corrupted image file"


def test_ocr_result(monkeypatch):
    calls = {}

    def fake_string(image, lang):
        calls["lang"] = lang
        calls["mode"] = image.mode
        return "  ਸਤ ਸ੍ਰੀ ਅਕਾਲ \n"

    def fake_data(image, lang, output_type):
        return {"text": ["ਸਤ", "ਸ੍ਰੀ", "ਅਕਾਲ"], "conf": [90, 80, 70],
                "left": [0, 0, 0], "top": [0, 0, 0], "width": [1, 1, 1], "height": [1, 1, 1]}

    monkeypatch.setattr("pytesseract.image_to_string", fake_string)
    monkeypatch.setattr("pytesseract.image_to_data", fake_data)

    result = asyncio.run(OCRService().extract_text(image_input(png_bytes(), preprocess=True)))
    assert calls == {"lang": "pan", "mode": "L"}
    assert result.extracted_text == "ਸਤ ਸ੍ਰੀ ਅਕਾਲ"
    assert result.confidence == 80.0
    assert result.detected_language == "punjabi"
    assert result.language == "pa"
    assert result.preprocessing_applied is True


def test_ocr_missing_engine_is_internal(monkeypatch):
    import pytesseract

    def missing(*args, **kwargs):
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr("pytesseract.image_to_string", missing)
    with pytest.raises(ServiceError) as exc:
        asyncio.run(OCRService().extract_text(image_input(png_bytes())))
    assert exc.value.kind == ErrorKind.INTERNAL_FAILURE
