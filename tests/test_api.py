"""
tests/test_api.py
End-to-end tests through the FastAPI app (TestClient).
"""

import asyncio

import pytest

from bhasha.core.config import settings
from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.validators import IMAGE_MAX_BYTES, validate_extract_text
from bhasha.models.response import OcrResult
from bhasha.routers import deps
from bhasha.services.chat_service import ChatService
from conftest import CountingService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def override(client, provider, service):
    client.app.dependency_overrides[provider] = lambda: service
    return service


# ── Health ───────────────────────────────────────────────────────────────────

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["session_store"] == "memory"
    assert "X-Latency-Ms" in response.headers


def test_unknown_route_is_enveloped(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["statusCode"] == 404


# ── Grammar ──────────────────────────────────────────────────────────────────

def test_grammar_check_end_to_end(client, llm):
    llm.replies = [
        "CORRECTED: This is a sample text.\n"
        "CHANGES:\n- Changed 'are' to 'is' (subject-verb agreement)\n"
        "SUGGESTIONS:\n- None"
    ]
    response = client.post("/api/grammar", json={
        "text": "This are a sample text.", "language": "en", "checkType": "grammar",
    })
    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["message"] == "Grammar check completed successfully"
    data = payload["data"]
    assert data["correctedText"] and data["correctedText"] != "This are a sample text."
    assert data["statistics"]["totalErrors"] >= 1


def test_batch_over_limit_makes_no_upstream_calls(client, llm):
    grammar = override(client, deps.get_grammar_service, CountingService())
    response = client.post("/api/grammar/batch", json={"texts": ["Fix me."] * 21, "language": "en"})
    assert response.status_code == 400
    assert "Maximum 20 texts allowed" in response.json()["message"]
    assert grammar.calls == 0
    assert llm.calls == []


def test_batch_reports_bad_item_index(client):
    response = client.post("/api/grammar/batch", json={"texts": ["ok", "  "]})
    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "texts[1]", "message": "Text at index 1 is empty or invalid"}]


def test_malformed_body_is_enveloped(client):
    response = client.post("/api/grammar", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["errors"]


def test_upstream_quota_maps_to_429(client, llm):
    llm.replies = [ServiceError(ErrorKind.UPSTREAM_QUOTA_EXCEEDED, "Grammar check quota exceeded. Please try again later.")]
    response = client.post("/api/grammar", json={"text": "Hello there."})
    assert response.status_code == 429
    assert response.json()["message"] == "Grammar check quota exceeded. Please try again later."


def test_internal_failure_localized_from_accept_language(client, llm):
    llm.replies = [ServiceError(ErrorKind.INTERNAL_FAILURE, "Grammar check failed", detail="timeout")]
    response = client.post("/api/grammar", json={"text": "Hello."}, headers={"Accept-Language": "hi-IN,hi;q=0.9"})
    assert response.status_code == 500
    assert response.json()["message"].startswith("आंतरिक")


# ── OCR ──────────────────────────────────────────────────────────────────────

def test_ocr_unsupported_mime_never_reaches_adapter(client):
    ocr = override(client, deps.get_ocr_service, CountingService())
    response = client.post(
        "/api/ocr",
        files={"image": ("scan.gif", b"GIF89a....", "image/gif")},
        data={"language": "en"},
    )
    assert response.status_code == 400
    assert "Supported formats" in response.json()["message"]
    assert ocr.calls == 0


def test_ocr_missing_file(client):
    response = client.post("/api/ocr", data={"language": "en"})
    assert response.status_code == 400
    assert response.json()["message"] == "No image file uploaded"


def test_ocr_success_message(client):
    result = OcrResult(extracted_text="Hello", confidence=91.5, language="en", detected_language="english")
    ocr = override(client, deps.get_ocr_service, CountingService(result))
    response = client.post(
        "/api/ocr",
        files={"image": ("scan.png", PNG, "image/png")},
        data={"language": "en", "preprocess": "true"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Text extracted with preprocessing successfully"
    assert response.json()["data"]["extractedText"] == "Hello"
    assert ocr.calls == 1


def test_ocr_languages(client):
    response = client.get("/api/ocr/languages")
    assert [lang["code"] for lang in response.json()["data"]["languages"]] == ["en", "hi", "pa"]


# ── Uploads ──────────────────────────────────────────────────────────────────

class RecordingUpload:
    """UploadFile stand-in that records how much was read."""

    def __init__(self, length, declared=None, content_type="image/png"):
        self.data = b"\x00" * length
        self.size = declared
        self.content_type = content_type
        self.filename = "scan.png"
        self.bytes_read = 0

    async def read(self, size=-1):
        chunk = self.data if size < 0 else self.data[:size]
        self.bytes_read += len(chunk)
        return chunk

    async def close(self):
        pass


def test_upload_read_is_bounded_by_cap():
    upload = RecordingUpload(40 * 1024 * 1024)
    asset = asyncio.run(deps.read_upload(upload, IMAGE_MAX_BYTES))
    assert upload.bytes_read == IMAGE_MAX_BYTES + 1
    assert asset.size_bytes > IMAGE_MAX_BYTES
    assert validate_extract_text(asset, "en").issues[0].message == "File size too large. Maximum size is 5MB."


def test_upload_over_declared_size_is_not_read():
    upload = RecordingUpload(40 * 1024 * 1024, declared=40 * 1024 * 1024)
    asset = asyncio.run(deps.read_upload(upload, IMAGE_MAX_BYTES))
    assert upload.bytes_read == 0
    assert asset.size_bytes == 40 * 1024 * 1024


def test_upload_within_cap_is_read_whole():
    upload = RecordingUpload(1024, declared=1024)
    asset = asyncio.run(deps.read_upload(upload, IMAGE_MAX_BYTES))
    assert asset.content == upload.data
    assert asset.size_bytes == 1024


def test_ocr_rejects_large_image(client):
    ocr = override(client, deps.get_ocr_service, CountingService())
    response = client.post(
        "/api/ocr",
        files={"image": ("scan.png", PNG + b"\x00" * (5 * 1024 * 1024), "image/png")},
        data={"language": "en"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "File size too large. Maximum size is 5MB."
    assert ocr.calls == 0


# ── Speech ───────────────────────────────────────────────────────────────────

def test_speech_rejects_large_audio(client):
    stt = override(client, deps.get_speech_service, CountingService())
    response = client.post(
        "/api/speech",
        files={"audio": ("clip.wav", b"\x00" * (10 * 1024 * 1024 + 1), "audio/wav")},
        data={"language": "hi"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Audio file too large. Maximum size: 10MB"
    assert stt.calls == 0


def test_speech_analyze_bad_evaluation_type(client):
    stt = override(client, deps.get_speech_service, CountingService())
    response = client.post(
        "/api/speech/analyze",
        files={"audio": ("clip.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
        data={"language": "en", "evaluationType": "speed"},
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "evaluationType"
    assert stt.calls == 0


def test_synthesize_not_implemented(client):
    response = client.post("/api/speech/synthesize", json={"text": "Hello", "language": "en"})
    assert response.status_code == 501
    assert response.json()["success"] is False


# ── Chat ─────────────────────────────────────────────────────────────────────

def test_start_session_unknown_language(client, store):
    chat = override(client, deps.get_chat_service, ChatService(store))
    response = client.post("/api/chat/session", json={"language": "xx"})
    assert response.status_code == 400
    assert "Supported languages" in response.json()["message"]
    assert chat.store._sessions == {}


def test_chat_flow(client, store, llm):
    override(client, deps.get_chat_service, ChatService(store))

    started = client.post("/api/chat/session", json={"language": "pa", "sessionType": "grammar_focused"})
    assert started.status_code == 201
    session_id = started.json()["data"]["sessionId"]

    sent = client.post("/api/chat", json={
        "message": "What is a noun?", "sessionId": session_id, "language": "pa",
        "context": {"subject": "grammar"},
    })
    assert sent.status_code == 200
    assert sent.json()["data"]["metadata"]["messageCount"] == 1
    assert sent.json()["data"]["metadata"]["subjects"] == ["grammar"]

    prefs = client.put(f"/api/chat/session/{session_id}/preferences", json={"preferences": {"theme": "dark"}})
    assert prefs.json()["data"]["preferences"] == {"theme": "dark"}

    history = client.get(f"/api/chat/history/{session_id}")
    assert history.json()["data"]["totalMessages"] == 1
    assert history.json()["data"]["history"][0]["userMessage"] == "What is a noun?"

    assert client.delete(f"/api/chat/session/{session_id}").status_code == 200
    assert client.get(f"/api/chat/history/{session_id}").status_code == 404


def test_chat_requires_session_id(client, llm):
    response = client.post("/api/chat", json={"message": "Hi"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "sessionId"
    assert llm.calls == []


# ── Export ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("fmt,media_type", [
    ("txt", "text/plain; charset=utf-8"),
    ("docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
    ("pdf", "application/pdf"),
])
def test_export_document(client, fmt, media_type):
    response = client.post(f"/api/export/{fmt}", json={"text": "Hello world", "title": "My Notes"})
    assert response.status_code == 200
    assert response.headers["content-type"] == media_type
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="my_notes_')
    assert disposition.endswith(f'.{fmt}"')


def test_export_grammar_report_html(client):
    response = client.post("/api/export/grammar-report", json={
        "originalText": "This are wrong.", "correctedText": "This is wrong.",
        "errors": ["Changed 'are' to 'is'"], "format": "html", "confidence": 0.9,
    })
    assert response.status_code == 200
    assert "Grammar Analysis Report" in response.text
    assert "Confidence: 90%" in response.text


def test_export_data_csv(client):
    response = client.post("/api/export", json={"data": [{"word": "cat", "score": 90}], "format": "csv"})
    assert response.status_code == 200
    assert response.text.splitlines()[0] == "word,score"


def test_export_validation_is_enveloped(client):
    response = client.post("/api/export/txt", json={"title": "Empty"})
    assert response.status_code == 400
    assert response.json()["message"] == "Text content is required for document export"


# ── Auth & limits ────────────────────────────────────────────────────────────

def test_api_key_required_when_enabled(client, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRE_API_KEY", True)
    monkeypatch.setattr(settings, "API_KEY", "secret")
    assert client.get("/api/ocr/languages").status_code == 401
    assert client.get("/api/ocr/languages", headers={"X-API-Key": "secret"}).status_code == 200


def test_rate_limit_returns_envelope(client):
    responses = [client.get("/api/ocr/languages") for _ in range(101)]
    assert all(r.status_code == 200 for r in responses[:100])
    limited = responses[100]
    assert limited.status_code == 429
    assert limited.json()["message"] == "Too many requests from this IP, please try again later."


def test_health_is_exempt_from_rate_limit(client):
    assert all(client.get("/health").status_code == 200 for _ in range(105))
