"""
routers/deps.py
Shared route dependencies: API key check, upload buffering and
service providers (overridable in tests via app.dependency_overrides).
"""

from typing import Optional

from fastapi import Depends, HTTPException, UploadFile
from fastapi.security.api_key import APIKeyHeader

from bhasha.core.config import settings
from bhasha.models.request import UploadedAsset
from bhasha.services.chat_service import ChatService, chat_service
from bhasha.services.export_service import ExportService, export_service
from bhasha.services.grammar_service import GrammarService, grammar_service
from bhasha.services.ocr_service import OCRService, ocr_service
from bhasha.services.speech_service import SpeechService, speech_service

# ── Optional API key auth ──────────────────────────────────────────────────
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Depends(api_key_header)):
    if settings.REQUIRE_API_KEY:
        if not api_key or api_key != settings.API_KEY:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return api_key


# ── Uploads ────────────────────────────────────────────────────────────────

async def read_upload(file: Optional[UploadFile], cap: int) -> Optional[UploadedAsset]:
    """
    Buffer a multipart file; None when the field was not sent.
    At most cap + 1 bytes are held, enough for the size check to reject it.
    """
    if file is None:
        return None
    declared = file.size or 0
    content = b"" if declared > cap else await file.read(cap + 1)
    await file.close()
    return UploadedAsset(
        content=content,
        mime_type=(file.content_type or "").lower(),
        size_bytes=max(declared, len(content)),
        filename=file.filename or "",
    )


# ── Service providers ──────────────────────────────────────────────────────

def get_ocr_service() -> OCRService:
    return ocr_service


def get_speech_service() -> SpeechService:
    return speech_service


def get_grammar_service() -> GrammarService:
    return grammar_service


def get_chat_service() -> ChatService:
    return chat_service


def get_export_service() -> ExportService:
    return export_service
