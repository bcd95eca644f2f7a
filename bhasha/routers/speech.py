"""
routers/speech.py

POST /api/speech             → transcribe an uploaded recording (field "audio")
POST /api/speech/analyze     → pronunciation evaluation against targetText
POST /api/speech/synthesize  → text-to-speech (not implemented, 501)
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.validators import (
    AUDIO_MAX_BYTES,
    validate_evaluate_pronunciation,
    validate_synthesize_speech,
    validate_transcribe_audio,
)
from bhasha.models.request import SynthesizeRequest
from bhasha.routers.deps import get_speech_service, read_upload, verify_api_key
from bhasha.services.normalizer import success
from bhasha.services.speech_service import SpeechService

router = APIRouter(prefix="/speech", tags=["speech"], dependencies=[Depends(verify_api_key)])


@router.post("")
async def transcribe(
    audio: Optional[UploadFile] = File(None),
    language: Optional[str] = Form(None),
    enable_punctuation: bool = Form(True, alias="enablePunctuation"),
    stt: SpeechService = Depends(get_speech_service),
):
    req = validate_transcribe_audio(await read_upload(audio, AUDIO_MAX_BYTES), language, enable_punctuation).unwrap()
    result = await stt.transcribe(req)
    return success(result, "Audio transcribed successfully")


@router.post("/analyze")
async def analyze(
    audio: Optional[UploadFile] = File(None),
    language: Optional[str] = Form(None),
    target_text: Optional[str] = Form(None, alias="targetText"),
    evaluation_type: Optional[str] = Form(None, alias="evaluationType"),
    difficulty: Optional[str] = Form(None),
    stt: SpeechService = Depends(get_speech_service),
):
    req = validate_evaluate_pronunciation(
        await read_upload(audio, AUDIO_MAX_BYTES),
        language,
        target_text=target_text,
        evaluation_type=evaluation_type,
        difficulty=difficulty,
    ).unwrap()
    result = await stt.evaluate_pronunciation(req)
    return success(result, "Pronunciation evaluation completed successfully")


@router.post("/synthesize")
async def synthesize(body: SynthesizeRequest):
    validate_synthesize_speech(body.text, body.language, body.voice).unwrap()
    raise ServiceError(ErrorKind.UNIMPLEMENTED, "Text-to-speech is not available yet")
