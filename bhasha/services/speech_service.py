"""
services/speech_service.py

Speech-to-text via Google Cloud Speech (google-cloud-speech, async client).

Credentials are picked up from GOOGLE_APPLICATION_CREDENTIALS. Upstream
failures are classified from google.api_core exceptions:
  ResourceExhausted           → UPSTREAM_QUOTA_EXCEEDED
  InvalidArgument / OutOfRange → UPSTREAM_INPUT_REJECTED
  anything else               → INTERNAL_FAILURE
"""

import time
from typing import Optional

from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exceptions
from google.cloud import speech

from bhasha.core.config import settings
from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.languages import LANGUAGES, LanguageTag, detect_script_language, from_locale
from bhasha.core.logger import get_logger
from bhasha.core.validators import AudioInput, PronunciationInput
from bhasha.models.response import AudioMetrics, PronunciationResult, TranscriptionResult
from bhasha.models.upstream import SpeechSegment, clamp, decode_speech_results
from bhasha.services.pronunciation import audio_metrics, score_pronunciation

logger = get_logger(__name__)

Encoding = speech.RecognitionConfig.AudioEncoding

# mime → (encoding, send sample rate?)
# WAV carries its own header; mp4/m4a are left for the service to sniff.
ENCODINGS: dict[str, tuple[Encoding, bool]] = {
    "audio/wav": (Encoding.ENCODING_UNSPECIFIED, False),
    "audio/wave": (Encoding.ENCODING_UNSPECIFIED, False),
    "audio/x-wav": (Encoding.ENCODING_UNSPECIFIED, False),
    "audio/mpeg": (Encoding.MP3, True),
    "audio/mp3": (Encoding.MP3, True),
    "audio/mp4": (Encoding.ENCODING_UNSPECIFIED, False),
    "audio/m4a": (Encoding.ENCODING_UNSPECIFIED, False),
    "audio/webm": (Encoding.WEBM_OPUS, True),
    "audio/ogg": (Encoding.OGG_OPUS, True),
}

MIN_EVALUATION_SECONDS = 1.0
MAX_EVALUATION_SECONDS = 300.0

NO_SPEECH_MESSAGE = "No clear speech detected in the audio recording"


class SpeechService:
    def __init__(self):
        self._client: Optional[speech.SpeechAsyncClient] = None

    @property
    def client(self) -> speech.SpeechAsyncClient:
        if self._client is None:
            self._client = speech.SpeechAsyncClient()
        return self._client

    def build_config(
        self,
        language: LanguageTag,
        mime_type: str,
        enable_punctuation: bool = True,
    ) -> speech.RecognitionConfig:
        encoding, with_rate = ENCODINGS.get(
            mime_type.split(";")[0].strip().lower(),
            (Encoding.ENCODING_UNSPECIFIED, False),
        )
        config = speech.RecognitionConfig(
            encoding=encoding,
            language_code=language.speech_locale,
            alternative_language_codes=[
                t.speech_locale for t in LANGUAGES if t.short_code != language.short_code
            ],
            enable_automatic_punctuation=enable_punctuation,
            enable_word_time_offsets=True,
            enable_word_confidence=True,
            max_alternatives=3,
            model=settings.SPEECH_MODEL,
        )
        if with_rate:
            config.sample_rate_hertz = settings.SPEECH_SAMPLE_RATE_HZ
        return config

    async def _recognize(
        self,
        content: bytes,
        language: LanguageTag,
        mime_type: str,
        enable_punctuation: bool,
        service: str,
    ) -> list[SpeechSegment]:
        config = self.build_config(language, mime_type, enable_punctuation)
        try:
            response = await self.client.recognize(
                config=config,
                audio=speech.RecognitionAudio(content=content),
            )
        except gexc.ResourceExhausted as e:
            logger.error(f"Speech quota exceeded: {e}")
            raise ServiceError(
                ErrorKind.UPSTREAM_QUOTA_EXCEEDED,
                f"{service} quota exceeded. Please try again later.",
                detail=str(e),
            ) from e
        except (gexc.InvalidArgument, gexc.OutOfRange) as e:
            logger.error(f"Speech rejected audio: {e}")
            raise ServiceError(
                ErrorKind.UPSTREAM_INPUT_REJECTED,
                "Invalid or unsupported audio recording",
                detail=str(e),
            ) from e
        except (gexc.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            logger.error(f"Speech exception: {type(e).__name__}: {e}", exc_info=True)
            raise ServiceError(
                ErrorKind.INTERNAL_FAILURE,
                f"{service} failed",
                detail=f"{type(e).__name__}: {e}",
            ) from e

        segments = decode_speech_results(response.results)
        if not segments:
            raise ServiceError(ErrorKind.UPSTREAM_INPUT_REJECTED, NO_SPEECH_MESSAGE)
        return segments

    def _detected_language(self, segments: list[SpeechSegment], transcript: str) -> str:
        for segment in segments:
            tag = from_locale(segment.language_code)
            if tag is not None:
                return tag.full_name
        return detect_script_language(transcript)

    async def transcribe(self, req: AudioInput) -> TranscriptionResult:
        t0 = time.perf_counter()
        logger.info(
            f"STT start locale={req.language.speech_locale} "
            f"size={req.asset.size_bytes}B mime={req.asset.mime_type}"
        )
        segments = await self._recognize(
            req.asset.content,
            req.language,
            req.asset.mime_type,
            req.enable_punctuation,
            service="Speech recognition",
        )

        transcript = " ".join(s.transcript for s in segments)
        words = [w for s in segments for w in s.words]
        confidence = clamp(sum(s.confidence for s in segments) / len(segments), 0, 1)
        metrics = audio_metrics(words, settings.SPEECH_SAMPLE_RATE_HZ)
        elapsed_ms = int((time.perf_counter() - t0) * 1000)

        logger.info(f"STT done segments={len(segments)} words={len(words)} [{elapsed_ms}ms]")
        return TranscriptionResult(
            transcribed_text=transcript,
            confidence=round(confidence, 4),
            language=req.language.short_code,
            detected_language=self._detected_language(segments, transcript),
            alternatives=[alt for s in segments for alt in s.alternatives],
            word_timestamps=words,
            word_count=len(words) if words else len(transcript.split()),
            audio_metrics=metrics,
            processing_time=elapsed_ms,
        )

    async def evaluate_pronunciation(self, req: PronunciationInput) -> PronunciationResult:
        t0 = time.perf_counter()
        segments = await self._recognize(
            req.asset.content,
            req.language,
            req.asset.mime_type,
            True,
            service="Speech evaluation",
        )
        transcript = " ".join(s.transcript for s in segments)
        words = [w for s in segments for w in s.words]
        metrics: AudioMetrics = audio_metrics(words, settings.SPEECH_SAMPLE_RATE_HZ)

        if words and metrics.duration < MIN_EVALUATION_SECONDS:
            raise ServiceError(
                ErrorKind.UPSTREAM_INPUT_REJECTED,
                "Audio recording is too short. Minimum duration: 1 second",
            )
        if metrics.duration > MAX_EVALUATION_SECONDS:
            raise ServiceError(
                ErrorKind.UPSTREAM_INPUT_REJECTED,
                "Audio recording is too long. Maximum duration: 5 minutes",
            )

        fallback_conf = clamp(sum(s.confidence for s in segments) / len(segments), 0, 1)
        result = score_pronunciation(
            target_text=req.target_text or transcript,
            spoken_text=transcript,
            words=words,
            metrics=metrics,
            evaluation_type=req.evaluation_type,
            difficulty=req.difficulty,
            fallback_confidence=fallback_conf,
        )
        result.language = req.language.short_code
        result.target_text = req.target_text
        result.processing_time = int((time.perf_counter() - t0) * 1000)

        logger.info(
            f"Pronunciation [{req.evaluation_type}/{req.difficulty}] "
            f"overall={result.overall_score} [{result.processing_time}ms]"
        )
        return result


# Singleton
speech_service = SpeechService()
