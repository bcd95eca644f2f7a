"""
services/ocr_service.py

Text extraction from images with Tesseract (pytesseract + Pillow).

Language packs: en → eng, hi → hin, pa → pan. Tesseract is blocking, so
every call runs in a worker thread.
"""

import asyncio
import io
import time

import pytesseract
from PIL import Image, ImageOps, UnidentifiedImageError
from pytesseract import Output

from bhasha.core.config import settings
from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.languages import detect_script_language
from bhasha.core.logger import get_logger
from bhasha.core.validators import ImageInput
from bhasha.models.response import OcrResult
from bhasha.models.upstream import decode_tesseract_words

logger = get_logger(__name__)

pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD


class OCRService:
    """Tesseract adapter. One call per uploaded image."""

    def _open(self, content: bytes, preprocess: bool) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(content))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ServiceError(
                ErrorKind.UPSTREAM_INPUT_REJECTED,
                "Invalid or corrupted image file",
                detail=str(e),
            ) from e

        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        if preprocess:
            image = ImageOps.autocontrast(ImageOps.grayscale(image))
        return image

    def _run(self, content: bytes, lang: str, preprocess: bool) -> tuple[str, dict]:
        image = self._open(content, preprocess)
        try:
            text = pytesseract.image_to_string(image, lang=lang)
            data = pytesseract.image_to_data(image, lang=lang, output_type=Output.DICT)
        except pytesseract.TesseractNotFoundError as e:
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, "OCR engine is not installed", detail=str(e)) from e
        except pytesseract.TesseractError as e:
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, "Text extraction failed", detail=str(e)) from e
        return text, data

    async def extract_text(self, req: ImageInput) -> OcrResult:
        t0 = time.perf_counter()
        lang = req.language.tesseract_code
        logger.info(
            f"OCR start lang={lang} size={req.asset.size_bytes}B "
            f"mime={req.asset.mime_type} preprocess={req.preprocess}"
        )

        try:
            text, data = await asyncio.to_thread(self._run, req.asset.content, lang, req.preprocess)
        except ServiceError as e:
            logger.error(f"OCR failed: {e.message} ({e.detail})", exc_info=e.kind == ErrorKind.INTERNAL_FAILURE)
            raise

        words = decode_tesseract_words(data)
        text = text.strip()
        confidence = round(sum(w.confidence for w in words) / len(words), 2) if words else 0.0
        elapsed_ms = int((time.perf_counter() - t0) * 1000)

        logger.info(f"OCR done words={len(words)} conf={confidence} [{elapsed_ms}ms]")
        return OcrResult(
            extracted_text=text,
            confidence=confidence,
            language=req.language.short_code,
            detected_language=detect_script_language(text),
            word_count=len(text.split()),
            words=words,
            preprocessing_applied=req.preprocess,
            processing_time=elapsed_ms,
        )


# Singleton
ocr_service = OCRService()
