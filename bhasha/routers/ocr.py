"""
routers/ocr.py

POST /api/ocr            → extract text from an uploaded image (field "image")
GET  /api/ocr/languages  → languages the OCR engine is configured for
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from bhasha.core.languages import supported_languages
from bhasha.core.validators import IMAGE_MAX_BYTES, validate_extract_text
from bhasha.routers.deps import get_ocr_service, read_upload, verify_api_key
from bhasha.services.normalizer import success
from bhasha.services.ocr_service import OCRService

router = APIRouter(prefix="/ocr", tags=["ocr"], dependencies=[Depends(verify_api_key)])


@router.post("")
async def extract_text(
    image: Optional[UploadFile] = File(None),
    language: Optional[str] = Form(None),
    preprocess: bool = Form(False),
    ocr: OCRService = Depends(get_ocr_service),
):
    req = validate_extract_text(await read_upload(image, IMAGE_MAX_BYTES), language, preprocess).unwrap()
    result = await ocr.extract_text(req)
    message = (
        "Text extracted with preprocessing successfully"
        if req.preprocess
        else "Text extracted successfully"
    )
    return success(result, message)


@router.get("/languages")
async def languages():
    return success(
        {"languages": supported_languages()},
        "Supported languages retrieved successfully",
    )
