"""
routers/export.py

POST /api/export/docx | /pdf | /txt   → text document
POST /api/export/grammar-report       → grammar report (docx | pdf | html)
POST /api/export                      → raw data (pdf | docx | txt | json | csv)

Successful exports stream the file itself, not an envelope.
"""

from fastapi import APIRouter, Depends

from bhasha.core.validators import (
    validate_export_data,
    validate_export_document,
    validate_export_grammar_report,
)
from bhasha.models.request import DataExportRequest, ExportDocumentRequest, GrammarReportRequest
from bhasha.routers.deps import get_export_service, verify_api_key
from bhasha.services.export_service import ExportService
from bhasha.services.normalizer import attachment

router = APIRouter(prefix="/export", tags=["export"], dependencies=[Depends(verify_api_key)])


async def _export_document(fmt: str, body: ExportDocumentRequest, exporter: ExportService):
    req = validate_export_document(
        fmt,
        body.text,
        title=body.title,
        language=body.language,
        formatting=body.formatting,
        metadata=body.metadata,
        include_metadata=body.include_metadata,
    ).unwrap()
    return attachment(await exporter.export_document(req))


@router.post("/docx")
async def export_docx(body: ExportDocumentRequest, exporter: ExportService = Depends(get_export_service)):
    return await _export_document("docx", body, exporter)


@router.post("/pdf")
async def export_pdf(body: ExportDocumentRequest, exporter: ExportService = Depends(get_export_service)):
    return await _export_document("pdf", body, exporter)


@router.post("/txt")
async def export_txt(body: ExportDocumentRequest, exporter: ExportService = Depends(get_export_service)):
    return await _export_document("txt", body, exporter)


@router.post("/grammar-report")
async def export_grammar_report(
    body: GrammarReportRequest,
    exporter: ExportService = Depends(get_export_service),
):
    req = validate_export_grammar_report(
        body.original_text,
        body.corrected_text,
        language=body.language,
        fmt=body.format,
        errors=body.errors,
        suggestions=body.suggestions,
        confidence=body.confidence,
        include_explanations=body.include_explanations,
    ).unwrap()
    return attachment(await exporter.export_grammar_report(req))


@router.post("")
async def export_data(
    body: DataExportRequest,
    exporter: ExportService = Depends(get_export_service),
):
    req = validate_export_data(
        body.data,
        body.format,
        filename=body.filename,
        title=body.title,
        language=body.language,
    ).unwrap()
    return attachment(await exporter.export_data(req))
