"""
services/export_service.py

Document export: DOCX (python-docx), PDF (reportlab), HTML, TXT,
plus JSON / CSV for raw data exports.

Every export is first described as ExportContent (title + ordered typed
sections), then handed to one renderer. Section types and their styling:
  plain      one paragraph per line
  list       bulleted items
  metadata   italic lines
  original   muted grey  (#666666)
  corrected  bold green  (#2E7D32)
  changes    numbered, blue (#1976D2)
"""

import asyncio
import csv
import html
import io
import json
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal, Optional, Union

from docx import Document
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from bhasha.core.config import settings
from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.languages import DEVANAGARI, GURMUKHI, LanguageTag
from bhasha.core.logger import get_logger
from bhasha.core.validators import DataExportInput, DocumentExportInput, GrammarReportInput
from bhasha.models.response import ExportArtifact
from bhasha.models.upstream import clamp

logger = get_logger(__name__)

SectionType = Literal["plain", "list", "metadata", "original", "corrected", "changes"]

MEDIA_TYPES = {
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "pdf": "application/pdf",
    "html": "text/html; charset=utf-8",
    "txt": "text/plain; charset=utf-8",
    "json": "application/json",
    "csv": "text/csv; charset=utf-8",
}

COLORS = {
    "original": "666666",
    "corrected": "2E7D32",
    "changes": "1976D2",
    "heading": "1976D2",
}

DOCX_FONTS = {
    "en": "Arial",
    "hi": "Noto Sans Devanagari",
    "pa": "Noto Sans Gurmukhi",
}
MIXED_FONT = "Noto Sans"

DEFAULT_FONT_SIZE = 12


# Characters XML 1.0 (and so DOCX) cannot hold. Word's line and page
# breaks become newlines, the rest are dropped.
_XML_BREAKS = re.compile(r"[\x0b\x0c]")
_XML_INVALID = re.compile(r"[\x00-\x08\x0e-\x1f]")


def xml_safe(text: str) -> str:
    return _XML_INVALID.sub("", _XML_BREAKS.sub("\n", text))


@dataclass
class ExportSection:
    content: Union[str, list[str]]
    type: SectionType = "plain"
    heading: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.content, list):
            self.content = [xml_safe(str(c)) for c in self.content]
        else:
            self.content = xml_safe(str(self.content))
        if self.heading:
            self.heading = xml_safe(self.heading)

    def items(self) -> list[str]:
        if isinstance(self.content, list):
            return list(self.content)
        return self.content.split("\n")


@dataclass
class ExportContent:
    title: str
    language: LanguageTag
    sections: list[ExportSection] = field(default_factory=list)
    font_size: int = DEFAULT_FONT_SIZE

    def __post_init__(self):
        self.title = xml_safe(self.title)


# ─────────────────────────────────────────────────────────────────────────────
# FILENAMES
# ─────────────────────────────────────────────────────────────────────────────

def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", (title or "").lower()).strip("_")
    return slug or "document"


def generate_filename(title: str, extension: str, now: Optional[datetime] = None) -> str:
    """slug_<UTC timestamp to µs>_<6 hex>.<ext>"""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{slugify(title)}_{stamp}_{secrets.token_hex(3)}.{extension}"


# ─────────────────────────────────────────────────────────────────────────────
# DOCX
# ─────────────────────────────────────────────────────────────────────────────

def render_docx(content: ExportContent) -> bytes:
    doc = Document()
    for section in doc.sections:
        section.top_margin = section.bottom_margin = Inches(0.5)
        section.left_margin = section.right_margin = Inches(0.5)

    font_name = DOCX_FONTS.get(content.language.short_code, MIXED_FONT)
    normal = doc.styles["Normal"]
    normal.font.name = font_name
    normal.font.size = Pt(content.font_size)
    normal.element.get_or_add_rPr().get_or_add_rFonts().set(qn("w:cs"), font_name)

    doc.add_heading(content.title, level=0)

    for section in content.sections:
        if section.heading:
            heading = doc.add_heading(level=1)
            run = heading.add_run(section.heading)
            run.font.color.rgb = RGBColor.from_string(COLORS["heading"])

        if section.type == "list":
            for item in section.items():
                doc.add_paragraph(item, style="List Bullet")
        elif section.type == "changes":
            for i, change in enumerate(section.items(), start=1):
                run = doc.add_paragraph().add_run(f"{i}. {change}")
                run.font.color.rgb = RGBColor.from_string(COLORS["changes"])
        elif section.type == "metadata":
            for item in section.items():
                doc.add_paragraph().add_run(item).italic = True
        elif section.type in ("original", "corrected"):
            run = doc.add_paragraph().add_run("\n".join(section.items()))
            run.font.color.rgb = RGBColor.from_string(COLORS[section.type])
            run.bold = section.type == "corrected"
        else:
            for line in section.items():
                doc.add_paragraph(line.strip())

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# PDF
# ─────────────────────────────────────────────────────────────────────────────

PDF_FONT_DEFAULT = "Helvetica"
PDF_FONT_BOLD = "Helvetica-Bold"
PDF_FONT_ITALIC = "Helvetica-Oblique"

PDF_FONT_FILES = {
    "NotoSans": "NotoSans-Regular.ttf",
    "NotoSans-Bold": "NotoSans-Bold.ttf",
    "NotoSansDevanagari": "NotoSansDevanagari-Regular.ttf",
    "NotoSansDevanagari-Bold": "NotoSansDevanagari-Bold.ttf",
    "NotoSansGurmukhi": "NotoSansGurmukhi-Regular.ttf",
    "NotoSansGurmukhi-Bold": "NotoSansGurmukhi-Bold.ttf",
}

_registered_fonts: Optional[set[str]] = None


def _register_pdf_fonts() -> set[str]:
    global _registered_fonts
    if _registered_fonts is not None:
        return _registered_fonts

    _registered_fonts = set()
    font_dir = Path(settings.FONT_DIR)
    for font_name, filename in PDF_FONT_FILES.items():
        path = font_dir / filename
        if not path.exists():
            continue
        pdfmetrics.registerFont(TTFont(font_name, str(path)))
        _registered_fonts.add(font_name)

    if not _registered_fonts:
        logger.warning(f"No Noto fonts found in '{font_dir}'; PDFs use Helvetica")
    return _registered_fonts


def _pdf_font(text: str, bold: bool = False, italic: bool = False) -> str:
    available = _register_pdf_fonts()
    if DEVANAGARI.search(text):
        family = "NotoSansDevanagari"
    elif GURMUKHI.search(text):
        family = "NotoSansGurmukhi"
    else:
        family = "NotoSans"

    name = f"{family}-Bold" if bold else family
    if name in available:
        return name
    if family in available:
        return family
    if bold:
        return PDF_FONT_BOLD
    return PDF_FONT_ITALIC if italic else PDF_FONT_DEFAULT


def _pdf_paragraph(text: str, style: ParagraphStyle, bold=False, italic=False, **kwargs) -> Paragraph:
    font = _pdf_font(text, bold=bold, italic=italic)
    if font != style.fontName:
        style = ParagraphStyle(f"{style.name}-{font}", parent=style, fontName=font)
    return Paragraph(html.escape(text, quote=False).replace("\n", "<br/>"), style, **kwargs)


def render_pdf(content: ExportContent) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=inch / 2,
        rightMargin=inch / 2,
        topMargin=inch / 2,
        bottomMargin=inch / 2,
        title=content.title,
    )
    base = getSampleStyleSheet()
    size = content.font_size
    body = ParagraphStyle(
        "Body", parent=base["BodyText"],
        fontName=PDF_FONT_DEFAULT, fontSize=size, leading=size * 1.4, spaceAfter=6,
    )
    title_style = ParagraphStyle(
        "DocumentTitle", parent=base["Heading1"],
        fontName=PDF_FONT_BOLD, fontSize=size + 8, leading=(size + 8) * 1.2, spaceAfter=12,
    )
    heading_style = ParagraphStyle(
        "SectionHeading", parent=base["Heading2"],
        fontName=PDF_FONT_BOLD, fontSize=size + 3, leading=(size + 3) * 1.3,
        textColor=colors.HexColor(f"#{COLORS['heading']}"), spaceBefore=10, spaceAfter=6,
    )
    list_style = ParagraphStyle("ListItem", parent=body, leftIndent=18, bulletIndent=6, spaceAfter=3)
    styles = {
        "original": ParagraphStyle("Original", parent=body, textColor=colors.HexColor(f"#{COLORS['original']}")),
        "corrected": ParagraphStyle("Corrected", parent=body, textColor=colors.HexColor(f"#{COLORS['corrected']}")),
        "changes": ParagraphStyle("Changes", parent=list_style, textColor=colors.HexColor(f"#{COLORS['changes']}")),
    }

    story = [_pdf_paragraph(content.title, title_style, bold=True)]
    for section in content.sections:
        if section.heading:
            story.append(_pdf_paragraph(section.heading, heading_style, bold=True))

        if section.type == "list":
            story += [_pdf_paragraph(item, list_style, bulletText="•") for item in section.items()]
        elif section.type == "changes":
            story += [
                _pdf_paragraph(change, styles["changes"], bulletText=f"{i}.")
                for i, change in enumerate(section.items(), start=1)
            ]
        elif section.type == "metadata":
            story += [_pdf_paragraph(item, body, italic=True) for item in section.items()]
        elif section.type in ("original", "corrected"):
            story.append(_pdf_paragraph(
                "\n".join(section.items()), styles[section.type], bold=section.type == "corrected",
            ))
        else:
            for line in section.items():
                story.append(_pdf_paragraph(line.strip(), body) if line.strip() else Spacer(1, size))
        story.append(Spacer(1, 6))

    doc.build(story)
    return buffer.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# HTML / TXT
# ─────────────────────────────────────────────────────────────────────────────

HTML_STYLES = {
    "original": f"color:#{COLORS['original']};",
    "corrected": f"color:#{COLORS['corrected']};font-weight:bold;",
    "changes": f"color:#{COLORS['changes']};",
    "metadata": "font-style:italic;",
}


def render_html(content: ExportContent) -> bytes:
    e = html.escape
    body: list[str] = [f"<h1>{e(content.title)}</h1>"]
    for section in content.sections:
        if section.heading:
            body.append(f'<h2 style="color:#{COLORS["heading"]};">{e(section.heading)}</h2>')
        style = HTML_STYLES.get(section.type, "")
        if section.type == "list":
            body.append("<ul>" + "".join(f"<li>{e(i)}</li>" for i in section.items()) + "</ul>")
        elif section.type == "changes":
            body.append(f'<ol style="{style}">' + "".join(f"<li>{e(i)}</li>" for i in section.items()) + "</ol>")
        elif section.type in ("original", "corrected"):
            text = e("\n".join(section.items())).replace("\n", "<br>")
            body.append(f'<p style="{style}">{text}</p>')
        else:
            body += [f'<p style="{style}">{e(line)}</p>' if style else f"<p>{e(line)}</p>"
                     for line in section.items() if line.strip()]

    font = DOCX_FONTS.get(content.language.short_code, MIXED_FONT)
    page = (
        "<!DOCTYPE html>\n"
        f'<html lang="{content.language.short_code}">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{e(content.title)}</title>\n</head>\n"
        f"<body style=\"font-family:'{font}',sans-serif;font-size:{content.font_size}pt;"
        "max-width:800px;margin:2em auto;line-height:1.5;\">\n"
        + "\n".join(body)
        + "\n</body>\n</html>\n"
    )
    return page.encode("utf-8")


def render_txt(content: ExportContent) -> bytes:
    lines = [content.title, "=" * len(content.title), ""]
    for section in content.sections:
        if section.heading:
            lines += [section.heading, "-" * len(section.heading)]
        if section.type == "list":
            lines += [f"• {item}" for item in section.items()]
        elif section.type == "changes":
            lines += [f"{i}. {c}" for i, c in enumerate(section.items(), start=1)]
        else:
            lines += section.items()
        lines.append("")
    return "\n".join(lines).rstrip("\n").encode("utf-8") + b"\n"


RENDERERS = {
    "docx": render_docx,
    "pdf": render_pdf,
    "html": render_html,
    "txt": render_txt,
}


# ─────────────────────────────────────────────────────────────────────────────
# RAW DATA (JSON / CSV)
# ─────────────────────────────────────────────────────────────────────────────

def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return "" if value is None else str(value)


def render_json(data: Any) -> bytes:
    return json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")


def render_csv(data: Any) -> bytes:
    """list[dict] → one row per dict (union of keys); dict → key,value rows; else one value column."""
    out = io.StringIO()
    if isinstance(data, list) and data and all(isinstance(row, dict) for row in data):
        fields: list[str] = []
        for row in data:
            fields += [k for k in row if k not in fields]
        writer = csv.DictWriter(out, fieldnames=fields)
        writer.writeheader()
        for row in data:
            writer.writerow({k: _cell(row.get(k)) for k in fields})
    elif isinstance(data, dict):
        writer = csv.writer(out)
        writer.writerow(["key", "value"])
        for key, value in data.items():
            writer.writerow([key, _cell(value)])
    else:
        writer = csv.writer(out)
        writer.writerow(["value"])
        for item in data if isinstance(data, list) else [data]:
            writer.writerow([_cell(item)])
    return out.getvalue().encode("utf-8")


# ─────────────────────────────────────────────────────────────────────────────
# CONTENT BUILDERS
# ─────────────────────────────────────────────────────────────────────────────

def _font_size(formatting: dict) -> int:
    try:
        size = int(formatting.get("fontSize", DEFAULT_FONT_SIZE))
    except (TypeError, ValueError):
        return DEFAULT_FONT_SIZE
    return max(8, min(32, size))


def document_content(req: DocumentExportInput, now: Optional[datetime] = None) -> ExportContent:
    content = ExportContent(
        title=req.title,
        language=req.language,
        sections=[ExportSection(content=req.text)],
        font_size=_font_size(req.formatting),
    )
    if req.include_metadata:
        stamp = (now or datetime.now(timezone.utc)).isoformat(timespec="seconds")
        items = [f"Language: {req.language.display_name}", f"Generated: {stamp}"]
        items += [f"{k}: {_cell(v)}" for k, v in req.metadata.items()]
        content.sections.append(ExportSection(content=items, type="metadata", heading="Document Information"))
    return content


def grammar_report_content(req: GrammarReportInput) -> ExportContent:
    sections = [
        ExportSection(heading="Original Text", content=req.original_text, type="original"),
        ExportSection(heading="Corrected Text", content=req.corrected_text, type="corrected"),
    ]
    if req.errors:
        sections.append(ExportSection(heading="Changes Made", content=req.errors, type="changes"))
    if req.include_explanations:
        analysis = [
            f"Language: {req.language.display_name}",
            f"Total changes: {len(req.errors)}",
        ]
        if req.confidence is not None:
            confidence = float(req.confidence)
            percent = confidence * 100 if confidence <= 1 else confidence
            analysis.append(f"Confidence: {round(clamp(percent, 0, 100))}%")
        sections.append(ExportSection(heading="Analysis", content=analysis, type="metadata"))
    if req.suggestions:
        sections.append(ExportSection(heading="Suggestions", content=req.suggestions, type="list"))
    return ExportContent(title="Grammar Analysis Report", language=req.language, sections=sections)


def data_content(req: DataExportInput) -> ExportContent:
    data = req.data
    if isinstance(data, dict):
        section = ExportSection(content=[f"{k}: {_cell(v)}" for k, v in data.items()], type="list")
    elif isinstance(data, list):
        section = ExportSection(content=[_cell(item) for item in data], type="list")
    else:
        section = ExportSection(content=str(data))
    return ExportContent(title=req.title, language=req.language, sections=[section])


# ─────────────────────────────────────────────────────────────────────────────
# SERVICE
# ─────────────────────────────────────────────────────────────────────────────

class ExportService:
    async def _render(self, content: ExportContent, fmt: str, filename_base: str) -> ExportArtifact:
        try:
            body = await asyncio.to_thread(RENDERERS[fmt], content)
        except Exception as e:
            logger.error(f"{fmt.upper()} render failed: {type(e).__name__}: {e}", exc_info=True)
            raise ServiceError(ErrorKind.INTERNAL_FAILURE, "Document export failed", detail=str(e)) from e

        artifact = ExportArtifact(
            content=body,
            filename=generate_filename(filename_base, fmt),
            media_type=MEDIA_TYPES[fmt],
        )
        logger.info(f"Export {fmt} '{artifact.filename}' {artifact.size}B")
        return artifact

    async def export_document(self, req: DocumentExportInput) -> ExportArtifact:
        return await self._render(document_content(req), req.format, req.title)

    async def export_grammar_report(self, req: GrammarReportInput) -> ExportArtifact:
        return await self._render(grammar_report_content(req), req.format, "grammar_report")

    async def export_data(self, req: DataExportInput) -> ExportArtifact:
        base = req.filename or req.title
        if req.format == "json":
            body = render_json(req.data)
        elif req.format == "csv":
            body = render_csv(req.data)
        else:
            return await self._render(data_content(req), req.format, base)

        artifact = ExportArtifact(
            content=body,
            filename=generate_filename(base, req.format),
            media_type=MEDIA_TYPES[req.format],
        )
        logger.info(f"Export {req.format} '{artifact.filename}' {artifact.size}B")
        return artifact


# Singleton
export_service = ExportService()
