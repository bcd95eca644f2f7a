"""
tests/test_export.py
pytest tests for export filenames, content builders and renderers.
"""

import asyncio
import csv
import io
import json
import re
from datetime import datetime, timezone

import pytest
from docx import Document

from bhasha.core.errors import ErrorKind, ServiceError
from bhasha.core.languages import resolve
from bhasha.core.validators import (
    validate_export_data,
    validate_export_document,
    validate_export_grammar_report,
)
from bhasha.services import export_service as exporter
from bhasha.services.export_service import (
    ExportContent,
    ExportSection,
    document_content,
    generate_filename,
    grammar_report_content,
    render_csv,
    render_docx,
    render_html,
    render_json,
    render_pdf,
    render_txt,
    slugify,
)

NOW = datetime(2024, 3, 5, 14, 7, 9, 123456, tzinfo=timezone.utc)


@pytest.mark.parametrize("title,slug", [
    ("My Notes", "my_notes"),
    ("  Grammar -- Report!! ", "grammar_report"),
    ("हिंदी", "document"),
    ("", "document"),
])
def test_slugify(title, slug):
    assert slugify(title) == slug


def test_generate_filename_shape():
    name = generate_filename("My Notes", "pdf", now=NOW)
    assert re.fullmatch(r"my_notes_20240305T140709123456Z_[0-9a-f]{6}\.pdf", name)


def test_filenames_unique_within_same_instant():
    names = {generate_filename("x", "txt", now=NOW) for _ in range(50)}
    assert len(names) > 1


def report(**kwargs):
    fields = dict(
        original_text="This are wrong.",
        corrected_text="This is wrong.",
        errors=["Changed 'are' to 'is'"],
        suggestions=["Use a stronger verb"],
        confidence=0.87,
    )
    fields.update(kwargs)
    return validate_export_grammar_report(**fields).unwrap()


def test_grammar_report_sections():
    content = grammar_report_content(report())
    assert [s.heading for s in content.sections] == [
        "Original Text", "Corrected Text", "Changes Made", "Analysis", "Suggestions",
    ]
    assert "Confidence: 87%" in content.sections[3].items()


def test_grammar_report_without_explanations():
    content = grammar_report_content(report(include_explanations=False, errors=[], suggestions=[]))
    assert [s.heading for s in content.sections] == ["Original Text", "Corrected Text"]


def test_document_metadata_section():
    req = validate_export_document("txt", "Body", include_metadata=True, metadata={"author": "Asha"}).unwrap()
    content = document_content(req, now=NOW)
    assert content.sections[-1].heading == "Document Information"
    assert "author: Asha" in content.sections[-1].items()


def sample_content(language="en") -> ExportContent:
    return ExportContent(
        title="Sample <Report>",
        language=resolve(language),
        sections=[
            ExportSection(content="First line\nSecond & last"),
            ExportSection(content=["one", "two"], type="changes", heading="Changes Made"),
            ExportSection(content=["tip"], type="list", heading="Suggestions"),
        ],
    )


def test_render_txt():
    text = render_txt(sample_content()).decode("utf-8")
    assert text.startswith("Sample <Report>\n===============")
    assert "1. one\n2. two" in text
    assert "• tip" in text


def test_render_html_escapes():
    page = render_html(sample_content("hi")).decode("utf-8")
    assert "<title>Sample &lt;Report&gt;</title>" in page
    assert "Second &amp; last" in page
    assert 'lang="hi"' in page
    assert "Noto Sans Devanagari" in page


def test_render_docx_contains_text():
    doc = Document(io.BytesIO(render_docx(sample_content("pa"))))
    texts = [p.text for p in doc.paragraphs]
    assert "Sample <Report>" in texts
    assert "Second & last" in texts


def test_control_characters_are_made_xml_safe():
    content = ExportContent(
        title="Notes\x01",
        language=resolve("en"),
        sections=[ExportSection(content="Line one\x0bline two\x00", heading="Pasted\x1f")],
    )
    assert content.title == "Notes"
    assert content.sections[0].items() == ["Line one", "line two"]
    assert content.sections[0].heading == "Pasted"

    texts = [p.text for p in Document(io.BytesIO(render_docx(content))).paragraphs]
    assert "Line one" in texts and "line two" in texts
    assert render_pdf(content).startswith(b"%PDF")


@pytest.mark.parametrize("language", ["en", "hi", "pa"])
def test_render_pdf_produces_pdf(language):
    body = render_pdf(sample_content(language))
    assert body.startswith(b"%PDF")


def test_render_json_keeps_unicode():
    assert json.loads(render_json({"word": "ਪੰਜਾਬੀ"})) == {"word": "ਪੰਜਾਬੀ"}
    assert "ਪੰਜਾਬੀ".encode("utf-8") in render_json({"word": "ਪੰਜਾਬੀ"})


def test_render_csv_rows_union_of_keys():
    rows = list(csv.reader(io.StringIO(render_csv([{"a": 1}, {"b": [1, 2]}]).decode("utf-8"))))
    assert rows == [["a", "b"], ["1", ""], ["", "[1, 2]"]]


def test_render_csv_mapping_and_scalars():
    assert render_csv({"k": "v"}).decode("utf-8").splitlines() == ["key,value", "k,v"]
    assert render_csv("solo").decode("utf-8").splitlines() == ["value", "solo"]


def test_export_data_json_is_direct():
    req = validate_export_data([{"score": 90}], "json", filename="My Results").unwrap()
    artifact = asyncio.run(exporter.export_service.export_data(req))
    assert artifact.media_type == "application/json"
    assert artifact.filename.startswith("my_results_")
    assert json.loads(artifact.content) == [{"score": 90}]


def test_export_data_docx_goes_through_renderer():
    req = validate_export_data({"score": 90}, "docx", title="Scores").unwrap()
    artifact = asyncio.run(exporter.export_service.export_data(req))
    assert artifact.filename.endswith(".docx")
    assert artifact.content[:2] == b"PK"


def test_renderer_failure_is_internal(monkeypatch):
    def broken(content):
        raise ValueError("layout overflow")

    monkeypatch.setitem(exporter.RENDERERS, "txt", broken)
    req = validate_export_document("txt", "Body").unwrap()
    with pytest.raises(ServiceError) as exc:
        asyncio.run(exporter.export_service.export_document(req))
    assert exc.value.kind == ErrorKind.INTERNAL_FAILURE
    assert exc.value.detail == "layout overflow"
