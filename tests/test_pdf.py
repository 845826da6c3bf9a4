"""Unit tests for docmgr.documents.pdf — PDF renderers."""

from datetime import datetime, timezone
from types import SimpleNamespace

from docmgr.documents.pdf import (
    ReportLabPDFRenderer,
    TextPDFRenderer,
    create_pdf_renderer,
)


def _doc(**overrides):
    values = dict(
        id="doc-1",
        name="Launch <Announcement> & Co",
        original_name="launch.pdf",
        file_size=2048,
        document_code="PR-2025-001",
        category="press_release",
        created_at=datetime(2025, 6, 1, tzinfo=timezone.utc),
        recipient_info={"name": "Press Desk"},
        content={"title": "Launch", "body": "FOR IMMEDIATE RELEASE\nDetails here."},
        is_template=True,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


class TestReportLabRenderer:

    def test_produces_pdf(self):
        data = ReportLabPDFRenderer("ZEOLF Technology").render(_doc())
        assert data.startswith(b"%PDF")
        assert data.rstrip().endswith(b"%%EOF")

    def test_uploaded_document_without_content(self):
        doc = _doc(content=None, is_template=False, recipient_info=None)
        assert ReportLabPDFRenderer().render(doc).startswith(b"%PDF")

    def test_missing_created_at(self):
        assert ReportLabPDFRenderer().render(_doc(created_at=None)).startswith(b"%PDF")


class TestTextRenderer:

    def test_text_bytes(self):
        data = TextPDFRenderer("ZEOLF Technology").render(_doc())
        text = data.decode("utf-8")
        assert text.startswith("ZEOLF TECHNOLOGY")
        assert "Document Code: PR-2025-001" in text


def test_factory():
    assert isinstance(create_pdf_renderer("text", "X"), TextPDFRenderer)
    assert isinstance(create_pdf_renderer("reportlab", "X"), ReportLabPDFRenderer)
