"""
docmgr PDF export — swappable renderers behind one interface.

    ReportLabPDFRenderer — real PDF via reportlab platypus (default)
    TextPDFRenderer      — UTF-8 text of the document served as PDF bytes;
                           kept for deployments that expect the legacy stub

Both take a document row and return bytes; callers serve them as
``application/pdf``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any, List
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, Preformatted, SimpleDocTemplate, Spacer

from docmgr.documents.content import content_lines, display_date, recipient_block, render_pdf_text

logger = logging.getLogger("docmgr.documents.pdf")


class PDFRenderer(ABC):
    """Turns a document into PDF bytes."""

    @abstractmethod
    def render(self, document: Any) -> bytes:
        ...


class TextPDFRenderer(PDFRenderer):
    def __init__(self, company_name: str = "ZEOLF Technology"):
        self._company = company_name

    def render(self, document: Any) -> bytes:
        return render_pdf_text(document, self._company).encode("utf-8")


class ReportLabPDFRenderer(PDFRenderer):
    """Single-flow A4 document: header, metadata, recipient, content, footer."""

    def __init__(self, company_name: str = "ZEOLF Technology"):
        self._company = company_name
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self) -> None:
        self.styles.add(ParagraphStyle(
            name="CompanyHeader",
            parent=self.styles["Title"],
            fontSize=20,
            textColor=HexColor("#1a1a1a"),
            spaceAfter=4,
            alignment=TA_CENTER,
            fontName="Helvetica-Bold",
        ))
        self.styles.add(ParagraphStyle(
            name="CompanySubtitle",
            parent=self.styles["Normal"],
            fontSize=11,
            textColor=HexColor("#4a4a4a"),
            spaceAfter=18,
            alignment=TA_CENTER,
        ))
        self.styles.add(ParagraphStyle(
            name="Meta",
            parent=self.styles["Normal"],
            fontSize=9,
            textColor=HexColor("#4a4a4a"),
            spaceAfter=2,
        ))
        self.styles.add(ParagraphStyle(
            name="Footer",
            parent=self.styles["Normal"],
            fontSize=8,
            textColor=HexColor("#808080"),
            alignment=TA_CENTER,
            spaceBefore=24,
        ))

    def _story(self, document: Any) -> List[Any]:
        code = document.document_code or "N/A"
        category = (document.category or "").upper().replace("_", " ")
        created = display_date(document.created_at.date()) if document.created_at else display_date()

        story: List[Any] = [
            Paragraph(escape(self._company.upper()), self.styles["CompanyHeader"]),
            Paragraph("Document Management System", self.styles["CompanySubtitle"]),
            Paragraph(escape(document.name), self.styles["Heading1"]),
            Paragraph(f"<b>Document Code:</b> {escape(code)}", self.styles["Meta"]),
            Paragraph(f"<b>Category:</b> {escape(category)}", self.styles["Meta"]),
            Paragraph(f"<b>Created:</b> {created}", self.styles["Meta"]),
            Spacer(1, 12),
        ]

        block = recipient_block(document.recipient_info)
        if block:
            story.append(Paragraph("Recipient", self.styles["Heading3"]))
            story.append(Preformatted(block, self.styles["BodyText"]))
            story.append(Spacer(1, 12))

        lines = content_lines(document.content)
        if lines:
            story.append(Preformatted("\n".join(lines), self.styles["BodyText"]))
        elif not document.is_template:
            story.append(Paragraph(
                f"Uploaded file: {escape(document.original_name)} ({document.file_size} bytes)",
                self.styles["BodyText"],
            ))

        story.append(Paragraph(
            f"{escape(self._company)} - {escape(category)} | Document Code: {escape(code)} "
            f"| Generated: {display_date()}",
            self.styles["Footer"],
        ))
        return story

    def render(self, document: Any) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=72,
            leftMargin=72,
            topMargin=72,
            bottomMargin=72,
            title=document.name,
            author=self._company,
        )
        doc.build(self._story(document))
        data = buffer.getvalue()
        logger.debug(f"Rendered PDF for document {document.id} ({len(data)} bytes)")
        return data


def create_pdf_renderer(kind: str, company_name: str) -> PDFRenderer:
    if kind == "text":
        return TextPDFRenderer(company_name)
    return ReportLabPDFRenderer(company_name)
