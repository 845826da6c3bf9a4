"""
docmgr Document Content — structured content for template-generated
documents and its plain-text rendering.

Content shapes by file type:
    word        {"title", "body"}
    excel       {"title", "cells": {"cell_0": title, "cell_1": date, "cell_2": code}}
    powerpoint  {"title", "slides": [{"title", "content"}]}
    other       {"title", "body"}
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from docmgr.documents.types import Category, FileType


def display_date(value: Optional[date] = None) -> str:
    """US-style short date, e.g. ``3/7/2025``."""
    value = value or date.today()
    return f"{value.month}/{value.day}/{value.year}"


def default_body(document_type: str, title: str, recipient_info: Optional[Dict[str, Any]] = None) -> str:
    """Starter body used when no assist text is requested."""
    try:
        label = Category(document_type).label
    except ValueError:
        label = document_type.replace("_", " ").title()

    lines: List[str] = []
    block = recipient_block(recipient_info)
    if block:
        lines.extend([block, ""])
    lines.append(f"{label}: {title}")
    lines.append("")
    lines.append("[Content to be added]")
    return "\n".join(lines)


def recipient_block(recipient_info: Optional[Dict[str, Any]]) -> str:
    if not recipient_info:
        return ""
    parts = [
        str(recipient_info[key])
        for key in ("name", "title", "address")
        if recipient_info.get(key)
    ]
    return "\n".join(parts)


def build_initial_content(
    file_type: str,
    title: str,
    code: str,
    created: Optional[date] = None,
    body: Optional[str] = None,
) -> Dict[str, Any]:
    """Initial ``content`` payload for a new template document."""
    created_text = display_date(created)
    try:
        ft = FileType(file_type)
    except ValueError:
        ft = FileType.UNKNOWN

    if ft == FileType.EXCEL:
        return {
            "title": title,
            "cells": {
                "cell_0": title,
                "cell_1": created_text,
                "cell_2": code,
            },
        }
    if ft == FileType.POWERPOINT:
        return {
            "title": title,
            "slides": [
                {"title": title, "content": body or f"{code} | {created_text}"},
            ],
        }
    return {"title": title, "body": body or ""}


def _cell_index(key: str) -> int:
    try:
        return int(key.rsplit("_", 1)[-1])
    except ValueError:
        return 0


def content_lines(content: Optional[Dict[str, Any]]) -> List[str]:
    """Flatten any of the content shapes into printable lines."""
    if not content:
        return []
    lines: List[str] = []
    if content.get("body"):
        lines.extend(str(content["body"]).splitlines())
    cells = content.get("cells")
    if isinstance(cells, dict) and cells:
        for key in sorted(cells, key=_cell_index):
            lines.append(f"{key}: {cells[key]}")
    slides = content.get("slides")
    if isinstance(slides, list):
        for i, slide in enumerate(slides, start=1):
            if not isinstance(slide, dict):
                continue
            lines.append(f"Slide {i}: {slide.get('title', '')}")
            if slide.get("content"):
                lines.extend(str(slide["content"]).splitlines())
            lines.append("")
    return lines


def _category_heading(category: str) -> str:
    return category.upper().replace("_", " ")


def _when(value: Optional[datetime]) -> str:
    return display_date(value.date()) if value else display_date()


def render_text(document: Any, company_name: str) -> str:
    """
    Downloadable text for a template document: company header, metadata,
    the content lines, then a footer with the document code.
    """
    code = document.document_code or "N/A"
    lines = [
        company_name.upper(),
        "Document Management System",
        "",
        document.name,
        f"Document Code: {code}",
        f"Category: {_category_heading(document.category)}",
        f"Created: {_when(document.created_at)}",
    ]
    block = recipient_block(document.recipient_info)
    if block:
        lines.extend(["", "Recipient:", block])
    lines.extend(["", *content_lines(document.content), ""])
    lines.extend([
        "---",
        f"{company_name} - {_category_heading(document.category)}",
        f"Document Code: {code}",
        f"Generated: {display_date()}",
    ])
    return "\n".join(lines)


def render_pdf_text(document: Any, company_name: str) -> str:
    """Metadata plus the raw JSON content, as used by the text PDF renderer."""
    code = document.document_code or "N/A"
    content_json = json.dumps(document.content or {}, indent=2)
    return "\n".join([
        company_name.upper(),
        "Document Management System",
        "",
        document.name,
        f"Document Code: {code}",
        f"Category: {_category_heading(document.category)}",
        f"Created: {_when(document.created_at)}",
        "",
        "Content:",
        content_json,
        "",
        "---",
        f"{company_name} - {_category_heading(document.category)}",
        f"Document Code: {code}",
        f"Generated: {display_date()}",
    ])
