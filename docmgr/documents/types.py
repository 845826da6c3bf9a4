"""
docmgr vocabularies — roles, file types, categories, share permissions and
activity actions as closed ``str`` enums, plus the display/code tables that
hang off them.

The enums subclass ``str`` so they compare equal to, and serialize as, the
plain strings stored in the database and sent over the wire.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from docmgr.engine.config import DEFAULT_ALLOWED_MIME_TYPES

ALLOWED_MIME_TYPES: Tuple[str, ...] = tuple(DEFAULT_ALLOWED_MIME_TYPES)
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

TEMPLATE_PATH_PREFIX = "templates/"


class Role(str, Enum):
    USER = "user"
    SUPER_ADMIN = "super_admin"


class FileType(str, Enum):
    PDF = "pdf"
    WORD = "word"
    EXCEL = "excel"
    POWERPOINT = "powerpoint"
    UNKNOWN = "unknown"

    @property
    def extension(self) -> str:
        """Extension used when a template document is downloaded."""
        return _FILE_TYPE_EXTENSIONS.get(self, "txt")


_FILE_TYPE_EXTENSIONS = {
    FileType.WORD: "doc",
    FileType.EXCEL: "xls",
    FileType.POWERPOINT: "ppt",
    FileType.PDF: "pdf",
}


def classify_mime(mime_type: Optional[str]) -> FileType:
    """Map a MIME type to a FileType by substring match."""
    if not mime_type:
        return FileType.UNKNOWN
    mime = mime_type.lower()
    if "pdf" in mime:
        return FileType.PDF
    if "word" in mime:
        return FileType.WORD
    if "excel" in mime or "spreadsheet" in mime:
        return FileType.EXCEL
    if "powerpoint" in mime or "presentation" in mime:
        return FileType.POWERPOINT
    return FileType.UNKNOWN


class Category(str, Enum):
    """
    Document categories.

    Uploads are filed under the plural forms; template-generated documents
    carry the singular document type they were created from.
    """

    # Upload categories
    PRESS_RELEASES = "press_releases"
    MEMOS = "memos"
    INTERNAL_LETTERS = "internal_letters"
    EXTERNAL_LETTERS = "external_letters"
    CONTRACTS = "contracts"
    FOLLOW_UPS = "follow_ups"
    REPORTS = "reports"

    # Template document types
    PRESS_RELEASE = "press_release"
    MEMO = "memo"
    INTERNAL_LETTER = "internal_letter"
    EXTERNAL_LETTER = "external_letter"
    CONTRACT = "contract"
    FOLLOW_UP = "follow_up"
    REPORT = "report"

    @property
    def type_code(self) -> str:
        return TYPE_CODES[self]

    @property
    def label(self) -> str:
        return DISPLAY_LABELS[self]


TEMPLATE_TYPES = (
    Category.PRESS_RELEASE,
    Category.MEMO,
    Category.INTERNAL_LETTER,
    Category.EXTERNAL_LETTER,
    Category.CONTRACT,
    Category.FOLLOW_UP,
    Category.REPORT,
)

DEFAULT_UPLOAD_CATEGORY = Category.MEMOS

TYPE_CODES: Dict[Category, str] = {
    Category.PRESS_RELEASES: "PR",
    Category.PRESS_RELEASE: "PR",
    Category.MEMOS: "MEMO",
    Category.MEMO: "MEMO",
    Category.INTERNAL_LETTERS: "IL",
    Category.INTERNAL_LETTER: "IL",
    Category.EXTERNAL_LETTERS: "EL",
    Category.EXTERNAL_LETTER: "EL",
    Category.CONTRACTS: "CON",
    Category.CONTRACT: "CON",
    Category.FOLLOW_UPS: "FU",
    Category.FOLLOW_UP: "FU",
    Category.REPORTS: "RPT",
    Category.REPORT: "RPT",
}

DISPLAY_LABELS: Dict[Category, str] = {
    Category.PRESS_RELEASES: "Press Releases",
    Category.PRESS_RELEASE: "Press Release",
    Category.MEMOS: "Memos",
    Category.MEMO: "Memo",
    Category.INTERNAL_LETTERS: "Internal Letters",
    Category.INTERNAL_LETTER: "Internal Letter",
    Category.EXTERNAL_LETTERS: "External Letters",
    Category.EXTERNAL_LETTER: "External Letter",
    Category.CONTRACTS: "Contracts",
    Category.CONTRACT: "Contract",
    Category.FOLLOW_UPS: "Follow-ups",
    Category.FOLLOW_UP: "Follow-up",
    Category.REPORTS: "Reports",
    Category.REPORT: "Report",
}

# Dashboard counters: stats key -> categories counted under it
STATS_BUCKETS: Dict[str, Tuple[Category, ...]] = {
    "pressReleases": (Category.PRESS_RELEASES, Category.PRESS_RELEASE),
    "memos": (Category.MEMOS, Category.MEMO),
    "letters": (
        Category.INTERNAL_LETTERS, Category.EXTERNAL_LETTERS,
        Category.INTERNAL_LETTER, Category.EXTERNAL_LETTER,
    ),
    "contracts": (Category.CONTRACTS, Category.CONTRACT),
    "followups": (Category.FOLLOW_UPS, Category.FOLLOW_UP),
}


class SharePermission(str, Enum):
    VIEW = "view"
    EDIT = "edit"


class Action(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    UPLOAD = "upload"
    DOWNLOAD = "download"
    VIEW = "view"
    SHARE = "share"
    UNSHARE = "unshare"
    EDIT = "edit"
    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"
    CREATE = "create"
    ACCESS = "access"
    AI_GENERATE_TEMPLATE = "ai_generate_template"
    AI_RESEARCH = "ai_research"
    AI_IMPROVE_CONTENT = "ai_improve_content"
    CREATE_DOCUMENT = "create_document"
    EDIT_DOCUMENT = "edit_document"
    EXPORT_PDF = "export_pdf"
    UPDATE = "update"
    DOWNLOAD_PDF = "download_pdf"
    DELETE = "delete"


class ResourceType(str, Enum):
    DOCUMENT = "document"
    FOLDER = "folder"
    USER = "user"
    SYSTEM = "system"
