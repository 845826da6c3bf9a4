"""
docmgr Document Registry — upload, replace, template creation, download,
PDF export, sharing and dashboard stats.

Handles:
- Upload boundary checks (MIME allow-list, size limit)
- Document codes ``<TYPE>-<year>-<NNN>`` reserved atomically per (type code, year)
- Replace-in-place that keeps id, code, folder and shares
- Template documents whose bytes are synthesized on download
- Shares (recorded, not enforced on access)

Physical storage is delegated to FileStorage; PDF bytes to a PDFRenderer.
Callers record activity; this service only logs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from docmgr.db.models import Document, DocumentSequence, DocumentShare, Folder, User
from docmgr.db.session import session_scope
from docmgr.documents.content import build_initial_content, default_body, render_text
from docmgr.documents.pdf import PDFRenderer, ReportLabPDFRenderer
from docmgr.documents.storage import FileStorage, is_template_path, template_path
from docmgr.documents.types import (
    ALLOWED_MIME_TYPES,
    DEFAULT_UPLOAD_CATEGORY,
    STATS_BUCKETS,
    TEMPLATE_TYPES,
    TYPE_CODES,
    Category,
    FileType,
    SharePermission,
    classify_mime,
)
from docmgr.engine.errors import InternalError, NotFound, ValidationError

logger = logging.getLogger("docmgr.documents.service")

INVALID_TYPE_MESSAGE = "Invalid file type. Only PDF, Word, Excel, and PowerPoint files are allowed."
NO_FILE_MESSAGE = "No file uploaded"

SEQUENCE_RETRIES = 3


def _coerce_category(value: Optional[str], allowed: Iterable[Category] = tuple(Category)) -> Category:
    try:
        category = Category(value)
    except ValueError:
        category = None
    if category is None or category not in allowed:
        raise ValidationError(
            f"Invalid category '{value}'",
            validation_errors=[{"field": "category", "allowed": [c.value for c in allowed]}],
        )
    return category


def _year_bounds(year: int) -> Tuple[datetime, datetime]:
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


class DocumentService:
    """
    Document registry over the ``documents`` table and the uploads directory.

    Every public method opens and commits its own DB session.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        storage: FileStorage,
        pdf_renderer: Optional[PDFRenderer] = None,
        company_name: str = "ZEOLF Technology",
        allowed_mime_types: Iterable[str] = ALLOWED_MIME_TYPES,
        max_upload_bytes: int = 50 * 1024 * 1024,
    ):
        self._session_factory = session_factory
        self._storage = storage
        self._pdf = pdf_renderer or ReportLabPDFRenderer(company_name)
        self._company = company_name
        self._allowed_mime_types = tuple(allowed_mime_types)
        self._max_upload_bytes = max_upload_bytes

    @property
    def company_name(self) -> str:
        return self._company

    # -------------------------------------------------------------------
    # Upload boundary
    # -------------------------------------------------------------------

    def validate_upload(
        self,
        file_name: Optional[str],
        mime_type: Optional[str],
        file_size: Optional[int] = None,
    ) -> None:
        """
        Reject a missing file, a MIME type outside the allow-list, or an
        oversized declared size.

        Raises ValidationError with the client-facing message.
        """
        if not file_name:
            raise ValidationError(NO_FILE_MESSAGE)
        if mime_type not in self._allowed_mime_types:
            raise ValidationError(INVALID_TYPE_MESSAGE, file_name=file_name, mime_type=mime_type)
        if file_size is not None and file_size > self._max_upload_bytes:
            raise ValidationError(
                f"File too large. Maximum size is {self._max_upload_bytes // (1024 * 1024)}MB.",
                file_name=file_name,
            )

    # -------------------------------------------------------------------
    # Document codes
    # -------------------------------------------------------------------

    def _reserve_sequence(self, session, code: str, year: int) -> int:
        bumped = session.execute(
            update(DocumentSequence)
            .where(DocumentSequence.type_code == code, DocumentSequence.year == year)
            .values(next_seq=DocumentSequence.next_seq + 1)
        ).rowcount
        if bumped:
            next_seq = (
                session.query(DocumentSequence.next_seq)
                .filter_by(type_code=code, year=year)
                .scalar()
            )
            return next_seq - 1

        # First code of the year for this type: seed from documents already filed
        categories = [c.value for c, c_code in TYPE_CODES.items() if c_code == code]
        start, end = _year_bounds(year)
        existing = (
            session.query(func.count(Document.id))
            .filter(
                Document.category.in_(categories),
                Document.created_at >= start,
                Document.created_at < end,
            )
            .scalar()
        ) or 0
        seq = existing + 1
        session.add(DocumentSequence(type_code=code, year=year, next_seq=seq + 1))
        session.flush()
        return seq

    def compute_next_code(self, category: str, year: Optional[int] = None) -> str:
        """
        Reserve and return the next ``<TYPE>-<year>-<NNN>`` code.

        The reservation commits on its own, so a failed insert afterwards
        leaves a gap rather than a duplicate.
        """
        cat = _coerce_category(category)
        code = TYPE_CODES[cat]
        year = year or datetime.now(timezone.utc).year

        for attempt in range(SEQUENCE_RETRIES):
            try:
                with session_scope(self._session_factory) as session:
                    seq = self._reserve_sequence(session, code, year)
                return f"{code}-{year}-{seq:03d}"
            except IntegrityError:
                # Another writer seeded the counter first; bump it instead
                logger.warning(f"Sequence seed race for {code}/{year} (attempt {attempt + 1})")
        raise InternalError(f"Could not reserve a document code for {code}-{year}")

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def get(self, document_id: str) -> Optional[Document]:
        with session_scope(self._session_factory) as session:
            return session.get(Document, document_id)

    def require(self, document_id: str) -> Document:
        document = self.get(document_id)
        if document is None:
            raise NotFound("Document not found", resource_type="document", resource_id=document_id)
        return document

    def list_all(self, category: Optional[str] = None, search: Optional[str] = None) -> List[Document]:
        """
        All documents, newest ``updated_at`` first. ``search`` is a
        case-insensitive substring of name or original name; ``category``
        is an exact match.
        """
        with session_scope(self._session_factory) as session:
            q = session.query(Document)
            if category:
                q = q.filter(Document.category == category)
            if search:
                pattern = f"%{search.lower()}%"
                q = q.filter(or_(
                    func.lower(Document.name).like(pattern),
                    func.lower(Document.original_name).like(pattern),
                ))
            return q.order_by(Document.updated_at.desc()).all()

    # -------------------------------------------------------------------
    # Upload / replace
    # -------------------------------------------------------------------

    def _require_folder(self, session, folder_id: Optional[str]) -> None:
        if folder_id and session.get(Folder, folder_id) is None:
            raise NotFound("Folder not found", resource_type="folder", resource_id=folder_id)

    def upload(
        self,
        file_data: BinaryIO,
        original_name: str,
        mime_type: str,
        uploaded_by: str,
        category: Optional[str] = None,
        folder_id: Optional[str] = None,
        custom_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Document:
        """
        Store an uploaded file and register it.

        1. Validate MIME type, category and folder
        2. Reserve the document code
        3. Stream the file to disk (size enforced while writing)
        4. Insert the row; the file is removed again if the insert fails
        """
        self.validate_upload(original_name, mime_type)
        cat = _coerce_category(category or DEFAULT_UPLOAD_CATEGORY.value)
        with session_scope(self._session_factory) as session:
            self._require_folder(session, folder_id)

        document_code = self.compute_next_code(cat.value)
        file_path, file_size = self._storage.save(file_data, original_name)

        try:
            with session_scope(self._session_factory) as session:
                document = Document(
                    name=custom_name or original_name,
                    original_name=original_name,
                    description=description,
                    category=cat.value,
                    file_type=classify_mime(mime_type).value,
                    file_size=file_size,
                    file_path=file_path,
                    folder_id=folder_id or None,
                    uploaded_by=uploaded_by,
                    doc_metadata={
                        "mimetype": mime_type,
                        "uploadedAt": datetime.now(timezone.utc).isoformat(),
                    },
                    document_code=document_code,
                    is_template=False,
                )
                session.add(document)
                session.flush()
        except Exception:
            self._storage.delete(file_path)
            raise

        logger.info(
            f"Uploaded document {document.id} ({document_code}) '{document.name}' "
            f"[{document.file_type}, {file_size} bytes] by {uploaded_by}"
        )
        return document

    def update_file(
        self,
        document_id: str,
        file_data: BinaryIO,
        original_name: str,
        mime_type: str,
        category: Optional[str] = None,
    ) -> Tuple[Document, Dict[str, Any]]:
        """
        Replace a document's file, keeping id, code, folder and shares.

        The new file is written first and the row swapped in one transaction.
        The previous file is then deleted best-effort.

        Returns:
            (updated document, {"previousName", "previousSize"})
        """
        self.validate_upload(original_name, mime_type)
        cat = _coerce_category(category) if category else None
        self.require(document_id)

        new_path, new_size = self._storage.save(file_data, original_name)
        try:
            with session_scope(self._session_factory) as session:
                document = session.get(Document, document_id)
                if document is None:
                    raise NotFound("Document not found", resource_type="document", resource_id=document_id)
                old_path = document.file_path
                previous = {"previousName": document.original_name, "previousSize": document.file_size}

                document.file_path = new_path
                document.file_size = new_size
                document.file_type = classify_mime(mime_type).value
                document.original_name = original_name
                document.updated_at = datetime.now(timezone.utc)
                if cat is not None:
                    document.category = cat.value
                if is_template_path(old_path):
                    # A real file now backs the document; drop the synthesized body
                    document.is_template = False
                    document.content = None
                metadata = dict(document.doc_metadata or {})
                metadata.update({
                    "mimetype": mime_type,
                    "replacedAt": document.updated_at.isoformat(),
                })
                document.doc_metadata = metadata
                session.flush()
        except Exception:
            self._storage.delete(new_path)
            raise

        if old_path and old_path != new_path and not is_template_path(old_path):
            if not self._storage.delete(old_path):
                logger.warning(f"Previous file for document {document_id} not removed: {old_path}")

        logger.info(f"Replaced file of document {document_id} with '{original_name}' ({new_size} bytes)")
        return document, previous

    def update_content(self, document_id: str, content: Dict[str, Any]) -> Document:
        if not isinstance(content, dict):
            raise ValidationError("Content must be an object", validation_errors=[{"field": "content"}])
        with session_scope(self._session_factory) as session:
            document = session.get(Document, document_id)
            if document is None:
                raise NotFound("Document not found", resource_type="document", resource_id=document_id)
            document.content = content
            document.updated_at = datetime.now(timezone.utc)
            session.flush()
            logger.info(f"Updated content of document {document_id}")
            return document

    # -------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------

    def create_from_template(
        self,
        created_by: str,
        document_type: str,
        title: str,
        file_type: str,
        recipient_info: Optional[Dict[str, Any]] = None,
        is_internal: Optional[bool] = None,
        folder_id: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Document:
        """
        Create a document with no bytes on disk. ``file_path`` becomes the
        ``templates/<code>`` sentinel and ``content`` the initial structure.
        """
        cat = _coerce_category(document_type, TEMPLATE_TYPES)
        if not title or not title.strip():
            raise ValidationError("Title is required", validation_errors=[{"field": "title"}])
        try:
            ft = FileType(file_type)
        except ValueError:
            raise ValidationError(
                f"Invalid file type '{file_type}'",
                validation_errors=[{"field": "fileType", "allowed": [f.value for f in FileType]}],
            )
        title = title.strip()
        recipient = {k: v for k, v in (recipient_info or {}).items() if v} or None

        with session_scope(self._session_factory) as session:
            self._require_folder(session, folder_id)

        document_code = self.compute_next_code(cat.value)
        content = build_initial_content(
            ft.value, title, document_code,
            body=body if body is not None else default_body(cat.value, title, recipient),
        )

        with session_scope(self._session_factory) as session:
            document = Document(
                name=title,
                original_name=f"{title}.{ft.extension}",
                category=cat.value,
                file_type=ft.value,
                file_size=0,
                file_path=template_path(document_code),
                folder_id=folder_id or None,
                uploaded_by=created_by,
                doc_metadata={
                    "createdFrom": "template",
                    "documentType": cat.value,
                    "isInternal": bool(is_internal) if is_internal is not None else cat == Category.INTERNAL_LETTER,
                },
                document_code=document_code,
                is_template=True,
                content=content,
                recipient_info=recipient,
            )
            session.add(document)
            session.flush()

        logger.info(f"Created template document {document.id} ({document_code}) '{title}'")
        return document

    # -------------------------------------------------------------------
    # Download / export
    # -------------------------------------------------------------------

    def download(self, document_id: str) -> Tuple[bytes, str, str]:
        """
        Returns:
            (bytes, filename, media type)

        Raises:
            NotFound for a missing document, or a real document whose file is gone.
        """
        document = self.require(document_id)
        if is_template_path(document.file_path):
            text = render_text(document, self._company)
            try:
                ext = FileType(document.file_type).extension
            except ValueError:
                ext = "txt"
            return text.encode("utf-8"), f"{document.name}.{ext}", "text/plain; charset=utf-8"

        if not self._storage.exists(document.file_path):
            logger.error(f"File for document {document_id} missing on disk: {document.file_path}")
            raise NotFound("File not found", resource_type="document", resource_id=document_id)

        media_type = (document.doc_metadata or {}).get("mimetype") or "application/octet-stream"
        return self._storage.read(document.file_path), document.original_name, media_type

    def render_pdf(self, document_id: str) -> Tuple[bytes, str]:
        """Returns (PDF bytes, ``<name>.pdf``)."""
        document = self.require(document_id)
        return self._pdf.render(document), f"{document.name}.pdf"

    def delete(self, document_id: str) -> bool:
        """Remove the row and its shares, then the backing file best-effort."""
        with session_scope(self._session_factory) as session:
            document = session.get(Document, document_id)
            if document is None:
                return False
            file_path = document.file_path
            session.query(DocumentShare).filter_by(document_id=document_id).delete(
                synchronize_session=False
            )
            session.delete(document)
        self._storage.delete(file_path)
        logger.info(f"Deleted document {document_id}")
        return True

    # -------------------------------------------------------------------
    # Shares
    # -------------------------------------------------------------------

    def share(
        self,
        document_id: str,
        shared_by: str,
        shared_with: str,
        permission: Optional[str] = None,
    ) -> DocumentShare:
        try:
            perm = SharePermission(permission or SharePermission.VIEW.value)
        except ValueError:
            raise ValidationError(
                f"Invalid permission '{permission}'",
                validation_errors=[{"field": "permission", "allowed": [p.value for p in SharePermission]}],
            )
        if not shared_with:
            raise ValidationError("sharedWith is required", validation_errors=[{"field": "sharedWith"}])

        with session_scope(self._session_factory) as session:
            if session.get(Document, document_id) is None:
                raise NotFound("Document not found", resource_type="document", resource_id=document_id)
            if session.get(User, shared_with) is None:
                raise NotFound("User not found", resource_type="user", resource_id=shared_with)
            share = DocumentShare(
                document_id=document_id,
                shared_by=shared_by,
                shared_with=shared_with,
                permission=perm.value,
            )
            session.add(share)
            session.flush()
            logger.info(f"Document {document_id} shared with {shared_with} ({perm.value})")
            return share

    def list_shares(self, document_id: str) -> List[DocumentShare]:
        with session_scope(self._session_factory) as session:
            return (
                session.query(DocumentShare)
                .filter_by(document_id=document_id)
                .order_by(DocumentShare.created_at.desc())
                .all()
            )

    def remove_share(self, share_id: str) -> DocumentShare:
        with session_scope(self._session_factory) as session:
            share = session.get(DocumentShare, share_id)
            if share is None:
                raise NotFound("Share not found", resource_type="share", resource_id=share_id)
            session.delete(share)
            return share

    def shared_with(self, user_id: str) -> List[Document]:
        """Documents shared with the user, newest share first."""
        with session_scope(self._session_factory) as session:
            return (
                session.query(Document)
                .join(DocumentShare, DocumentShare.document_id == Document.id)
                .filter(DocumentShare.shared_with == user_id)
                .order_by(DocumentShare.created_at.desc())
                .all()
            )

    # -------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------

    def stats(self) -> Dict[str, int]:
        with session_scope(self._session_factory) as session:
            rows = (
                session.query(Document.category, func.count(Document.id))
                .group_by(Document.category)
                .all()
            )
        by_category = {category: count for category, count in rows}
        result = {
            key: sum(by_category.get(c.value, 0) for c in categories)
            for key, categories in STATS_BUCKETS.items()
        }
        result["total"] = sum(by_category.values())
        return result
