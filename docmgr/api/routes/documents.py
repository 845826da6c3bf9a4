"""
Document routes: upload, list/search, get, download, PDF export, replace,
content edits, template creation, shares, stats and delete.

Static paths (``/stats``, ``/shared/with-me``, ``/create``) are declared
before ``/{document_id}`` so they are not captured by it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from starlette.concurrency import run_in_threadpool

from docmgr.api.deps import (
    current_user,
    ensure_document_unlocked,
    ensure_folder_unlocked,
    folder_unlocked,
    get_runtime,
    record_activity,
    session_token,
)
from docmgr.api.schemas import (
    ContentUpdateRequest,
    CreateDocumentRequest,
    DocumentOut,
    LockedDocumentOut,
    ShareOut,
    ShareRequest,
    StatsOut,
    SuccessOut,
    dump_all,
)
from docmgr.db.models import Document, User
from docmgr.documents.service import NO_FILE_MESSAGE
from docmgr.documents.types import Action, ResourceType, Role
from docmgr.engine.errors import AuthorizationDenied, ValidationError
from docmgr.engine.runtime import DocMgrRuntime

logger = logging.getLogger("docmgr.api.routes.documents")

router = APIRouter(prefix="/api/documents", tags=["documents"])

PDF_MEDIA_TYPE = "application/pdf"


def content_disposition(filename: str) -> str:
    """``attachment`` header with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def _attachment(data: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(filename)},
    )


def _visible(request: Request, runtime: DocMgrRuntime, documents: List[Document]) -> List[Dict[str, Any]]:
    """Serialize documents, replacing those in still-locked folders with a sentinel."""
    token = session_token(request)
    unlocked_cache: Dict[str, bool] = {}
    out: List[Dict[str, Any]] = []
    for doc in documents:
        if doc.folder_id:
            if doc.folder_id not in unlocked_cache:
                unlocked_cache[doc.folder_id] = folder_unlocked(runtime, token, doc.folder_id)
            if not unlocked_cache[doc.folder_id]:
                out.append(LockedDocumentOut(id=doc.id, folder_id=doc.folder_id).dump())
                continue
        out.append(DocumentOut.from_row(doc).dump())
    return out


def _accessible_document(request: Request, runtime: DocMgrRuntime, document_id: str) -> Document:
    document = runtime.documents.require(document_id)
    ensure_document_unlocked(request, runtime, document)
    return document


# ---------------------------------------------------------------------------
# Upload / list
# ---------------------------------------------------------------------------

@router.post("/upload", status_code=201)
def upload_document(
    request: Request,
    file: Optional[UploadFile] = File(None),
    category: Optional[str] = Form(None),
    folder_id: Optional[str] = Form(None, alias="folderId"),
    description: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    if file is None or not file.filename:
        raise ValidationError(NO_FILE_MESSAGE)
    runtime.documents.validate_upload(file.filename, file.content_type, file.size)
    if folder_id:
        ensure_folder_unlocked(request, runtime, folder_id)

    document = runtime.documents.upload(
        file.file,
        file.filename,
        file.content_type,
        uploaded_by=user.id,
        category=category,
        folder_id=folder_id,
        custom_name=name,
        description=description,
    )
    record_activity(
        request, runtime, user, Action.UPLOAD, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={
            "documentName": document.name,
            "fileSize": document.file_size,
            "category": document.category,
        },
    )
    return DocumentOut.from_row(document).dump()


@router.get("")
def list_documents(
    request: Request,
    category: Optional[str] = None,
    search: Optional[str] = None,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    documents = runtime.documents.list_all(category=category, search=search)
    record_activity(
        request, runtime, user, Action.VIEW, ResourceType.DOCUMENT,
        details={"category": category, "search": search},
    )
    return _visible(request, runtime, documents)


@router.get("/stats")
def document_stats(
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    return StatsOut(**runtime.documents.stats()).dump()


@router.get("/shared/with-me")
def shared_with_me(
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    return _visible(request, runtime, runtime.documents.shared_with(user.id))


@router.post("/create", status_code=201)
async def create_document(
    body: CreateDocumentRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    # Only the assist call is awaited; database work runs in the threadpool
    if body.folder_id:
        await run_in_threadpool(ensure_folder_unlocked, request, runtime, body.folder_id)

    recipient = body.recipient_info()
    draft = None
    if body.use_assist:
        draft = await runtime.assist.generate_template(
            body.document_type, body.title, body.file_type,
            recipient_info=recipient, is_internal=body.is_internal,
        )

    document = await run_in_threadpool(
        runtime.documents.create_from_template,
        user.id,
        body.document_type,
        body.title,
        body.file_type,
        recipient_info=recipient,
        is_internal=body.is_internal,
        folder_id=body.folder_id,
        body=draft,
    )
    await run_in_threadpool(
        record_activity,
        request, runtime, user, Action.CREATE_DOCUMENT, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={
            "documentName": document.name,
            "documentType": document.category,
            "fileType": document.file_type,
            "documentCode": document.document_code,
            "assisted": body.use_assist,
        },
    )
    return DocumentOut.from_row(document).dump()


@router.delete("/shares/{share_id}")
def remove_share(
    share_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    share = runtime.documents.remove_share(share_id)
    record_activity(
        request, runtime, user, Action.UNSHARE, ResourceType.DOCUMENT,
        resource_id=share.document_id,
        details={"shareId": share.id, "sharedWith": share.shared_with},
    )
    return SuccessOut().dump()


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

@router.get("/{document_id}")
def get_document(
    document_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    document = _accessible_document(request, runtime, document_id)
    record_activity(
        request, runtime, user, Action.VIEW, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={"documentName": document.name},
    )
    return DocumentOut.from_row(document).dump()


@router.get("/{document_id}/download")
def download_document(
    document_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    document = _accessible_document(request, runtime, document_id)
    data, filename, media_type = runtime.documents.download(document.id)
    record_activity(
        request, runtime, user, Action.DOWNLOAD, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={"documentName": document.name, "fileSize": len(data)},
    )
    return _attachment(data, filename, media_type)


@router.get("/{document_id}/download/pdf")
def download_pdf(
    document_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    document = _accessible_document(request, runtime, document_id)
    data, filename = runtime.documents.render_pdf(document.id)
    record_activity(
        request, runtime, user, Action.DOWNLOAD_PDF, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={"documentName": document.name, "documentCode": document.document_code},
    )
    return _attachment(data, filename, PDF_MEDIA_TYPE)


@router.post("/{document_id}/export-pdf")
def export_pdf(
    document_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    document = _accessible_document(request, runtime, document_id)
    data, filename = runtime.documents.render_pdf(document.id)
    record_activity(
        request, runtime, user, Action.EXPORT_PDF, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={"documentName": document.name, "documentCode": document.document_code},
    )
    return _attachment(data, filename, PDF_MEDIA_TYPE)


@router.put("/{document_id}/update")
def update_document_file(
    document_id: str,
    request: Request,
    file: Optional[UploadFile] = File(None),
    category: Optional[str] = Form(None),
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    if file is None or not file.filename:
        raise ValidationError(NO_FILE_MESSAGE)
    runtime.documents.validate_upload(file.filename, file.content_type, file.size)
    _accessible_document(request, runtime, document_id)

    document, previous = runtime.documents.update_file(
        document_id, file.file, file.filename, file.content_type, category=category,
    )
    record_activity(
        request, runtime, user, Action.UPDATE, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={
            "documentName": document.name,
            "documentCode": document.document_code,
            "newFileName": document.original_name,
            "fileSize": document.file_size,
            **previous,
        },
    )
    return DocumentOut.from_row(document).dump()


@router.put("/{document_id}/content")
def update_document_content(
    document_id: str,
    body: ContentUpdateRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    _accessible_document(request, runtime, document_id)
    document = runtime.documents.update_content(document_id, body.content)
    record_activity(
        request, runtime, user, Action.EDIT_DOCUMENT, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={"documentName": document.name, "documentCode": document.document_code},
    )
    return DocumentOut.from_row(document).dump()


@router.post("/{document_id}/share", status_code=201)
def share_document(
    document_id: str,
    body: ShareRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    document = _accessible_document(request, runtime, document_id)
    share = runtime.documents.share(document.id, user.id, body.shared_with, body.permission)
    record_activity(
        request, runtime, user, Action.SHARE, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={
            "documentName": document.name,
            "sharedWith": share.shared_with,
            "permission": share.permission,
        },
    )
    return ShareOut.from_row(share).dump()


@router.get("/{document_id}/shares")
def list_shares(
    document_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    document = _accessible_document(request, runtime, document_id)
    return dump_all([ShareOut.from_row(s) for s in runtime.documents.list_shares(document.id)])


@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    document = _accessible_document(request, runtime, document_id)
    if document.uploaded_by != user.id and user.role != Role.SUPER_ADMIN.value:
        raise AuthorizationDenied(
            "Only the uploader or a super admin can delete this document",
            user_id=user.id,
            resource_type="document",
            resource_id=document.id,
        )
    runtime.documents.delete(document.id)
    record_activity(
        request, runtime, user, Action.DELETE, ResourceType.DOCUMENT,
        resource_id=document.id,
        details={"documentName": document.name, "documentCode": document.document_code},
    )
    return SuccessOut().dump()
