"""Folder routes: create, list, get, list documents, verify security code."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from docmgr.api.deps import (
    current_user,
    ensure_folder_unlocked,
    get_request_ctx,
    get_runtime,
    record_activity,
    session_token,
)
from docmgr.api.schemas import (
    DocumentOut,
    FolderCreateRequest,
    FolderOut,
    VerifyAccessRequest,
    dump_all,
)
from docmgr.db.models import User
from docmgr.documents.types import Action, ResourceType
from docmgr.engine.errors import InvalidCredential
from docmgr.engine.logging import log, log_security_event
from docmgr.engine.runtime import DocMgrRuntime

logger = logging.getLogger("docmgr.api.routes.folders")

router = APIRouter(prefix="/api/folders", tags=["folders"])


@router.post("", status_code=201)
def create_folder(
    body: FolderCreateRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    folder = runtime.folders.create(
        user.id,
        body.name,
        description=body.description,
        has_security_code=body.has_security_code,
        security_code=body.security_code,
    )
    record_activity(
        request, runtime, user, Action.CREATE, ResourceType.FOLDER,
        resource_id=folder.id,
        details={"folderName": folder.name, "hasSecurityCode": folder.has_security_code},
    )
    return FolderOut.from_row(folder).dump()


@router.get("")
def list_folders(
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    return dump_all([FolderOut.from_row(f) for f in runtime.folders.list_all()])


@router.get("/{folder_id}")
def get_folder(
    folder_id: str,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    return FolderOut.from_row(runtime.folders.require(folder_id)).dump()


@router.get("/{folder_id}/documents")
def list_folder_documents(
    folder_id: str,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    folder = runtime.folders.require(folder_id)
    ensure_folder_unlocked(request, runtime, folder.id)
    documents = runtime.folders.list_documents(folder.id)
    record_activity(
        request, runtime, user, Action.ACCESS, ResourceType.FOLDER,
        resource_id=folder.id,
        details={"folderName": folder.name, "documentCount": len(documents)},
    )
    return dump_all([DocumentOut.from_row(d) for d in documents])


@router.post("/{folder_id}/verify-access")
def verify_access(
    folder_id: str,
    body: VerifyAccessRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    """Check the folder's security code and, on success, unlock it for this session."""
    folder = runtime.folders.require(folder_id)
    granted = runtime.folders.verify_access(folder.id, body.security_code)
    record_activity(
        request, runtime, user, Action.ACCESS, ResourceType.FOLDER,
        resource_id=folder.id,
        details={"folderName": folder.name, "verified": granted},
    )
    if not granted:
        ctx = get_request_ctx(request)
        log(log_security_event(
            "folder_code_rejected", "folders",
            user_id=user.id,
            resource_id=folder.id,
            reason="security code mismatch",
            ip_address=ctx.ip_address,
        ))
        raise InvalidCredential(
            "Invalid security code",
            user_id=user.id,
            resource_type="folder",
            resource_id=folder.id,
        )

    token = session_token(request)
    if token:
        runtime.sessions.unlock_folder(token, folder.id)
    logger.info(f"Folder {folder.id} unlocked for user {user.id}")
    return {"success": True}
