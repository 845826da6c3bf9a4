"""
docmgr API dependencies — runtime lookup, session-cookie authentication,
role checks, folder-lock checks and activity recording.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

from fastapi import Depends, Request

from docmgr.db.models import Document, User
from docmgr.documents.types import Role
from docmgr.engine.context import RequestContext
from docmgr.engine.errors import AuthenticationRequired, AuthorizationDenied, FolderLocked
from docmgr.engine.logging import log, log_security_event
from docmgr.engine.runtime import DocMgrRuntime

logger = logging.getLogger("docmgr.api.deps")


def get_runtime(request: Request) -> DocMgrRuntime:
    return request.app.state.runtime


def get_request_ctx(request: Request) -> RequestContext:
    ctx = getattr(request.state, "ctx", None)
    if ctx is None:
        ctx = RequestContext(
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        request.state.ctx = ctx
    return ctx


def session_token(request: Request) -> Optional[str]:
    runtime = get_runtime(request)
    return request.cookies.get(runtime.config.security.cookie_name)


def current_user(
    request: Request,
    runtime: DocMgrRuntime = Depends(get_runtime),
) -> User:
    """
    Resolve the session cookie to an active user.

    Raises:
        AuthenticationRequired if there is no session, it expired, or the
        user was deactivated (the session is destroyed in that case).
    """
    token = session_token(request)
    if not token:
        raise AuthenticationRequired()
    user_id = runtime.sessions.validate(token)
    if user_id is None:
        raise AuthenticationRequired()
    user = runtime.auth.get_user(user_id)
    if user is None or not user.is_active:
        runtime.sessions.destroy(token)
        raise AuthenticationRequired(user_id=user_id)

    ctx = get_request_ctx(request)
    ctx.session_token = token
    ctx.user_id = user.id
    ctx.user_name = user.name
    ctx.role = user.role
    return user


def require_super_admin(
    request: Request,
    user: User = Depends(current_user),
) -> User:
    if user.role != Role.SUPER_ADMIN.value:
        ctx = get_request_ctx(request)
        log(log_security_event(
            "role_denied", "users",
            user_id=user.id,
            resource_id=request.url.path,
            reason="super_admin required",
            ip_address=ctx.ip_address,
        ))
        raise AuthorizationDenied(user_id=user.id, required_role=Role.SUPER_ADMIN.value)
    return user


# ---------------------------------------------------------------------------
# Folder locks
# ---------------------------------------------------------------------------

def folder_unlocked(runtime: DocMgrRuntime, token: Optional[str], folder_id: Optional[str]) -> bool:
    """
    True if the folder may be read in this session: enforcement is off,
    there is no folder, the folder is unprotected, or it was unlocked.
    """
    if not runtime.config.security.enforce_folder_locks or not folder_id:
        return True
    if not runtime.folders.is_protected(folder_id):
        return True
    return bool(token) and runtime.sessions.is_folder_unlocked(token, folder_id)


def ensure_folder_unlocked(request: Request, runtime: DocMgrRuntime, folder_id: Optional[str]) -> None:
    token = session_token(request)
    if not folder_unlocked(runtime, token, folder_id):
        ctx = get_request_ctx(request)
        log(log_security_event(
            "folder_locked", "folders",
            user_id=ctx.user_id,
            resource_id=folder_id,
            reason="security code not verified in session",
            ip_address=ctx.ip_address,
        ))
        raise FolderLocked(folder_id=folder_id, resource_type="folder", resource_id=folder_id)


def ensure_document_unlocked(request: Request, runtime: DocMgrRuntime, document: Document) -> None:
    ensure_folder_unlocked(request, runtime, document.folder_id)


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------

def record_activity(
    request: Request,
    runtime: DocMgrRuntime,
    user: User,
    action: Union[str, Enum],
    resource_type: Union[str, Enum],
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    ctx = get_request_ctx(request)
    runtime.ledger.record(
        user.id,
        action,
        resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
    )
