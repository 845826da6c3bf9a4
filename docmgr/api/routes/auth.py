"""Login-code authentication routes: register, login, logout, current user."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from docmgr.api.deps import (
    current_user,
    get_request_ctx,
    get_runtime,
    record_activity,
    require_super_admin,
    session_token,
)
from docmgr.api.schemas import LoginRequest, RegisterRequest, SuccessOut, UserOut
from docmgr.db.models import User
from docmgr.documents.types import Action, ResourceType
from docmgr.engine.errors import InvalidCredential
from docmgr.engine.logging import log, log_security_event
from docmgr.engine.runtime import DocMgrRuntime

logger = logging.getLogger("docmgr.api.routes.auth")

router = APIRouter(prefix="/api", tags=["auth"])


def _set_session_cookie(response: Response, runtime: DocMgrRuntime, token: str) -> None:
    sec = runtime.config.security
    response.set_cookie(
        key=sec.cookie_name,
        value=token,
        max_age=sec.session_timeout,
        httponly=True,
        secure=runtime.config.environment == "prod",
        samesite="lax",
    )


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    request: Request,
    actor: User = Depends(require_super_admin),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    user = runtime.auth.register(actor, body.name, body.role)
    record_activity(
        request, runtime, actor, Action.CREATE_USER, ResourceType.USER,
        resource_id=user.id,
        details={"newUserName": user.name, "newUserRole": user.role},
    )
    return UserOut.from_row(user).dump()


@router.post("/login")
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    ctx = get_request_ctx(request)
    try:
        user = runtime.auth.authenticate(body.login_code)
    except InvalidCredential as e:
        log(log_security_event(
            "login_failed", "users",
            user_id=e.user_id,
            reason=e.context.get("reason"),
            ip_address=ctx.ip_address,
        ))
        raise

    previous = session_token(request)
    if previous:
        runtime.sessions.destroy(previous)
    runtime.sessions.purge_expired()
    token = runtime.sessions.create(user.id)
    _set_session_cookie(response, runtime, token)

    ctx.user_id = user.id
    ctx.role = user.role
    record_activity(request, runtime, user, Action.LOGIN, ResourceType.SYSTEM)
    return UserOut.from_row(user).dump()


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    token = session_token(request)
    if token:
        user_id = runtime.sessions.validate(token)
        user = runtime.auth.get_user(user_id) if user_id else None
        if user is not None:
            record_activity(request, runtime, user, Action.LOGOUT, ResourceType.SYSTEM)
        runtime.sessions.destroy(token)
    response.delete_cookie(runtime.config.security.cookie_name)
    return SuccessOut().dump()


@router.get("/user")
def get_user(
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    runtime.auth.touch_last_active(user.id)
    return UserOut.from_row(user).dump()
