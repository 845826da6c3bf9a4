"""User administration and activity-log routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request

from docmgr.api.deps import current_user, get_runtime, record_activity, require_super_admin
from docmgr.api.schemas import ActivityLogOut, UserOut, UserUpdateRequest, dump_all
from docmgr.db.models import User
from docmgr.documents.types import Action, ResourceType
from docmgr.engine.activity import DEFAULT_QUERY_LIMIT
from docmgr.engine.runtime import DocMgrRuntime

logger = logging.getLogger("docmgr.api.routes.admin")

router = APIRouter(prefix="/api", tags=["admin"])

MAX_LOG_LIMIT = 1000


@router.get("/admin/users")
def list_users(
    actor: User = Depends(require_super_admin),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    return dump_all([UserOut.from_row(u) for u in runtime.auth.list_users()])


@router.patch("/admin/users/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    request: Request,
    actor: User = Depends(require_super_admin),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    user = runtime.auth.update_user(user_id, name=body.name, role=body.role)
    if body.is_active is not None:
        user = runtime.auth.set_active_status(user_id, body.is_active)
    if body.is_active is False:
        logger.info(f"User {user_id} deactivated by {actor.id}")
    record_activity(
        request, runtime, actor, Action.UPDATE_USER, ResourceType.USER,
        resource_id=user.id,
        details={"changes": body.model_dump(by_alias=True, exclude_none=True)},
    )
    return UserOut.from_row(user).dump()


@router.get("/admin/activity-logs")
def all_activity_logs(
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_LOG_LIMIT),
    actor: User = Depends(require_super_admin),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    return dump_all([ActivityLogOut.from_row(e) for e in runtime.ledger.query(limit=limit)])


@router.get("/activity-logs")
def my_activity_logs(
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_LOG_LIMIT),
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    return dump_all([ActivityLogOut.from_row(e) for e in runtime.ledger.query(user_id=user.id, limit=limit)])
