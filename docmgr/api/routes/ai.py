"""
Text-assist routes. The configured AssistClient produces the text; these
handlers only record the activity (in the threadpool, off the event loop)
and shape the response.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from docmgr.api.deps import current_user, get_runtime, record_activity
from docmgr.api.schemas import GenerateTemplateRequest, ImproveContentRequest, ResearchRequest
from docmgr.db.models import User
from docmgr.documents.types import Action, ResourceType
from docmgr.engine.runtime import DocMgrRuntime

logger = logging.getLogger("docmgr.api.routes.ai")

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/generate-template")
async def generate_template(
    body: GenerateTemplateRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    template = await runtime.assist.generate_template(
        body.document_type,
        body.title,
        body.file_type,
        recipient_info=body.recipient_info,
        is_internal=body.is_internal,
    )
    await run_in_threadpool(
        record_activity,
        request, runtime, user, Action.AI_GENERATE_TEMPLATE, ResourceType.DOCUMENT,
        details={"documentType": body.document_type, "title": body.title, "fileType": body.file_type},
    )
    return {"template": template}


@router.post("/research")
async def research(
    body: ResearchRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    text = await runtime.assist.research(body.topic, body.document_type, context=body.context)
    await run_in_threadpool(
        record_activity,
        request, runtime, user, Action.AI_RESEARCH, ResourceType.DOCUMENT,
        details={"topic": body.topic, "documentType": body.document_type},
    )
    return {"research": text}


@router.post("/improve-content")
async def improve_content(
    body: ImproveContentRequest,
    request: Request,
    user: User = Depends(current_user),
    runtime: DocMgrRuntime = Depends(get_runtime),
):
    improved = await runtime.assist.improve_content(body.content, body.document_type)
    await run_in_threadpool(
        record_activity,
        request, runtime, user, Action.AI_IMPROVE_CONTENT, ResourceType.DOCUMENT,
        details={"documentType": body.document_type, "contentLength": len(body.content)},
    )
    return {"improvedContent": improved}
