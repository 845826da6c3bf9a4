"""
docmgr HTTP application — FastAPI app factory.

Builds the runtime, mounts the route modules and installs:
    1. Request middleware: request context, timing, http/execution file log
    2. Exception handlers: DocMgrError -> its status + {"message"},
       request validation -> 400, anything else -> 500
    3. Lifespan: runtime shutdown (log queue flush, engine dispose)

Usage:
    uvicorn docmgr.api.app:create_app --factory
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from docmgr import __version__
from docmgr.api.deps import get_request_ctx
from docmgr.api.routes import admin, ai, auth, documents, folders
from docmgr.db.base import engine_registry
from docmgr.db.session import CORE_ENGINE
from docmgr.engine.config import DocMgrConfig, get_config, set_config
from docmgr.engine.context import clear_request_context, set_request_context
from docmgr.engine.errors import DocMgrError
from docmgr.engine.logging import log, log_http_request
from docmgr.engine.runtime import DocMgrRuntime

logger = logging.getLogger("docmgr.api.app")


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


def _validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]


def create_app(config: Optional[DocMgrConfig] = None) -> FastAPI:
    """Create the FastAPI app with a started runtime attached as ``app.state.runtime``."""
    if config is not None:
        set_config(config)
    config = get_config()

    runtime = DocMgrRuntime(config)
    runtime.startup()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await runtime.shutdown()

    app = FastAPI(title=config.name, version=__version__, lifespan=lifespan)
    app.state.runtime = runtime

    for module in (auth, documents, folders, ai, admin):
        app.include_router(module.router)

    # -------------------------------------------------------------------
    # Middleware
    # -------------------------------------------------------------------

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        ctx = get_request_ctx(request)
        set_request_context(ctx)
        start_time = time.monotonic()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = ctx.request_id
            return response
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            log(log_http_request(
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                user_id=ctx.user_id,
                request_id=ctx.request_id,
                client_ip=ctx.ip_address,
            ))
            clear_request_context()

    # -------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------

    @app.exception_handler(DocMgrError)
    async def docmgr_error_handler(request: Request, exc: DocMgrError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": _validation_message(exc), "errors": _validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    # -------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------

    @app.get("/health", tags=["system"])
    def health():
        db_ok = engine_registry.health_check(CORE_ENGINE)
        return {
            "status": "healthy" if db_ok else "degraded",
            "version": __version__,
            "database": db_ok,
            "subsystems": runtime.subsystem_status(),
        }

    logger.info(f"HTTP app ready ({len(app.routes)} routes)")
    return app
