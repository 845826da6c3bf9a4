"""
docmgr Request Context — per-request state carried in a contextvar.

Set by the HTTP middleware (request id, client address, user agent) and
completed by the auth dependency once the session resolves to a user.

Usage:
    from docmgr.engine.context import get_request_context
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

current_request_context: ContextVar[Optional["RequestContext"]] = ContextVar(
    "request_context", default=None
)


@dataclass
class RequestContext:
    """Who is calling, from where, under which session."""

    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_token: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    role: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging. The session token is never included."""
        return {
            "request_id": self.request_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "user_id": self.user_id,
            "role": self.role,
        }


def set_request_context(ctx: RequestContext) -> None:
    current_request_context.set(ctx)


def get_request_context() -> Optional[RequestContext]:
    return current_request_context.get()


def clear_request_context() -> None:
    current_request_context.set(None)
