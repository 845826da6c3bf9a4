"""
docmgr Error Hierarchy — Structured exceptions mapped to HTTP responses.

Every error carries a human-readable ``message`` (surfaced verbatim to the
client as ``{"message": ...}``), an HTTP ``status_code`` and free-form
context that is serialized into the structured log files.

Hierarchy:
    DocMgrError                 — 500
    ├── AuthenticationRequired  — 401 no / invalid session
    ├── InvalidCredential       — 401 bad login code or folder security code
    ├── AuthorizationDenied     — 403 wrong role
    │   └── FolderLocked        — 403 folder code not verified in this session
    ├── NotFound                — 404 missing user / folder / document
    ├── ValidationError         — 400 bad MIME type, oversized file, missing field
    ├── ExternalServiceError    — 500 text-assist call failed
    ├── ConfigError             — 500 invalid docmgr.yaml
    └── InternalError           — 500 unexpected store / filesystem failure
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class DocMgrError(Exception):
    """Base error for all docmgr failures."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error_type: str = self.__class__.__name__
        self.resource_type: Optional[str] = context.get("resource_type")
        self.resource_id: Optional[str] = context.get("resource_id")
        self.user_id: Optional[str] = context.get("user_id")
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict for structured logs."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("resource_type", "resource_id", "user_id")
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_response(self) -> Dict[str, str]:
        """Client-facing body."""
        return {"message": self.message}

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.resource_type:
            parts.append(f"resource={self.resource_type}:{self.resource_id}")
        if self.user_id:
            parts.append(f"user_id={self.user_id}")
        return " | ".join(parts)


class AuthenticationRequired(DocMgrError):
    """No session, expired session, or session pointing at a disabled user."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", **context: Any):
        super().__init__(message, **context)


class InvalidCredential(DocMgrError):
    """Login code or folder security code did not match."""

    status_code = 401


class AuthorizationDenied(DocMgrError):
    """
    Caller is authenticated but lacks the role for the operation.
    Includes the role that was required.
    """

    status_code = 403

    def __init__(self, message: str = "Super admin access required", **context: Any):
        self.required_role: Optional[str] = context.get("required_role")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["required_role"] = self.required_role
        return d


class FolderLocked(AuthorizationDenied):
    """Protected folder has not been unlocked in the caller's session."""

    def __init__(
        self,
        message: str = "Folder is locked. Verify the security code first.",
        **context: Any,
    ):
        self.folder_id: Optional[str] = context.get("folder_id")
        super().__init__(message, **context)


class NotFound(DocMgrError):
    """Missing user, folder, document or backing file."""

    status_code = 404


class ValidationError(DocMgrError):
    """
    Input validation failed (MIME type, size, required fields).
    Includes field-level error details when available.
    """

    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.validation_errors: Optional[list] = context.get("validation_errors")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class ExternalServiceError(DocMgrError):
    """Text-assist call failed. The upstream message is passed through."""

    status_code = 500

    def __init__(self, message: str, **context: Any):
        self.upstream_status: Optional[int] = context.get("upstream_status")
        self.attempts: Optional[int] = context.get("attempts")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["upstream_status"] = self.upstream_status
        d["attempts"] = self.attempts
        return d


class ConfigError(DocMgrError):
    """Configuration error — invalid docmgr.yaml."""
    pass


class InternalError(DocMgrError):
    """Unexpected store or filesystem failure."""
    pass
