"""
docmgr API schemas — pydantic request/response bodies.

Field names are snake_case in Python and camelCase on the wire. Response
models are built from ORM rows with ``from_row`` so column names that
clash with pydantic or SQLAlchemy attributes (``metadata``) stay explicit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class LoginRequest(CamelModel):
    login_code: str = Field(min_length=1)


class RegisterRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    role: str = "user"


class UserUpdateRequest(CamelModel):
    is_active: Optional[bool] = None
    name: Optional[str] = None
    role: Optional[str] = None


class FolderCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    has_security_code: bool = False
    security_code: Optional[str] = None


class VerifyAccessRequest(CamelModel):
    security_code: Optional[str] = None


class ContentUpdateRequest(CamelModel):
    content: Dict[str, Any]


class CreateDocumentRequest(CamelModel):
    document_type: str
    title: str = Field(min_length=1, max_length=255)
    file_type: str = "word"
    recipient_name: Optional[str] = None
    recipient_address: Optional[str] = None
    recipient_title: Optional[str] = None
    is_internal: Optional[bool] = None
    folder_id: Optional[str] = None
    use_assist: bool = False

    def recipient_info(self) -> Optional[Dict[str, str]]:
        info = {
            "name": self.recipient_name,
            "address": self.recipient_address,
            "title": self.recipient_title,
        }
        info = {k: v for k, v in info.items() if v}
        return info or None


class ShareRequest(CamelModel):
    shared_with: str = Field(min_length=1)
    permission: str = "view"


class GenerateTemplateRequest(CamelModel):
    document_type: str
    title: str = Field(min_length=1)
    file_type: str = "word"
    recipient_info: Optional[Dict[str, Any]] = None
    is_internal: Optional[bool] = None


class ResearchRequest(CamelModel):
    topic: str = Field(min_length=1)
    document_type: str = "document"
    context: Optional[str] = None


class ImproveContentRequest(CamelModel):
    content: str = ""
    document_type: str = "document"


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UserOut(CamelModel):
    id: str
    name: str
    login_code: str
    role: str
    is_active: bool
    last_active: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, user: Any) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            login_code=user.login_code,
            role=user.role,
            is_active=user.is_active,
            last_active=user.last_active,
            created_at=user.created_at,
        )


class FolderOut(CamelModel):
    """The security code itself is never returned."""
    id: str
    name: str
    description: Optional[str] = None
    has_security_code: bool
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, folder: Any) -> "FolderOut":
        return cls(
            id=folder.id,
            name=folder.name,
            description=folder.description,
            has_security_code=folder.has_security_code,
            created_by=folder.created_by,
            created_at=folder.created_at,
            updated_at=folder.updated_at,
        )


class DocumentOut(CamelModel):
    id: str
    name: str
    original_name: str
    description: Optional[str] = None
    category: str
    file_type: str
    file_size: int
    file_path: str
    folder_id: Optional[str] = None
    uploaded_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    doc_metadata: Optional[Dict[str, Any]] = Field(default=None, serialization_alias="metadata")
    document_code: Optional[str] = None
    is_template: bool = False
    content: Optional[Dict[str, Any]] = None
    recipient_info: Optional[Dict[str, Any]] = None

    @classmethod
    def from_row(cls, document: Any) -> "DocumentOut":
        return cls(
            id=document.id,
            name=document.name,
            original_name=document.original_name,
            description=document.description,
            category=document.category,
            file_type=document.file_type,
            file_size=document.file_size,
            file_path=document.file_path,
            folder_id=document.folder_id,
            uploaded_by=document.uploaded_by,
            created_at=document.created_at,
            updated_at=document.updated_at,
            doc_metadata=document.doc_metadata,
            document_code=document.document_code,
            is_template=document.is_template,
            content=document.content,
            recipient_info=document.recipient_info,
        )


class LockedDocumentOut(CamelModel):
    """Placeholder listed for documents inside a folder the session has not unlocked."""
    id: str
    folder_id: str
    locked: bool = True


class ShareOut(CamelModel):
    id: str
    document_id: str
    shared_by: str
    shared_with: str
    permission: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, share: Any) -> "ShareOut":
        return cls(
            id=share.id,
            document_id=share.document_id,
            shared_by=share.shared_by,
            shared_with=share.shared_with,
            permission=share.permission,
            created_at=share.created_at,
        )


class ActivityLogOut(CamelModel):
    id: str
    user_id: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, entry: Any) -> "ActivityLogOut":
        return cls(**entry.to_dict())


class StatsOut(CamelModel):
    press_releases: int = 0
    memos: int = 0
    letters: int = 0
    contracts: int = 0
    followups: int = 0
    total: int = 0


class SuccessOut(CamelModel):
    success: bool = True
    message: Optional[str] = None


def dump_all(items: List[CamelModel]) -> List[Dict[str, Any]]:
    return [item.dump() for item in items]
