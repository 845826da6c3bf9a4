"""
docmgr Models — SQLAlchemy tables for the docmgr database.

Tables:
1. users              — accounts keyed by login code
2. folders            — document containers, optionally security-code protected
3. documents          — uploaded and template-generated documents
4. document_shares    — one-to-one view/edit grants
5. activity_logs      — append-only audit trail
6. document_sequences — per (type code, year) document code counters
7. user_sessions      — server-side sessions for the database backend
"""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)

from docmgr.db.base import AuditMixin, Base, new_id, utcnow


# ---------------------------------------------------------------------------
# 1. Users
# ---------------------------------------------------------------------------

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    login_code = Column(String(32), unique=True, nullable=False, index=True)
    role = Column(String(20), default="user", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_active = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'super_admin')", name="ck_users_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name='{self.name}', role='{self.role}')>"


# ---------------------------------------------------------------------------
# 2. Folders
# ---------------------------------------------------------------------------

class Folder(Base, AuditMixin):
    __tablename__ = "folders"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    security_code = Column(String(255), nullable=True)
    has_security_code = Column(Boolean, default=False, nullable=False)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)

    def __repr__(self) -> str:
        return f"<Folder(id={self.id}, name='{self.name}', protected={self.has_security_code})>"


# ---------------------------------------------------------------------------
# 3. Documents
# ---------------------------------------------------------------------------

class Document(Base, AuditMixin):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, index=True)
    file_type = Column(String(20), nullable=False)
    file_size = Column(Integer, default=0, nullable=False)
    file_path = Column(String(500), nullable=False)
    folder_id = Column(String(36), ForeignKey("folders.id"), nullable=True, index=True)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    # "metadata" is reserved on declarative classes
    doc_metadata = Column("metadata", JSON, nullable=True)
    document_code = Column(String(50), nullable=True, index=True)
    is_template = Column(Boolean, default=False, nullable=False)
    content = Column(JSON, nullable=True)
    recipient_info = Column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "file_type IN ('pdf', 'word', 'excel', 'powerpoint', 'unknown')",
            name="ck_documents_file_type",
        ),
        Index("idx_documents_category_created", "category", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, code='{self.document_code}', name='{self.name}')>"


# ---------------------------------------------------------------------------
# 4. Document shares
# ---------------------------------------------------------------------------

class DocumentShare(Base):
    __tablename__ = "document_shares"

    id = Column(String(36), primary_key=True, default=new_id)
    document_id = Column(String(36), ForeignKey("documents.id"), nullable=False, index=True)
    shared_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    shared_with = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    permission = Column(String(10), default="view", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("permission IN ('view', 'edit')", name="ck_document_shares_permission"),
    )


# ---------------------------------------------------------------------------
# 5. Activity logs (append-only)
# ---------------------------------------------------------------------------

class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "details": self.details,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": self.created_at,
        }


# ---------------------------------------------------------------------------
# 6. Document code counters
# ---------------------------------------------------------------------------

class DocumentSequence(Base):
    """Next free sequence number per (type code, year). Categories sharing a
    type code (memo / memos) share one counter so codes never repeat."""
    __tablename__ = "document_sequences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type_code = Column(String(10), nullable=False)
    year = Column(Integer, nullable=False)
    next_seq = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("type_code", "year", name="uq_document_sequences_code_year"),
    )


# ---------------------------------------------------------------------------
# 7. Sessions
# ---------------------------------------------------------------------------

class UserSession(Base):
    __tablename__ = "user_sessions"

    token = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
