"""
docmgr Folder Registry — named containers, optionally guarded by a
plaintext security code.

``verify_access`` is a stateless, exact, case-sensitive comparison. Whether
a session has passed the check is remembered by the session store, not here.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from docmgr.db.models import Document, Folder
from docmgr.db.session import session_scope
from docmgr.engine.errors import NotFound, ValidationError

logger = logging.getLogger("docmgr.documents.folders")


class FolderService:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create(
        self,
        actor_id: str,
        name: str,
        description: Optional[str] = None,
        has_security_code: bool = False,
        security_code: Optional[str] = None,
    ) -> Folder:
        """
        Create a folder.

        Raises:
            ValidationError on an empty name, or a protected folder without a code.
        """
        if not name or not name.strip():
            raise ValidationError("Folder name is required", validation_errors=[{"field": "name"}])
        if has_security_code and not security_code:
            raise ValidationError(
                "Security code is required for protected folders",
                validation_errors=[{"field": "securityCode"}],
            )

        with session_scope(self._session_factory) as session:
            folder = Folder(
                name=name.strip(),
                description=description,
                has_security_code=bool(has_security_code),
                security_code=security_code if has_security_code else None,
                created_by=actor_id,
            )
            session.add(folder)
            session.flush()
            logger.info(
                f"Folder '{folder.name}' ({folder.id}) created by {actor_id}"
                f"{' [protected]' if folder.has_security_code else ''}"
            )
            return folder

    def get(self, folder_id: str) -> Optional[Folder]:
        with session_scope(self._session_factory) as session:
            return session.get(Folder, folder_id)

    def require(self, folder_id: str) -> Folder:
        folder = self.get(folder_id)
        if folder is None:
            raise NotFound("Folder not found", resource_type="folder", resource_id=folder_id)
        return folder

    def list_all(self) -> List[Folder]:
        """All folders, newest first."""
        with session_scope(self._session_factory) as session:
            return session.query(Folder).order_by(Folder.created_at.desc()).all()

    def verify_access(self, folder_id: str, supplied_code: Optional[str]) -> bool:
        """
        True for unprotected folders, otherwise True iff the code matches exactly.

        Raises:
            NotFound if the folder does not exist.
        """
        folder = self.require(folder_id)
        if not folder.has_security_code:
            return True
        return supplied_code is not None and supplied_code == folder.security_code

    def is_protected(self, folder_id: Optional[str]) -> bool:
        if not folder_id:
            return False
        folder = self.get(folder_id)
        return bool(folder and folder.has_security_code)

    def list_documents(self, folder_id: str) -> List[Document]:
        """
        Documents in the folder, newest ``created_at`` first. No code check.

        Raises:
            NotFound if the folder does not exist.
        """
        self.require(folder_id)
        with session_scope(self._session_factory) as session:
            return (
                session.query(Document)
                .filter(Document.folder_id == folder_id)
                .order_by(Document.created_at.desc())
                .all()
            )
