"""
docmgr Runtime — wires configuration into the database, log queue, session
store and services, and owns their lifecycle.

Lifecycle:
    runtime = DocMgrRuntime(config)
    runtime.startup()   # DB, log queue, services, seed data
    ...
    await runtime.shutdown()
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import sessionmaker

from docmgr.db.models import User
from docmgr.db.session import close_all_sessions, init_db, session_scope
from docmgr.documents.folders import FolderService
from docmgr.documents.pdf import create_pdf_renderer
from docmgr.documents.service import DocumentService
from docmgr.documents.storage import FileStorage
from docmgr.documents.types import Role
from docmgr.engine.activity import ActivityLedger
from docmgr.engine.assist import AssistClient, create_assist_client
from docmgr.engine.config import DocMgrConfig
from docmgr.engine.logging import get_log_queue, init_logging, log, log_system_event, shutdown_logging
from docmgr.engine.security import AuthService
from docmgr.engine.sessions import RedisSessionStore, SessionStore, create_session_store

logger = logging.getLogger("docmgr.engine.runtime")


class DocMgrRuntime:
    """Holds every service the HTTP layer and the CLI call into."""

    def __init__(self, config: DocMgrConfig):
        self.config = config

        # Subsystems (initialized in startup())
        self.session_factory: Optional[sessionmaker] = None
        self.auth: Optional[AuthService] = None
        self.sessions: Optional[SessionStore] = None
        self.folders: Optional[FolderService] = None
        self.documents: Optional[DocumentService] = None
        self.ledger: Optional[ActivityLedger] = None
        self.assist: Optional[AssistClient] = None
        self.storage: Optional[FileStorage] = None

        self._started = False

    def startup(self, create_tables: Optional[bool] = None, seed: bool = True) -> None:
        """Initialize all subsystems."""
        if self._started:
            logger.warning("Runtime already started")
            return

        cfg = self.config
        logger.info(f"Starting {cfg.name} ({cfg.environment})...")

        # 1. Logging
        if cfg.logging.file_logs:
            init_logging(
                log_dir=cfg.logging.directory,
                level=cfg.logging.level,
                flush_interval_ms=cfg.logging.flush_interval_ms,
                flush_batch_size=cfg.logging.flush_batch_size,
                max_queue_size=cfg.logging.max_queue_size,
            )

        # 2. Database
        db = cfg.database
        self.session_factory = init_db(
            db.url,
            schema=db.db_schema,
            create_tables=db.auto_create if create_tables is None else create_tables,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
            pool_pre_ping=db.pool_pre_ping,
        )

        # 3. Services
        docs = cfg.documents
        self.storage = FileStorage(docs.upload_dir, max_bytes=docs.max_upload_bytes)
        self.auth = AuthService(self.session_factory, login_code_attempts=cfg.security.login_code_attempts)
        self.sessions = create_session_store(cfg, self.session_factory)
        self.folders = FolderService(self.session_factory)
        self.documents = DocumentService(
            self.session_factory,
            self.storage,
            pdf_renderer=create_pdf_renderer(docs.pdf_renderer, docs.company_name),
            company_name=docs.company_name,
            allowed_mime_types=docs.allowed_mime_types,
            max_upload_bytes=docs.max_upload_bytes,
        )
        self.ledger = ActivityLedger(self.session_factory)
        self.assist = create_assist_client(cfg.assist, company_name=docs.company_name)

        # 4. Expired sessions, seed data
        self.sessions.purge_expired()
        if seed:
            self.seed_defaults()

        self._started = True
        log(log_system_event("docmgr_started", details=self.subsystem_status()))
        logger.info(f"{cfg.name} started")

    def seed_defaults(self) -> Dict[str, Any]:
        """
        Seed a super admin and the default folder into an empty database.
        Does nothing once any user exists.
        """
        sec = self.config.security
        with session_scope(self.session_factory) as session:
            has_users = session.query(User.id).first() is not None
        if has_users or not sec.seed_admin_code:
            return {"seeded": False}

        admin = self.auth.create_user(sec.seed_admin_name, Role.SUPER_ADMIN.value, login_code=sec.seed_admin_code)
        folder = None
        if sec.default_folder_name:
            folder = self.folders.create(
                admin.id,
                sec.default_folder_name,
                description="Default folder for company documents",
            )
        log(log_system_event("seeded_defaults", details={"admin_id": admin.id}))
        logger.info(f"Seeded super admin {admin.id} and default folder")
        return {"seeded": True, "admin": admin, "folder": folder}

    async def shutdown(self) -> None:
        """Close the assist client, flush logs and dispose engines."""
        if not self._started:
            return
        if self.assist is not None:
            await self.assist.aclose()
        log(log_system_event("docmgr_shutdown"))
        shutdown_logging()
        close_all_sessions()
        self._started = False
        logger.info("docmgr shut down")

    def subsystem_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "database": self.config.database.url.split("://", 1)[0],
            "session_backend": self.config.security.session_backend,
            "assist": self.assist.backend if self.assist else None,
            "pdf_renderer": self.config.documents.pdf_renderer,
            "enforce_folder_locks": self.config.security.enforce_folder_locks,
        }
        queue = get_log_queue()
        if queue is not None:
            status["log_queue"] = {"pending": queue.pending_count, "dropped": queue.dropped_count}
        if isinstance(self.sessions, RedisSessionStore):
            status["session_cache"] = {
                "available": self.sessions.cache.is_available,
                "circuit_open": self.sessions.cache.is_circuit_open,
            }
        return status

    @property
    def started(self) -> bool:
        return self._started
