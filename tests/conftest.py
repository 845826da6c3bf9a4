"""
docmgr Test Suite — Shared fixtures and configuration.

Every test gets its own SQLite file and uploads directory under tmp_path.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import io
from unittest.mock import MagicMock

import pytest

from docmgr.engine.config import (
    DatabaseConfig,
    DocMgrConfig,
    DocumentsConfig,
    LoggingConfig,
    SecurityConfig,
)


# ---------------------------------------------------------------------------
# Global singletons, reset between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset the config singleton, request context and log queue around each test."""
    import docmgr.engine.config as cfg_mod
    from docmgr.engine.context import clear_request_context
    from docmgr.engine.logging import shutdown_logging

    cfg_mod._config = None
    clear_request_context()
    yield
    shutdown_logging()
    clear_request_context()
    cfg_mod._config = None


# ---------------------------------------------------------------------------
# Config / database
# ---------------------------------------------------------------------------

@pytest.fixture
def config(tmp_path) -> DocMgrConfig:
    """Config pointing at a throwaway SQLite DB and uploads dir. No file logs."""
    return DocMgrConfig(
        environment="dev",
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'docmgr.sqlite'}"),
        security=SecurityConfig(),
        logging=LoggingConfig(directory=str(tmp_path / "logs"), file_logs=False),
        documents=DocumentsConfig(upload_dir=str(tmp_path / "uploads")),
    )


@pytest.fixture
def session_factory(config):
    from docmgr.db.session import close_all_sessions, init_db

    factory = init_db(config.database.url, create_tables=True)
    yield factory
    close_all_sessions()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def auth(session_factory):
    from docmgr.engine.security import AuthService

    return AuthService(session_factory)


@pytest.fixture
def ledger(session_factory):
    from docmgr.engine.activity import ActivityLedger

    return ActivityLedger(session_factory)


@pytest.fixture
def folders(session_factory):
    from docmgr.documents.folders import FolderService

    return FolderService(session_factory)


@pytest.fixture
def storage(config):
    from docmgr.documents.storage import FileStorage

    return FileStorage(config.documents.upload_dir, max_bytes=config.documents.max_upload_bytes)


@pytest.fixture
def documents(session_factory, storage, config):
    from docmgr.documents.pdf import ReportLabPDFRenderer
    from docmgr.documents.service import DocumentService

    return DocumentService(
        session_factory,
        storage,
        pdf_renderer=ReportLabPDFRenderer(config.documents.company_name),
        company_name=config.documents.company_name,
    )


@pytest.fixture
def admin_user(auth):
    return auth.create_user("Super Admin", "super_admin", login_code="ADMIN-2025")


@pytest.fixture
def basic_user(auth):
    return auth.create_user("Regular User", "user")


@pytest.fixture
def pdf_bytes():
    """Factory for a fake PDF body of ``size`` bytes."""
    def _make(size: int = 1024) -> io.BytesIO:
        head = b"%PDF-1.4\n"
        return io.BytesIO(head + b"0" * max(size - len(head), 0))
    return _make


@pytest.fixture
def mock_redis():
    """Return a mock Redis client."""
    client = MagicMock()
    client.ping.return_value = True
    client.get.return_value = None
    client.set.return_value = True
    client.delete.return_value = 1
    client.expire.return_value = True
    client.sadd.return_value = 1
    client.sismember.return_value = False
    client.smembers.return_value = set()
    return client
