"""
docmgr — Document management service.

Users sign in with a login code, keep documents in folders that may be
guarded by a security code, upload / replace / download files, create
documents from templates and review an append-only activity ledger.

Packages:
    docmgr.engine     — config, errors, logging, sessions, auth, activity, assist
    docmgr.db         — SQLAlchemy base, engine registry, models
    docmgr.documents  — folder + document registries, storage, content, PDF
    docmgr.api        — FastAPI application and routes
"""

__version__ = "1.0.0"
__all__ = ["engine", "db", "documents", "api"]
