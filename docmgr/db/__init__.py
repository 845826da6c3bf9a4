from docmgr.db.base import AuditMixin, Base, EngineRegistry, engine_registry, new_id
from docmgr.db.session import close_all_sessions, init_db, session_scope

__all__ = [
    "AuditMixin",
    "Base",
    "EngineRegistry",
    "engine_registry",
    "new_id",
    "init_db",
    "session_scope",
    "close_all_sessions",
]
