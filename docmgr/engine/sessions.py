"""
docmgr Session Store — server-side sessions behind an explicit interface.

A session maps an opaque token (sent to the browser in an HttpOnly cookie)
to a user id, and remembers which protected folders were unlocked with
their security code during that session.

Backends:
    DatabaseSessionStore — rows in ``user_sessions`` (default)
    RedisSessionStore    — keys in Redis via RedisCache

Usage:
    store = create_session_store(config, session_factory)
    token = store.create(user.id)
    user_id = store.validate(token)
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import sessionmaker

from docmgr.db.models import UserSession
from docmgr.db.session import session_scope
from docmgr.engine.cache import RedisCache, create_session_cache
from docmgr.engine.config import DocMgrConfig
from docmgr.engine.errors import InternalError

logger = logging.getLogger("docmgr.engine.sessions")


def new_token() -> str:
    return f"sess_{uuid.uuid4().hex}"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionStore(ABC):
    """Interface every session backend implements."""

    def __init__(self, timeout: int = 86400):
        self._timeout = timeout

    @property
    def timeout(self) -> int:
        return self._timeout

    @abstractmethod
    def create(self, user_id: str) -> str:
        """Open a session for ``user_id`` and return its token."""

    @abstractmethod
    def validate(self, token: str) -> Optional[str]:
        """Return the session's user id, or None if missing or expired."""

    @abstractmethod
    def destroy(self, token: str) -> None:
        """Remove the session. Unknown tokens are ignored."""

    @abstractmethod
    def unlock_folder(self, token: str, folder_id: str) -> None:
        """Remember that this session passed the folder's security code."""

    @abstractmethod
    def is_folder_unlocked(self, token: str, folder_id: str) -> bool:
        """True if ``unlock_folder`` was called for this session and folder."""

    def purge_expired(self) -> int:
        """Drop expired sessions. Returns how many were removed."""
        return 0


class DatabaseSessionStore(SessionStore):
    """Sessions persisted as ``user_sessions`` rows with an absolute expiry."""

    def __init__(self, session_factory: sessionmaker, timeout: int = 86400):
        super().__init__(timeout)
        self._session_factory = session_factory

    def create(self, user_id: str) -> str:
        token = new_token()
        now = datetime.now(timezone.utc)
        with session_scope(self._session_factory) as session:
            session.add(UserSession(
                token=token,
                user_id=user_id,
                data={"unlocked_folders": []},
                created_at=now,
                expires_at=now + timedelta(seconds=self._timeout),
            ))
        logger.debug(f"Session created for user {user_id}: {token[:16]}...")
        return token

    def _load(self, session, token: str) -> Optional[UserSession]:
        if not token:
            return None
        row = session.get(UserSession, token)
        if row is None:
            return None
        if _as_utc(row.expires_at) <= datetime.now(timezone.utc):
            session.delete(row)
            logger.debug(f"Session expired: {token[:16]}...")
            return None
        return row

    def validate(self, token: str) -> Optional[str]:
        with session_scope(self._session_factory) as session:
            row = self._load(session, token)
            return row.user_id if row else None

    def destroy(self, token: str) -> None:
        with session_scope(self._session_factory) as session:
            row = session.get(UserSession, token)
            if row is not None:
                session.delete(row)
        logger.debug(f"Session destroyed: {token[:16]}...")

    def unlock_folder(self, token: str, folder_id: str) -> None:
        with session_scope(self._session_factory) as session:
            row = self._load(session, token)
            if row is None:
                return
            data = dict(row.data or {})
            unlocked = list(data.get("unlocked_folders", []))
            if folder_id not in unlocked:
                unlocked.append(folder_id)
            data["unlocked_folders"] = unlocked
            # Reassign so the JSON column is flagged dirty
            row.data = data

    def is_folder_unlocked(self, token: str, folder_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            row = self._load(session, token)
            if row is None:
                return False
            return folder_id in (row.data or {}).get("unlocked_folders", [])

    def purge_expired(self) -> int:
        """Delete expired rows. Returns the number removed."""
        now = datetime.now(timezone.utc)
        with session_scope(self._session_factory) as session:
            removed = (
                session.query(UserSession)
                .filter(UserSession.expires_at <= now)
                .delete(synchronize_session=False)
            )
        if removed:
            logger.info(f"Purged {removed} expired sessions")
        return removed


class RedisSessionStore(SessionStore):
    """
    Sessions kept in Redis with a TTL. Redis expires keys itself, so
    ``purge_expired`` is a no-op.

    Keys (under the cache prefix):
        {token}          — JSON {"user_id", "created_at"}
        {token}:folders  — set of unlocked folder ids
    """

    def __init__(self, cache: RedisCache, timeout: int = 86400):
        super().__init__(timeout)
        self._cache = cache

    @property
    def cache(self) -> RedisCache:
        return self._cache

    def create(self, user_id: str) -> str:
        token = new_token()
        stored = self._cache.set_json(
            token,
            {"user_id": user_id, "created_at": datetime.now(timezone.utc).isoformat()},
            ttl=self._timeout,
        )
        if not stored:
            logger.error(f"Session for user {user_id} could not be written to Redis")
            raise InternalError("Session store unavailable", user_id=user_id)
        return token

    def validate(self, token: str) -> Optional[str]:
        if not token:
            return None
        data = self._cache.get_json(token)
        if not data:
            return None
        return data.get("user_id")

    def destroy(self, token: str) -> None:
        self._cache.delete(token)
        self._cache.delete(f"{token}:folders")

    def unlock_folder(self, token: str, folder_id: str) -> None:
        key = f"{token}:folders"
        if self._cache.sadd(key, folder_id):
            self._cache.expire(key, self._timeout)

    def is_folder_unlocked(self, token: str, folder_id: str) -> bool:
        return self._cache.sismember(f"{token}:folders", folder_id)


def create_session_store(config: DocMgrConfig, session_factory: sessionmaker) -> SessionStore:
    """Build the session store selected by ``security.session_backend``."""
    timeout = config.security.session_timeout
    if config.security.session_backend == "redis":
        cache = create_session_cache(config.redis.url, ttl=timeout)
        logger.info("Using Redis session store")
        return RedisSessionStore(cache, timeout=timeout)
    logger.info("Using database session store")
    return DatabaseSessionStore(session_factory, timeout=timeout)
