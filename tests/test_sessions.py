"""Unit tests for docmgr.engine.sessions — database and Redis session stores."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from docmgr.db.models import UserSession
from docmgr.db.session import session_scope
from docmgr.engine.cache import RedisCache
from docmgr.engine.errors import InternalError
from docmgr.engine.sessions import (
    DatabaseSessionStore,
    RedisSessionStore,
    create_session_store,
    new_token,
)


def test_token_format():
    token = new_token()
    assert token.startswith("sess_")
    assert token != new_token()


class TestDatabaseSessionStore:

    def test_create_and_validate(self, session_factory, basic_user):
        store = DatabaseSessionStore(session_factory, timeout=60)
        token = store.create(basic_user.id)
        assert store.validate(token) == basic_user.id

    def test_validate_unknown_token(self, session_factory):
        store = DatabaseSessionStore(session_factory)
        assert store.validate("sess_missing") is None
        assert store.validate("") is None

    def test_destroy(self, session_factory, basic_user):
        store = DatabaseSessionStore(session_factory)
        token = store.create(basic_user.id)
        store.destroy(token)
        assert store.validate(token) is None

    def test_expired_session_is_removed(self, session_factory, basic_user):
        store = DatabaseSessionStore(session_factory)
        token = store.create(basic_user.id)
        with session_scope(session_factory) as session:
            row = session.get(UserSession, token)
            row.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)

        assert store.validate(token) is None
        with session_scope(session_factory) as session:
            assert session.get(UserSession, token) is None

    def test_unlock_folder_is_per_session(self, session_factory, basic_user):
        store = DatabaseSessionStore(session_factory)
        first = store.create(basic_user.id)
        second = store.create(basic_user.id)

        assert store.is_folder_unlocked(first, "f1") is False
        store.unlock_folder(first, "f1")
        store.unlock_folder(first, "f1")
        assert store.is_folder_unlocked(first, "f1") is True
        assert store.is_folder_unlocked(second, "f1") is False

        with session_scope(session_factory) as session:
            assert session.get(UserSession, first).data["unlocked_folders"] == ["f1"]

    def test_unlock_after_destroy_is_noop(self, session_factory, basic_user):
        store = DatabaseSessionStore(session_factory)
        token = store.create(basic_user.id)
        store.destroy(token)
        store.unlock_folder(token, "f1")
        assert store.is_folder_unlocked(token, "f1") is False

    def test_purge_expired(self, session_factory, basic_user):
        store = DatabaseSessionStore(session_factory, timeout=0)
        store.create(basic_user.id)
        store.create(basic_user.id)
        assert store.purge_expired() == 2


class TestRedisSessionStore:

    def setup_method(self):
        self.client = MagicMock()
        self.cache = RedisCache(prefix="docmgr:session:", client=self.client)
        self.store = RedisSessionStore(self.cache, timeout=300)

    def test_create_writes_json_with_ttl(self):
        token = self.store.create("u1")
        key, raw = self.client.set.call_args[0]
        assert key == f"docmgr:session:{token}"
        assert '"user_id": "u1"' in raw
        assert self.client.set.call_args[1]["ex"] == 300

    def test_validate(self):
        self.client.get.return_value = '{"user_id": "u1"}'
        assert self.store.validate("sess_x") == "u1"
        self.client.get.return_value = None
        assert self.store.validate("sess_x") is None

    def test_unlock_and_check(self):
        self.client.sismember.return_value = True
        self.store.unlock_folder("sess_x", "f1")
        self.client.sadd.assert_called_once_with("docmgr:session:sess_x:folders", "f1")
        self.client.expire.assert_called_once_with("docmgr:session:sess_x:folders", 300)
        assert self.store.is_folder_unlocked("sess_x", "f1") is True

    def test_destroy_removes_both_keys(self):
        self.store.destroy("sess_x")
        deleted = [c[0][0] for c in self.client.delete.call_args_list]
        assert deleted == ["docmgr:session:sess_x", "docmgr:session:sess_x:folders"]

    def test_create_fails_when_write_fails(self):
        self.client.set.side_effect = ConnectionError("down")
        with pytest.raises(InternalError, match="Session store unavailable"):
            self.store.create("u1")

    def test_create_fails_without_connection(self):
        store = RedisSessionStore(RedisCache("redis://127.0.0.1:1/0", prefix="docmgr:session:"))
        with pytest.raises(InternalError) as exc:
            store.create("u1")
        assert exc.value.status_code == 500
        assert exc.value.user_id == "u1"

    def test_purge_is_noop(self):
        assert self.store.purge_expired() == 0


def test_factory_selects_database_backend(config, session_factory):
    store = create_session_store(config, session_factory)
    assert isinstance(store, DatabaseSessionStore)
    assert store.timeout == config.security.session_timeout
