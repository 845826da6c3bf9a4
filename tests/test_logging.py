"""Unit tests for docmgr.engine.logging — FileLogger, AsyncLogQueue, entry builders."""

import json
from datetime import date, timedelta

from docmgr.engine.logging import (
    OBJECT_TYPE_CATEGORIES,
    AsyncLogQueue,
    FileLogger,
    LogEntry,
    get_log_queue,
    init_logging,
    log,
    log_activity_failure,
    log_assist_call,
    log_http_request,
    log_security_event,
    log_system_event,
    shutdown_logging,
)


class TestObjectTypeCategories:

    def test_types(self):
        assert set(OBJECT_TYPE_CATEGORIES) == {
            "http", "documents", "folders", "users", "activity", "assist", "system",
        }

    def test_every_type_has_execution(self):
        for obj_type, cats in OBJECT_TYPE_CATEGORIES.items():
            assert "execution" in cats, obj_type


class TestLogEntry:

    def test_to_json_compact(self):
        entry = LogEntry("http", "execution", {"path": "/api/folders", "status_code": 200})
        raw = entry.to_json()
        assert " " not in raw
        assert json.loads(raw) == {"path": "/api/folders", "status_code": 200}

    def test_credentials_masked(self):
        entry = LogEntry("users", "security", {
            "login_code": "ZT-ABC-123",
            "details": {"securityCode": "1234", "folderName": "HR"},
            "user_id": "u1",
        })
        data = json.loads(entry.to_json())
        assert data["login_code"] == "***"
        assert data["details"] == {"securityCode": "***", "folderName": "HR"}
        assert data["user_id"] == "u1"
        assert entry.data["login_code"] == "ZT-ABC-123"

    def test_to_json_non_serializable_uses_str(self):
        entry = LogEntry("system", "execution", {"day": date(2025, 1, 2)})
        assert json.loads(entry.to_json())["day"] == "2025-01-02"


class TestFileLogger:

    def test_creates_directories(self, tmp_path):
        FileLogger(log_dir=str(tmp_path / "logs"))
        assert (tmp_path / "logs" / "folders" / "security").is_dir()
        assert (tmp_path / "logs" / "assist" / "execution").is_dir()

    def test_write_and_query(self, tmp_path):
        file_logger = FileLogger(log_dir=str(tmp_path / "logs"))
        file_logger.write(LogEntry("http", "execution", {"n": 1, "path": "/a"}))
        file_logger.write(LogEntry("http", "execution", {"n": 2, "path": "/b"}))

        files = list((tmp_path / "logs" / "http" / "execution").glob("*.jsonl"))
        assert [f.name for f in files] == [f"{date.today().isoformat()}.jsonl"]

        rows = file_logger.query("http", "execution")
        assert [r["n"] for r in rows] == [2, 1]

    def test_query_filters_and_limit(self, tmp_path):
        file_logger = FileLogger(log_dir=str(tmp_path / "logs"))
        file_logger.write_batch([
            LogEntry("documents", "security", {"event": "denied", "n": i}) for i in range(5)
        ] + [LogEntry("documents", "security", {"event": "other"})])

        rows = file_logger.query("documents", "security", filters={"event": "denied"}, limit=3)
        assert [r["n"] for r in rows] == [4, 3, 2]

    def test_query_skips_bad_lines(self, tmp_path):
        file_logger = FileLogger(log_dir=str(tmp_path / "logs"))
        path = tmp_path / "logs" / "system" / "execution" / f"{date.today().isoformat()}.jsonl"
        path.write_text('{"ok": 1}\nnot json\n\n{"ok": 2}\n')
        assert [r["ok"] for r in file_logger.query("system", "execution")] == [2, 1]

    def test_query_outside_window(self, tmp_path):
        file_logger = FileLogger(log_dir=str(tmp_path / "logs"))
        file_logger.write(LogEntry("users", "execution", {"n": 1}))
        yesterday = date.today() - timedelta(days=1)
        assert file_logger.query("users", "execution", end_date=yesterday) == []

    def test_query_unknown_type(self, tmp_path):
        assert FileLogger(log_dir=str(tmp_path / "logs")).query("nope", "execution") == []


class TestAsyncLogQueue:

    def test_stop_drains(self, tmp_path):
        file_logger = FileLogger(log_dir=str(tmp_path / "logs"))
        queue = AsyncLogQueue(file_logger, flush_interval_ms=10)
        queue.start()
        for i in range(3):
            assert queue.push(LogEntry("system", "execution", {"n": i}))
        queue.stop()
        assert sorted(r["n"] for r in file_logger.query("system", "execution")) == [0, 1, 2]

    def test_full_queue_drops(self, tmp_path):
        queue = AsyncLogQueue(FileLogger(log_dir=str(tmp_path / "logs")), max_queue_size=1)
        assert queue.push(LogEntry("system", "execution", {})) is True
        assert queue.push(LogEntry("system", "execution", {})) is False
        assert queue.dropped_count == 1
        assert queue.pending_count == 1


class TestBuilders:

    def test_http_request_levels(self):
        assert log_http_request("GET", "/", 200, 1.0).data["level"] == "INFO"
        assert log_http_request("GET", "/", 404, 1.0).data["level"] == "WARNING"
        assert log_http_request("GET", "/", 500, 1.0).data["level"] == "ERROR"

    def test_http_request_fields(self):
        entry = log_http_request("POST", "/api/auth/login", 200, 12.34567,
                                 user_id="u1", request_id="req_1", client_ip="10.0.0.1")
        assert (entry.object_type, entry.category) == ("http", "execution")
        assert entry.data["duration_ms"] == 12.346
        assert entry.data["user_id"] == "u1"
        assert entry.data["client_ip"] == "10.0.0.1"

    def test_security_event_routing(self):
        assert log_security_event("folder_code_rejected", "folders").object_type == "folders"
        entry = log_security_event("x", "assist", reason="r")
        assert (entry.object_type, entry.category) == ("system", "security")
        assert entry.data["reason"] == "r"

    def test_activity_failure(self):
        entry = log_activity_failure("upload", "u1", "document", "d1", "disk full")
        assert entry.object_type == "activity"
        assert entry.data["event"] == "activity_write_failed"
        assert entry.data["error"] == "disk full"

    def test_assist_call(self):
        entry = log_assist_call("research", "http", 5.0, False, attempts=2, status_code=502, error="bad")
        assert entry.data["success"] is False
        assert entry.data["attempts"] == 2
        assert entry.data["status_code"] == 502

    def test_system_event(self):
        entry = log_system_event("startup", details={"version": "1"})
        assert entry.data["details"] == {"version": "1"}


class TestGlobalQueue:

    def test_log_without_init(self):
        assert get_log_queue() is None
        assert log(log_system_event("noop")) is False

    def test_init_and_shutdown(self, tmp_path):
        queue = init_logging(log_dir=str(tmp_path / "logs"))
        assert init_logging(log_dir=str(tmp_path / "other")) is queue
        assert log(log_system_event("ping")) is True
        shutdown_logging()
        assert get_log_queue() is None
        rows = FileLogger(log_dir=str(tmp_path / "logs")).query("system", "execution")
        assert rows[0]["event"] == "ping"
