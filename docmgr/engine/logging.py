"""
docmgr Logging System — Structured JSON file logs behind a non-blocking queue.

Implements:
- FileLogger: JSON-lines files per object type and category, one file per day
- AsyncLogQueue: bounded in-memory queue drained by a daemon thread
- Log entry builders for HTTP requests, security events, ledger failures,
  assist calls and system events

Layout:  {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl

Login codes, folder security codes and session tokens are masked before an
entry is serialized.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger("docmgr.engine.logging")

# Object types and the categories each one writes
OBJECT_TYPE_CATEGORIES = {
    "http": ["execution", "security"],
    "documents": ["execution", "security"],
    "folders": ["execution", "security"],
    "users": ["execution", "security"],
    "activity": ["execution"],
    "assist": ["execution"],
    "system": ["execution", "security"],
}

SECRET_KEYS = frozenset({
    "login_code", "loginCode",
    "security_code", "securityCode",
    "session_token", "sessionToken",
})
MASK = "***"


def mask_secrets(data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``data`` with credential values replaced, one level of nesting deep."""
    masked: Dict[str, Any] = {}
    for key, value in data.items():
        if key in SECRET_KEYS and value is not None:
            masked[key] = MASK
        elif isinstance(value, dict):
            masked[key] = {k: (MASK if k in SECRET_KEYS and v is not None else v) for k, v in value.items()}
        else:
            masked[key] = value
    return masked


class LogEntry:
    """One JSON line bound for ``{object_type}/{category}``."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(mask_secrets(self.data), default=str, separators=(",", ":"))


class FileLogger:
    """
    Appends entries to the day's file for their object type and category.

    Entries for the same file are written under that file's lock in a
    single ``open``.
    """

    def __init__(self, log_dir: str = "logs"):
        self._log_dir = Path(log_dir)
        self._locks: Dict[Path, threading.Lock] = defaultdict(threading.Lock)
        for object_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for category in categories:
                (self._log_dir / object_type / category).mkdir(parents=True, exist_ok=True)

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def path_for(self, object_type: str, category: str, day: Optional[date] = None) -> Path:
        return self._log_dir / object_type / category / f"{(day or date.today()).isoformat()}.jsonl"

    def write(self, entry: LogEntry) -> None:
        self.write_batch([entry])

    def write_batch(self, entries: Iterable[LogEntry]) -> None:
        lines: Dict[Path, List[str]] = defaultdict(list)
        for entry in entries:
            lines[self.path_for(entry.object_type, entry.category)].append(entry.to_json())

        for path, batch in lines.items():
            path.parent.mkdir(parents=True, exist_ok=True)
            with self._locks[path], path.open("a", encoding="utf-8") as f:
                f.write("\n".join(batch))
                f.write("\n")

    def query(
        self,
        object_type: str,
        category: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        Entries between two dates (default: the last seven days), newest
        first. ``filters`` keeps entries whose top-level keys equal every
        given value.
        """
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=7)

        results: List[Dict[str, Any]] = []
        day = end_date
        while day >= start_date and len(results) < limit:
            path = self.path_for(object_type, category, day)
            if path.exists():
                results.extend(reversed(self._read(path, filters)))
            day -= timedelta(days=1)
        return results[:limit]

    @staticmethod
    def _read(path: Path, filters: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning(f"Could not read log file {path}: {exc}")
            return []

        rows: List[Dict[str, Any]] = []
        for line in text.splitlines():
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if filters and any(data.get(k) != v for k, v in filters.items()):
                continue
            rows.append(data)
        return rows


class AsyncLogQueue:
    """
    Non-blocking front for a FileLogger.

    ``push`` never waits: when the queue is full the entry is dropped and
    counted. A daemon thread blocks for up to ``flush_interval_ms`` on the
    next entry, then writes it together with whatever else is queued, up to
    ``flush_batch_size`` entries per write. ``stop`` writes everything left.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self._file_logger = file_logger
        self._interval = flush_interval_ms / 1000.0
        self._batch_size = flush_batch_size
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._dropped = 0

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name="docmgr-log-flush", daemon=True)
        self._thread.start()
        logger.info("Async log queue started")

    def stop(self, timeout: float = 5.0) -> None:
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self._flush([], limit=None)
        logger.info(f"Async log queue stopped (dropped: {self._dropped})")

    def push(self, entry: LogEntry) -> bool:
        """Queue an entry. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(entry)
        except Full:
            self._dropped += 1
            return False
        return True

    def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                first = self._queue.get(timeout=self._interval)
            except Empty:
                continue
            self._flush([first], limit=self._batch_size)

    def _flush(self, batch: List[LogEntry], limit: Optional[int]) -> None:
        while limit is None or len(batch) < limit:
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        if not batch:
            return
        try:
            self._file_logger.write_batch(batch)
        except OSError as e:
            logger.error(f"Log write failed, {len(batch)} entries lost: {e}")

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(
    event: str,
    level: str,
    user_id: Optional[Any] = None,
    request_id: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    if user_id is not None:
        entry["user_id"] = user_id
    if request_id:
        entry["request_id"] = request_id
    entry.update(extra)
    return entry


def log_http_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    user_id: Optional[Any] = None,
    request_id: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> LogEntry:
    """Build an HTTP request log entry."""
    data = _base_entry(
        event="http_request",
        level="INFO" if status_code < 400 else ("WARNING" if status_code < 500 else "ERROR"),
        user_id=user_id,
        request_id=request_id,
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration_ms, 3),
    )
    if client_ip:
        data["client_ip"] = client_ip
    return LogEntry("http", "execution", data)


def log_security_event(
    event: str,
    object_type: str,
    user_id: Optional[Any] = None,
    resource_id: Optional[str] = None,
    reason: Optional[str] = None,
    ip_address: Optional[str] = None,
    level: str = "WARNING",
) -> LogEntry:
    """Build a security event entry (failed login, wrong folder code, role denial)."""
    data = _base_entry(
        event=event,
        level=level,
        user_id=user_id,
    )
    if resource_id:
        data["resource_id"] = resource_id
    if reason:
        data["reason"] = reason
    if ip_address:
        data["ip_address"] = ip_address
    target = object_type if object_type in OBJECT_TYPE_CATEGORIES else "system"
    if "security" not in OBJECT_TYPE_CATEGORIES[target]:
        target = "system"
    return LogEntry(target, "security", data)


def log_activity_failure(
    action: str,
    user_id: Optional[Any],
    resource_type: str,
    resource_id: Optional[str],
    error: str,
) -> LogEntry:
    """Build an entry for an activity-ledger write that did not make it to the DB."""
    data = _base_entry(
        event="activity_write_failed",
        level="ERROR",
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        error=error,
    )
    return LogEntry("activity", "execution", data)


def log_assist_call(
    operation: str,
    backend: str,
    duration_ms: float,
    success: bool,
    attempts: int = 1,
    status_code: Optional[int] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """Build a text-assist call entry."""
    data = _base_entry(
        event="assist_called",
        level="INFO" if success else "ERROR",
        operation=operation,
        backend=backend,
        duration_ms=round(duration_ms, 3),
        success=success,
        attempts=attempts,
    )
    if status_code is not None:
        data["status_code"] = status_code
    if error:
        data["error"] = error
    return LogEntry("assist", "execution", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event log entry (startup, shutdown, seeding)."""
    data = _base_entry(event=event, level=level)
    if details:
        data["details"] = details
    return LogEntry("system", "execution", data)


# ---------------------------------------------------------------------------
# Process-wide queue
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = "logs",
    level: str = "INFO",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Set the ``docmgr`` logger level and start the process-wide queue (once)."""
    global _global_queue
    logging.getLogger("docmgr").setLevel(level.upper())
    if _global_queue is None:
        _global_queue = AsyncLogQueue(
            FileLogger(log_dir=log_dir),
            flush_interval_ms=flush_interval_ms,
            flush_batch_size=flush_batch_size,
            max_queue_size=max_queue_size,
        )
        _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Queue an entry on the process-wide queue. False when logging is not initialized."""
    if _global_queue is None:
        logger.debug("Log queue not initialized, entry dropped")
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    global _global_queue
    if _global_queue is not None:
        _global_queue.stop()
        _global_queue = None
