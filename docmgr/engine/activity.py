"""
docmgr Activity Ledger — append-only audit trail of user actions.

Each logical action writes exactly one ``activity_logs`` row. Writes use
their own DB session, after the primary operation has committed, so a
ledger failure never rolls back the action it describes. Failures are
reported to the ``docmgr.engine.activity`` logger and to the
``activity/execution`` structured log instead of being raised.

Client address and user agent default to the current request context.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import sessionmaker

from docmgr.db.models import ActivityLog
from docmgr.db.session import session_scope
from docmgr.engine.context import get_request_context
from docmgr.engine.logging import log, log_activity_failure

logger = logging.getLogger("docmgr.engine.activity")

DEFAULT_QUERY_LIMIT = 50


def _value(v: Union[str, Enum, None]) -> Optional[str]:
    if isinstance(v, Enum):
        return v.value
    return v


class ActivityLedger:
    """Writes and reads ``activity_logs``. There is no update or delete path."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def record(
        self,
        user_id: str,
        action: Union[str, Enum],
        resource_type: Union[str, Enum],
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        """
        Append one entry. Returns the stored row, or None when the write failed.
        """
        ctx = get_request_context()
        if ctx is not None:
            ip_address = ip_address or ctx.ip_address
            user_agent = user_agent or ctx.user_agent

        action_name = _value(action)
        resource_name = _value(resource_type)
        try:
            with session_scope(self._session_factory) as session:
                entry = ActivityLog(
                    user_id=user_id,
                    action=action_name,
                    resource_type=resource_name,
                    resource_id=resource_id,
                    details=details,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                session.add(entry)
            return entry
        except Exception as e:
            logger.error(
                f"Failed to record activity '{action_name}' on "
                f"{resource_name}:{resource_id} for user {user_id}: {e}"
            )
            log(log_activity_failure(action_name, user_id, resource_name, resource_id, str(e)))
            return None

    def query(
        self,
        user_id: Optional[str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[ActivityLog]:
        """Entries newest first, optionally for a single user."""
        with session_scope(self._session_factory) as session:
            q = session.query(ActivityLog)
            if user_id is not None:
                q = q.filter(ActivityLog.user_id == user_id)
            return (
                q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
                .limit(limit)
                .all()
            )
