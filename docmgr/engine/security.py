"""
docmgr Identity Store — login-code authentication and user administration.

The login code is the whole credential: there is no password. Codes look
like ``ZT-4QX-9B2`` and are drawn from the ``secrets`` CSPRNG. After
``attempts`` collisions the generator falls back to ``ZT-`` plus eight
upper-case hex characters of a UUID4.

Session handling lives in ``docmgr.engine.sessions``; this module only
decides *who* a login code belongs to.
"""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.orm import sessionmaker

from docmgr.db.models import User
from docmgr.db.session import session_scope
from docmgr.documents.types import Role
from docmgr.engine.errors import AuthorizationDenied, InvalidCredential, NotFound, ValidationError

logger = logging.getLogger("docmgr.engine.security")

LOGIN_CODE_PREFIX = "ZT"
LOGIN_CODE_ALPHABET = string.digits + string.ascii_uppercase


def _random_block(length: int = 3) -> str:
    return "".join(secrets.choice(LOGIN_CODE_ALPHABET) for _ in range(length))


def generate_login_code(exists: Callable[[str], bool], attempts: int = 10) -> str:
    """
    Produce an unused login code.

    Args:
        exists: Returns True if a code is already taken.
        attempts: Random ``ZT-XXX-XXX`` candidates to try before falling back.
    """
    for _ in range(attempts):
        code = f"{LOGIN_CODE_PREFIX}-{_random_block()}-{_random_block()}"
        if not exists(code):
            return code
    logger.warning(f"Login code space collided {attempts} times, using UUID fallback")
    return f"{LOGIN_CODE_PREFIX}-{uuid.uuid4().hex[:8].upper()}"


def _coerce_role(role: str) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise ValidationError(
            f"Invalid role '{role}'",
            validation_errors=[{"field": "role", "allowed": [r.value for r in Role]}],
        )


class AuthService:
    """
    Login-code authentication and the admin operations on users.

    Every method opens its own short-lived DB session. Returned ``User``
    objects are detached but fully loaded.
    """

    def __init__(self, db_session_factory: sessionmaker, login_code_attempts: int = 10):
        self._db_session_factory = db_session_factory
        self._login_code_attempts = login_code_attempts

    def authenticate(self, login_code: str) -> User:
        """
        Resolve a login code to an active user and stamp ``last_active``.

        Raises:
            InvalidCredential if no user has the code or the user is disabled.
        """
        with session_scope(self._db_session_factory) as session:
            user = session.query(User).filter_by(login_code=login_code).first()
            if user is None or not user.is_active:
                reason = "unknown_code" if user is None else "account_disabled"
                logger.info(f"Login rejected ({reason})")
                raise InvalidCredential(
                    "Invalid or inactive login code",
                    user_id=user.id if user else None,
                    reason=reason,
                )
            user.last_active = datetime.now(timezone.utc)
            session.flush()
            logger.info(f"User '{user.name}' ({user.id}) authenticated")
            return user

    def register(self, actor: Optional[User], name: str, role: str = Role.USER.value) -> User:
        """
        Create a user with a fresh login code. Only super admins may call this.

        Raises:
            AuthorizationDenied if ``actor`` is not a super admin.
            ValidationError on an empty name or unknown role.
        """
        if actor is None or actor.role != Role.SUPER_ADMIN.value:
            raise AuthorizationDenied(
                user_id=actor.id if actor else None,
                required_role=Role.SUPER_ADMIN.value,
            )
        return self.create_user(name, role)

    def create_user(self, name: str, role: str = Role.USER.value, login_code: Optional[str] = None) -> User:
        """Insert a user without an authorization check (CLI and seeding)."""
        if not name or not name.strip():
            raise ValidationError("Name is required", validation_errors=[{"field": "name"}])
        role_value = _coerce_role(role).value

        with session_scope(self._db_session_factory) as session:
            def exists(code: str) -> bool:
                return session.query(User.id).filter_by(login_code=code).first() is not None

            if login_code is None:
                login_code = generate_login_code(exists, attempts=self._login_code_attempts)
            elif exists(login_code):
                raise ValidationError(f"Login code '{login_code}' is already in use")

            user = User(name=name.strip(), login_code=login_code, role=role_value, is_active=True)
            session.add(user)
            session.flush()
            logger.info(f"Created user '{user.name}' ({user.id}) with role {role_value}")
            return user

    def touch_last_active(self, user_id: str) -> None:
        with session_scope(self._db_session_factory) as session:
            user = session.get(User, user_id)
            if user is not None:
                user.last_active = datetime.now(timezone.utc)

    def get_user(self, user_id: str) -> Optional[User]:
        with session_scope(self._db_session_factory) as session:
            return session.get(User, user_id)

    def list_users(self) -> List[User]:
        """All users, newest first."""
        with session_scope(self._db_session_factory) as session:
            return session.query(User).order_by(User.created_at.desc()).all()

    def set_active_status(self, user_id: str, is_active: bool) -> User:
        """Activate or deactivate a user. Deactivated users fail ``authenticate``."""
        return self.update_user(user_id, is_active=is_active)

    def update_user(
        self,
        user_id: str,
        is_active: Optional[bool] = None,
        name: Optional[str] = None,
        role: Optional[str] = None,
    ) -> User:
        """
        Apply the given changes. Fields left as None are untouched.

        Raises:
            NotFound if the user does not exist.
        """
        with session_scope(self._db_session_factory) as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound("User not found", resource_type="user", resource_id=user_id)
            if is_active is not None:
                user.is_active = is_active
            if name is not None:
                if not name.strip():
                    raise ValidationError("Name is required", validation_errors=[{"field": "name"}])
                user.name = name.strip()
            if role is not None:
                user.role = _coerce_role(role).value
            session.flush()
            logger.info(
                f"Updated user {user_id}: active={user.is_active} role={user.role}"
            )
            return user
