"""
Simulated authentication over the user repository.

The active session lives in a per-UI-session mutable mapping (Streamlit's
``st.session_state`` in the app, a plain dict in tests) under
``pharma_active_session`` and always holds the safe user shape.
"""

from __future__ import annotations

import logging
import time
from collections.abc import MutableMapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from pharmaai.config import ROLES, settings
from pharmaai.exceptions import (
    AccountNotFoundError,
    DuplicateUserError,
    InvalidPasswordError,
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
    WeakPasswordError,
)
from pharmaai.logging_config import LogContext, log_event
from pharmaai.models import RecommendationRecord, StoredUser, User, now_ms
from pharmaai.repository.users import UserRepo, get_user_repo, hash_password

logger = logging.getLogger(__name__)

SESSION_KEY = "pharma_active_session"

MIN_PASSWORD_LENGTH = 6
MIN_STAFF_PASSWORD_LENGTH = 4

# Fields a profile update may not overwrite.
PROTECTED_FIELDS = frozenset({"id", "email", "password_hash", "created_at", "created_by"})


class AuthService:
    """Login, registration, staff management and profile updates."""

    def __init__(
        self,
        session: MutableMapping[str, Any],
        repo: UserRepo | None = None,
        *,
        latency_seconds: float | None = None,
    ) -> None:
        self._session = session
        self._repo = repo or get_user_repo()
        self._latency = settings.auth_latency_seconds if latency_seconds is None else latency_seconds

    def _delay(self) -> None:
        if self._latency > 0:
            time.sleep(self._latency)

    def _start_session(self, user: User) -> User:
        self._session[SESSION_KEY] = user.model_dump()
        LogContext.set_user_id(user.id)
        return user

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> User:
        self._delay()
        stored = self._repo.get(email)
        if stored is None:
            log_event("login_failed", level="WARNING", reason="unknown_user")
            raise AccountNotFoundError(email)
        if stored.password_hash != hash_password(password):
            log_event("login_failed", level="WARNING", reason="wrong_password")
            raise InvalidPasswordError(email)

        user = self._start_session(stored.to_safe())
        log_event("user_logged_in", role=user.role)
        return user

    def register(self, email: str, password: str, name: str, role: str) -> User:
        """Create an account and log it in."""
        self._delay()
        if not email:
            raise ValidationError("Kullanıcı adı veya e-posta gerekli.", field="email")
        if role not in ROLES:
            raise ValidationError("Geçersiz rol.", field="role", detail=role)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise WeakPasswordError(MIN_PASSWORD_LENGTH)
        if self._repo.get(email) is not None:
            raise DuplicateUserError(email)

        stored = self._repo.put(
            StoredUser(
                id=f"user-{now_ms()}",
                email=email,
                name=name,
                role=role,
                password_hash=hash_password(password),
            )
        )
        user = self._start_session(stored.to_safe())
        log_event("user_registered", role=role)
        return user

    def register_staff(self, admin_email: str, username: str, password: str, name: str) -> User:
        """Create a pharmacist account on behalf of ``admin_email``. The session is untouched."""
        self._delay()
        admin = self._repo.get(admin_email)
        if admin is None or admin.role != "pharmacist":
            raise PermissionDeniedError(admin_email)
        if not username:
            raise ValidationError("Kullanıcı adı gerekli.", field="username")
        if len(password) < MIN_STAFF_PASSWORD_LENGTH:
            raise WeakPasswordError(MIN_STAFF_PASSWORD_LENGTH)
        if self._repo.get(username) is not None:
            raise DuplicateUserError(username, message="Bu kullanıcı adı zaten kullanımda.")

        stored = self._repo.put(
            StoredUser(
                id=f"staff-{now_ms()}",
                email=username,
                name=name,
                role="pharmacist",
                password_hash=hash_password(password),
                created_by=admin_email,
            )
        )
        log_event("staff_created", created_by=admin_email)
        return stored.to_safe()

    def logout(self) -> None:
        self._delay()
        self._session.pop(SESSION_KEY, None)
        LogContext.set_user_id(None)

    def get_current_user(self) -> User | None:
        raw = self._session.get(SESSION_KEY)
        if not raw:
            return None
        try:
            return User.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Discarding malformed session payload")
            self._session.pop(SESSION_KEY, None)
            return None

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def update_user_profile(self, email: str, data: dict[str, Any]) -> User:
        """Shallow-merge ``data`` into the stored user and refresh the session."""
        self._delay()
        stored = self._repo.get(email)
        if stored is None:
            raise UserNotFoundError(email)

        ignored = PROTECTED_FIELDS.intersection(data)
        if ignored:
            logger.warning("Ignoring protected profile fields: %s", sorted(ignored))
        changes = {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}

        merged = {**stored.model_dump(), **changes}
        try:
            updated = StoredUser.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError("Profil bilgileri geçersiz.", field="profile", detail=str(e)) from e

        self._repo.put(updated)
        return self._start_session(updated.to_safe())

    def add_to_history(self, record: RecommendationRecord) -> User | None:
        """Prepend ``record`` to the current user's history. No-op when logged out."""
        user = self.get_current_user()
        if user is None:
            return None
        return self.update_user_profile(user.email, {"history": [record, *user.history]})

    def get_staff_list(self) -> list[User]:
        self._delay()
        return [user for user in self._repo.all_users() if user.role == "pharmacist"]
