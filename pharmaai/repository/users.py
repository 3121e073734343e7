"""
User repository over the key-value store.

The whole users DB is one JSON object under ``pharma_users_db``, keyed by
username/e-mail. Reads and writes replace the full blob; there are no
indexes and no referential integrity.
"""

from __future__ import annotations

import base64
import logging

from pydantic import ValidationError as PydanticValidationError

from pharmaai.config import settings
from pharmaai.models import StoredUser, User
from pharmaai.storage import LocalStore, get_store

logger = logging.getLogger(__name__)

USERS_DB_KEY = "pharma_users_db"
ADMIN_ID = "admin-1"


def hash_password(password: str) -> str:
    """Reversed base64 of the UTF-8 password. Obfuscation, not security."""
    return base64.b64encode(password.encode("utf-8")).decode("ascii")[::-1]


class UserRepo:
    """
    Repository for stored user records.

    An empty store is seeded with one administrator pharmacist whose
    credentials come from settings.
    """

    def __init__(self, store: LocalStore | None = None) -> None:
        self._store = store or get_store()
        self._ensure_seeded()

    def _ensure_seeded(self) -> None:
        if self._store.get_item(USERS_DB_KEY) is not None:
            return
        admin = StoredUser(
            id=ADMIN_ID,
            name=settings.admin_name,
            email=settings.admin_username,
            role="pharmacist",
            password_hash=hash_password(settings.admin_password),
        )
        self.save({admin.email: admin})
        logger.info("UserRepo: seeded administrator account", extra={"username": admin.email})

    def load(self) -> dict[str, StoredUser]:
        """Read the users DB. Records that fail validation are skipped."""
        raw = self._store.get_json(USERS_DB_KEY, {})
        if not isinstance(raw, dict):
            logger.warning("UserRepo: users DB is not an object, treating as empty")
            return {}

        users: dict[str, StoredUser] = {}
        for key, record in raw.items():
            try:
                users[key] = StoredUser.model_validate(record)
            except PydanticValidationError as e:
                logger.warning("UserRepo: skipping invalid user record %r: %s", key, e)
        return users

    def save(self, db: dict[str, StoredUser]) -> None:
        self._store.set_json(USERS_DB_KEY, {key: user.model_dump() for key, user in db.items()})

    def get(self, username: str) -> StoredUser | None:
        if not username:
            return None
        return self.load().get(username)

    def put(self, user: StoredUser) -> StoredUser:
        """Insert or replace the record keyed by ``user.email``."""
        db = self.load()
        db[user.email] = user
        self.save(db)
        return user

    def all_users(self) -> list[User]:
        """Every user in the safe shape, in insertion order."""
        return [user.to_safe() for user in self.load().values()]


_user_repo: UserRepo | None = None


def get_user_repo() -> UserRepo:
    """Get the global user repository instance."""
    global _user_repo
    if _user_repo is None:
        _user_repo = UserRepo()
    return _user_repo


def reset_user_repo() -> None:
    global _user_repo
    _user_repo = None
