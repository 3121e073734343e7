"""
Pydantic models for the records kept in the key-value store and in UI state.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Epoch milliseconds, the timestamp unit used by every record."""
    return int(time.time() * 1000)


Role = Literal["pharmacist", "patient"]
Gender = Literal["Erkek", "Kadın", "Diğer"]
MessageRole = Literal["user", "model", "system"]


class AppMode(str, Enum):
    """Pages of the app, addressed by the ``page`` query parameter."""

    INVENTORY = "inventory"
    RECOMMEND = "recommend"
    LIVE = "live"
    CHAT = "chat"
    VISION = "vision"
    TRANSCRIBE = "transcribe"
    SEARCH = "search"
    PROFILE = "profile"
    AUTH = "auth"
    STAFF = "staff"


# =============================================================================
# Inventory
# =============================================================================


class Product(BaseModel):
    """A single inventory line."""

    id: str
    name: str
    category: str
    description: str = ""
    stock: int = 0
    usage: str = ""

    def context_dict(self) -> dict[str, str]:
        """Fields sent to the model as inventory context (stock and id stay local)."""
        return {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "usage": self.usage,
        }


# =============================================================================
# Chat
# =============================================================================


class Message(BaseModel):
    id: str = Field(default_factory=lambda: str(now_ms()))
    role: MessageRole
    content: str
    timestamp: int = Field(default_factory=now_ms)
    attachments: list[str] | None = None


# =============================================================================
# Users
# =============================================================================


class RecommendationRecord(BaseModel):
    """A saved recommendation in the patient's history."""

    id: str = Field(default_factory=lambda: str(now_ms()))
    date: int = Field(default_factory=now_ms)
    complaint: str
    recommendation: str


class User(BaseModel):
    """The safe user shape (no password hash) held in the active session."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    email: str
    role: Role
    age: int | None = None
    gender: Gender | None = None
    allergies: str | None = None
    history: list[RecommendationRecord] = Field(default_factory=list)

    @property
    def is_pharmacist(self) -> bool:
        return self.role == "pharmacist"


class StoredUser(User):
    """The user record as persisted in the users DB."""

    password_hash: str
    created_at: int = Field(default_factory=now_ms)
    created_by: str | None = None

    def to_safe(self) -> User:
        """Drop the store-only fields."""
        return User.model_validate(self.model_dump(exclude={"password_hash", "created_at", "created_by"}))
