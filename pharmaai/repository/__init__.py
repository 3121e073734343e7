"""
Repository module for data persistence.
"""

from __future__ import annotations

from pharmaai.repository.users import USERS_DB_KEY, UserRepo, get_user_repo, hash_password

__all__ = ["USERS_DB_KEY", "UserRepo", "get_user_repo", "hash_password"]
