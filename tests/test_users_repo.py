"""
Tests for pharmaai.repository.users module.
"""

import base64

from pharmaai.config import settings
from pharmaai.models import StoredUser
from pharmaai.repository import USERS_DB_KEY, UserRepo, get_user_repo, hash_password
from pharmaai.repository.users import ADMIN_ID, reset_user_repo


def _user(email="ali@example.com", **overrides):
    data = {
        "id": "user-1",
        "name": "Ali Veli",
        "email": email,
        "role": "patient",
        "password_hash": hash_password("secret1"),
    }
    data.update(overrides)
    return StoredUser(**data)


class TestHashPassword:
    def test_reversed_base64(self):
        hashed = hash_password("admin123")
        assert base64.b64decode(hashed[::-1]).decode("utf-8") == "admin123"

    def test_unicode_password(self):
        hashed = hash_password("şifre")
        assert base64.b64decode(hashed[::-1]).decode("utf-8") == "şifre"


class TestSeeding:
    def test_empty_store_gets_admin(self, store):
        repo = UserRepo(store)
        admin = repo.get(settings.admin_username)

        assert admin is not None
        assert admin.id == ADMIN_ID
        assert admin.role == "pharmacist"
        assert admin.name == settings.admin_name
        assert admin.password_hash == hash_password(settings.admin_password)

    def test_existing_db_is_not_reseeded(self, store):
        store.set_json(USERS_DB_KEY, {})
        repo = UserRepo(store)
        assert repo.get(settings.admin_username) is None

    def test_seed_uses_settings(self, store, monkeypatch):
        monkeypatch.setattr(settings, "admin_username", "root")
        monkeypatch.setattr(settings, "admin_password", "toor99")

        repo = UserRepo(store)
        assert repo.get("root").password_hash == hash_password("toor99")


class TestUserRepo:
    def test_put_and_get(self, repo):
        repo.put(_user())
        loaded = repo.get("ali@example.com")

        assert loaded.name == "Ali Veli"
        assert loaded.created_at > 0

    def test_get_empty_username(self, repo):
        assert repo.get("") is None

    def test_put_replaces_record(self, repo):
        repo.put(_user())
        repo.put(_user(name="Ali Yılmaz"))
        assert repo.get("ali@example.com").name == "Ali Yılmaz"

    def test_invalid_records_are_skipped(self, repo, store):
        db = store.get_json(USERS_DB_KEY)
        db["broken"] = {"name": "no id"}
        store.set_json(USERS_DB_KEY, db)

        users = repo.load()
        assert "broken" not in users
        assert settings.admin_username in users

    def test_non_object_db_treated_as_empty(self, repo, store):
        store.set_json(USERS_DB_KEY, ["not", "a", "dict"])
        assert repo.load() == {}

    def test_all_users_safe_shape(self, repo):
        repo.put(_user())
        users = repo.all_users()

        assert [u.email for u in users] == [settings.admin_username, "ali@example.com"]
        for user in users:
            assert "password_hash" not in user.model_dump()

    def test_history_round_trip(self, repo):
        repo.put(_user(history=[{"id": "r1", "date": 1, "complaint": "baş ağrısı", "recommendation": "Parol"}]))
        assert repo.get("ali@example.com").history[0].complaint == "baş ağrısı"


class TestSingleton:
    def test_get_user_repo(self):
        repo = get_user_repo()
        assert get_user_repo() is repo
        reset_user_repo()
        assert get_user_repo() is not repo
