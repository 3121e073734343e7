"""
Tests for pharmaai.auth module.

Covers:
- Login and registration rules
- Staff creation by pharmacists
- Session handling
- Profile updates and recommendation history
"""

import pytest

from pharmaai.auth import SESSION_KEY, AuthService
from pharmaai.config import settings
from pharmaai.exceptions import (
    AccountNotFoundError,
    DuplicateUserError,
    InvalidPasswordError,
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
    WeakPasswordError,
)
from pharmaai.logging_config import LogContext
from pharmaai.models import RecommendationRecord


@pytest.fixture
def auth(session, repo):
    return AuthService(session, repo)


def _register_patient(auth, email="ayse@example.com", password="secret1"):
    return auth.register(email, password, "Ayşe Kaya", "patient")


class TestLogin:
    def test_admin_login(self, auth, session):
        user = auth.login(settings.admin_username, settings.admin_password)

        assert user.role == "pharmacist"
        assert user.is_pharmacist
        assert session[SESSION_KEY]["email"] == settings.admin_username
        assert "password_hash" not in session[SESSION_KEY]
        assert LogContext.get("user_id") == user.id

    def test_unknown_account(self, auth, session):
        with pytest.raises(AccountNotFoundError) as exc_info:
            auth.login("nobody", "whatever")
        assert exc_info.value.message == "Bu kullanıcı adı ile kayıtlı hesap bulunamadı."
        assert SESSION_KEY not in session

    def test_wrong_password(self, auth, session):
        with pytest.raises(InvalidPasswordError) as exc_info:
            auth.login(settings.admin_username, "wrong")
        assert exc_info.value.message == "Hatalı şifre girdiniz."
        assert SESSION_KEY not in session

    def test_logout(self, auth, session):
        auth.login(settings.admin_username, settings.admin_password)
        auth.logout()

        assert SESSION_KEY not in session
        assert auth.get_current_user() is None

    def test_latency(self, session, repo, monkeypatch):
        sleeps = []
        monkeypatch.setattr("pharmaai.auth.time.sleep", sleeps.append)

        AuthService(session, repo, latency_seconds=0.8).logout()
        assert sleeps == [0.8]


class TestRegister:
    def test_register_logs_in(self, auth, session):
        user = _register_patient(auth)

        assert user.id.startswith("user-")
        assert user.role == "patient"
        assert user.history == []
        assert auth.get_current_user() == user
        assert session[SESSION_KEY]["name"] == "Ayşe Kaya"

    def test_registered_user_can_login(self, auth):
        _register_patient(auth)
        auth.logout()
        assert auth.login("ayse@example.com", "secret1").name == "Ayşe Kaya"

    def test_short_password(self, auth):
        with pytest.raises(WeakPasswordError) as exc_info:
            _register_patient(auth, password="12345")
        assert exc_info.value.message == "Şifre en az 6 karakter olmalıdır."

    def test_duplicate(self, auth):
        _register_patient(auth)
        with pytest.raises(DuplicateUserError) as exc_info:
            _register_patient(auth)
        assert exc_info.value.message == "Bu kullanıcı adı/e-posta zaten kullanımda."

    def test_admin_username_is_taken(self, auth):
        with pytest.raises(DuplicateUserError):
            auth.register(settings.admin_username, "secret1", "Sahte", "patient")

    def test_empty_email(self, auth):
        with pytest.raises(ValidationError):
            auth.register("", "secret1", "Ayşe", "patient")

    def test_invalid_role(self, auth):
        with pytest.raises(ValidationError) as exc_info:
            auth.register("x@example.com", "secret1", "X", "admin")
        assert exc_info.value.field == "role"


class TestRegisterStaff:
    def test_admin_creates_staff(self, auth, session, repo):
        staff = auth.register_staff(settings.admin_username, "mehmet", "1234", "Mehmet Demir")

        assert staff.id.startswith("staff-")
        assert staff.role == "pharmacist"
        assert repo.get("mehmet").created_by == settings.admin_username
        assert SESSION_KEY not in session

    def test_staff_can_login(self, auth):
        auth.register_staff(settings.admin_username, "mehmet", "1234", "Mehmet Demir")
        assert auth.login("mehmet", "1234").is_pharmacist

    def test_patient_cannot_create_staff(self, auth):
        _register_patient(auth)
        with pytest.raises(PermissionDeniedError) as exc_info:
            auth.register_staff("ayse@example.com", "mehmet", "1234", "Mehmet")
        assert exc_info.value.message == "Bu işlem için yetkiniz yok."

    def test_unknown_admin(self, auth):
        with pytest.raises(PermissionDeniedError):
            auth.register_staff("ghost", "mehmet", "1234", "Mehmet")

    def test_staff_password_minimum(self, auth):
        with pytest.raises(WeakPasswordError) as exc_info:
            auth.register_staff(settings.admin_username, "mehmet", "123", "Mehmet")
        assert exc_info.value.min_length == 4

    def test_duplicate_staff(self, auth):
        auth.register_staff(settings.admin_username, "mehmet", "1234", "Mehmet")
        with pytest.raises(DuplicateUserError) as exc_info:
            auth.register_staff(settings.admin_username, "mehmet", "5678", "Mehmet 2")
        assert exc_info.value.message == "Bu kullanıcı adı zaten kullanımda."

    def test_empty_username(self, auth):
        with pytest.raises(ValidationError):
            auth.register_staff(settings.admin_username, "", "1234", "Mehmet")

    def test_staff_list(self, auth):
        _register_patient(auth)
        auth.register_staff(settings.admin_username, "mehmet", "1234", "Mehmet")

        staff = auth.get_staff_list()
        assert [u.email for u in staff] == [settings.admin_username, "mehmet"]


class TestSession:
    def test_no_session(self, auth):
        assert auth.get_current_user() is None

    def test_malformed_session_discarded(self, auth, session):
        session[SESSION_KEY] = {"email": "broken"}
        assert auth.get_current_user() is None
        assert SESSION_KEY not in session


class TestProfile:
    def test_update_profile(self, auth, session, repo):
        user = _register_patient(auth)
        updated = auth.update_user_profile(user.email, {"age": 34, "gender": "Kadın", "allergies": "Penisilin"})

        assert updated.age == 34
        assert updated.allergies == "Penisilin"
        assert session[SESSION_KEY]["gender"] == "Kadın"
        assert repo.get(user.email).age == 34

    def test_protected_fields_ignored(self, auth, repo):
        user = _register_patient(auth)
        original_hash = repo.get(user.email).password_hash

        updated = auth.update_user_profile(
            user.email,
            {"id": "hacked", "email": "other@example.com", "password_hash": "x", "name": "Yeni İsim"},
        )

        assert updated.id == user.id
        assert updated.email == user.email
        assert updated.name == "Yeni İsim"
        assert repo.get(user.email).password_hash == original_hash
        assert repo.get("other@example.com") is None

    def test_invalid_profile(self, auth):
        user = _register_patient(auth)
        with pytest.raises(ValidationError) as exc_info:
            auth.update_user_profile(user.email, {"gender": "Bilinmeyen"})
        assert exc_info.value.message == "Profil bilgileri geçersiz."

    def test_unknown_user(self, auth):
        with pytest.raises(UserNotFoundError):
            auth.update_user_profile("ghost@example.com", {"age": 30})

    def test_add_to_history_prepends(self, auth, repo):
        user = _register_patient(auth)
        auth.add_to_history(RecommendationRecord(id="r1", date=1, complaint="öksürük", recommendation="Şurup"))
        updated = auth.add_to_history(
            RecommendationRecord(id="r2", date=2, complaint="baş ağrısı", recommendation="Parol")
        )

        assert [r.id for r in updated.history] == ["r2", "r1"]
        assert [r.id for r in repo.get(user.email).history] == ["r2", "r1"]

    def test_add_to_history_without_session(self, auth):
        record = RecommendationRecord(complaint="öksürük", recommendation="Şurup")
        assert auth.add_to_history(record) is None
