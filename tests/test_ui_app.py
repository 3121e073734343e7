"""
Smoke tests for the Streamlit app using streamlit's AppTest harness.

Pages run in-process, so the Gemini service is swapped for the fake client
from conftest by patching ``pharmaai.ui.pages.get_gemini_service``.
"""

from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest
from streamlit.testing.v1 import AppTest

from pharmaai.ai_service import handle_gemini_error
from pharmaai.auth import SESSION_KEY, AuthService
from pharmaai.config import settings
from pharmaai.exceptions import APIConnectionError, APITimeoutError, CircuitBreakerOpenError, RateLimitError
from pharmaai.inventory import Inventory
from pharmaai.models import User
from pharmaai.repository.users import get_user_repo
from pharmaai.ui.pages import (
    CHAT_ERROR,
    INVENTORY_FILE_TYPES,
    RECOMMEND_ERROR,
    SEARCH_FALLBACK_NOTE,
    TRANSCRIBE_ERROR,
    VISION_ERROR,
)
from pharmaai.ui.session import CHAT_GREETING

APP_PATH = str(Path(__file__).resolve().parents[1] / "pharmaai" / "app.py")

PATIENT_EMAIL = "ayse@example.com"


def _app() -> AppTest:
    return AppTest.from_file(APP_PATH, default_timeout=30)


def _open(page: str, user: User | None = None, inventory: Inventory | None = None) -> AppTest:
    at = _app()
    at.query_params["page"] = page
    if user is not None:
        at.session_state[SESSION_KEY] = user.model_dump()
    if inventory is not None:
        at.session_state["_inventory"] = inventory
    return at.run()


def _click(at: AppTest, label: str) -> AppTest:
    return next(button for button in at.button if button.label == label).click().run()


def _titles(at: AppTest) -> list[str]:
    return [title.value for title in at.title]


@pytest.fixture
def ai(monkeypatch, gemini):
    monkeypatch.setattr("pharmaai.ui.pages.get_gemini_service", lambda: gemini)
    return gemini


@pytest.fixture
def patient() -> User:
    return AuthService({}).register(PATIENT_EMAIL, "sifre123", "Ayşe", "patient")


@pytest.fixture
def pharmacist() -> User:
    return get_user_repo().get(settings.admin_username).to_safe()


class TestRouting:
    def test_anonymous_user_sees_login(self):
        at = _app().run()

        assert not at.exception
        assert _titles(at) == ["PharmaAI Asistan"]

    def test_logged_in_patient_lands_on_recommendation(self):
        at = _app()
        at.session_state[SESSION_KEY] = User(
            id="user-1", name="Ayşe", email="ayse@example.com", role="patient"
        ).model_dump()
        at.run()

        assert not at.exception
        assert _titles(at) == ["Akıllı İlaç Asistanı"]


class TestLoginFlow:
    def test_pharmacist_login_opens_inventory(self):
        at = _app().run()
        at.radio[0].set_value("pharmacist").run()
        assert _titles(at) == ["Eczane Yönetimi"]

        at.text_input[0].input("admin")
        at.text_input[1].input("admin123")
        _click(at, "Giriş Yap")

        assert not at.exception
        assert _titles(at) == ["Eczane Envanter Yönetimi"]

    def test_wrong_password_shows_message(self):
        at = _app().run()
        at.radio[0].set_value("pharmacist").run()

        at.text_input[0].input("admin")
        at.text_input[1].input("yanlis")
        _click(at, "Giriş Yap")

        assert [error.value for error in at.error] == ["Hatalı şifre girdiniz."]


class TestInventoryPage:
    def test_demo_data_and_clear(self, pharmacist):
        at = _open("inventory", pharmacist)
        assert [info.value for info in at.info] == ["Henüz ürün yok. CSV yükleyin veya demo verisi ekleyin."]

        _click(at, "Demo Verisi Ekle")

        assert not at.exception
        assert len(at.session_state["_inventory"]) == 4
        assert at.metric[0].value == "4 Ürün"
        assert len(at.dataframe[0].value) == 4

        _click(at, "Envanteri Temizle")

        assert len(at.session_state["_inventory"]) == 0
        assert at.metric[0].value == "0 Ürün"

    def test_uploader_accepts_txt(self):
        assert INVENTORY_FILE_TYPES == ["csv", "txt"]
        added = Inventory().import_csv(b"name,category\nParol,Agri\n", "stok.txt")
        assert added == 1


class TestStaffPage:
    def test_create_staff_member(self, pharmacist):
        at = _open("staff", pharmacist)
        assert _titles(at) == ["Personel Yönetimi"]

        at.text_input[0].input("Mehmet Kaya")
        at.text_input[1].input("mehmet")
        at.text_input[2].input("1234")
        _click(at, "Personel Oluştur")

        assert not at.exception
        assert [success.value for success in at.success] == ["Personel başarıyla oluşturuldu!"]
        assert "mehmet" in at.dataframe[0].value["Kullanıcı Adı"].tolist()
        assert get_user_repo().get("mehmet").created_by == settings.admin_username

    def test_duplicate_username(self, pharmacist):
        at = _open("staff", pharmacist)

        at.text_input[0].input("Tekrar")
        at.text_input[1].input(settings.admin_username)
        at.text_input[2].input("1234")
        _click(at, "Personel Oluştur")

        assert [error.value for error in at.error] == ["Bu kullanıcı adı zaten kullanımda."]


class TestSearchPage:
    def test_ai_search_falls_back_to_standard(self, ai, fake_client, patient, sample_products):
        fake_client.models.responses = [httpx.ConnectError("refused")]
        at = _open("search", patient, Inventory(sample_products))

        at.radio[0].set_value("AI Semantik").run()
        at.text_input[0].input("ateş").run()
        _click(at, "AI ile Ara")

        assert not at.exception
        assert [warning.value for warning in at.warning] == [SEARCH_FALLBACK_NOTE]
        assert any(md.value == "### Sonuçlar (1)" for md in at.markdown)


class TestRecommendPage:
    def test_recommendation_saved_to_history(self, ai, fake_client, patient, sample_products):
        fake_client.models.responses = [SimpleNamespace(text="**Önerilen Ürün:** Parol 500mg")]
        at = _open("recommend", patient, Inventory(sample_products))

        at.text_area[0].input("Başım ağrıyor").run()
        _click(at, "Öneri Al")

        assert not at.exception
        assert not at.error
        assert any(md.value == "**Önerilen Ürün:** Parol 500mg" for md in at.markdown)
        history = get_user_repo().get(PATIENT_EMAIL).history
        assert [record.complaint for record in history] == ["Başım ağrıyor"]
        assert at.session_state[SESSION_KEY]["history"][0]["complaint"] == "Başım ağrıyor"

    def test_connection_error_shows_page_message(self, ai, fake_client, patient, sample_products):
        fake_client.models.responses = [httpx.ConnectError("refused")]
        at = _open("recommend", patient, Inventory(sample_products))

        at.text_area[0].input("Başım ağrıyor").run()
        _click(at, "Öneri Al")

        assert [error.value for error in at.error] == [RECOMMEND_ERROR]
        assert get_user_repo().get(PATIENT_EMAIL).history == []


class TestChatPage:
    def test_greeting_and_streamed_answer(self, ai, fake_client, patient):
        at = _open("chat", patient)
        assert at.chat_message[0].markdown[0].value == CHAT_GREETING

        at.chat_input[0].set_value("Parol var mı?").run()

        assert not at.exception
        messages = at.session_state["_chat_messages"]
        assert [(m.role, m.content) for m in messages[1:]] == [
            ("user", "Parol var mı?"),
            ("model", "Merhaba dünya"),
        ]
        assert fake_client.chats.created

    def test_connection_error_shows_apology(self, ai, fake_client, patient):
        fake_client.chats.chunks = [httpx.ConnectError("reset")]
        at = _open("chat", patient)

        at.chat_input[0].set_value("Parol var mı?").run()

        assert not at.exception
        assert at.session_state["_chat_messages"][-1].content == CHAT_ERROR
        assert at.chat_message[-1].markdown[0].value == CHAT_ERROR


class TestProfilePage:
    def test_edit_and_save(self, patient):
        at = _open("profile", patient)
        assert _titles(at) == ["Kullanıcı Profili"]

        _click(at, "Düzenle")
        at.number_input[0].set_value(45)
        at.selectbox[0].select_index(2)
        at.text_area[0].input("Penisilin")
        _click(at, "Kaydet")

        assert not at.exception
        session_user = at.session_state[SESSION_KEY]
        assert (session_user["age"], session_user["gender"], session_user["allergies"]) == (45, "Kadın", "Penisilin")
        stored = get_user_repo().get(PATIENT_EMAIL)
        assert (stored.age, stored.gender, stored.allergies) == (45, "Kadın", "Penisilin")
        assert not at.session_state["_profile_editing"]


class TestPageErrorMessages:
    @pytest.mark.parametrize(
        "page_message, expected",
        [
            (RECOMMEND_ERROR, "Bir hata oluştu. Lütfen tekrar deneyin."),
            (CHAT_ERROR, "Üzgünüm, bir bağlantı hatası oluştu."),
            (VISION_ERROR, "Analiz sırasında bir hata oluştu."),
            (TRANSCRIBE_ERROR, "Çeviri sırasında hata oluştu."),
        ],
    )
    @pytest.mark.parametrize(
        "exc",
        [
            APIConnectionError("gemini"),
            APITimeoutError("gemini"),
            RateLimitError("gemini"),
            CircuitBreakerOpenError("gemini"),
        ],
    )
    def test_service_failures_render_page_literal(self, page_message, expected, exc):
        assert handle_gemini_error(exc, page_message) == expected
