"""
Pytest configuration and shared fixtures for PharmaAI tests.
"""

from __future__ import annotations

import contextlib
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import numpy as np
import pytest

# Add repo root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from pharmaai.ai_service import GeminiService, reset_gemini_service  # noqa: E402
from pharmaai.circuit_breaker import GEMINI_TRANSIENT_ERRORS, CircuitBreaker, reset_all_breakers  # noqa: E402
from pharmaai.config import settings  # noqa: E402
from pharmaai.live_audio import float_to_pcm16  # noqa: E402
from pharmaai.logging_config import LogContext, configure_logging  # noqa: E402
from pharmaai.models import Product  # noqa: E402
from pharmaai.repository.users import UserRepo, reset_user_repo  # noqa: E402
from pharmaai.storage import LocalStore, reset_store  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _configure_logging():
    configure_logging(log_format="console", environment="test")


@pytest.fixture(autouse=True)
def _isolate(monkeypatch, tmp_path: Path):
    """Point the global store at a temp file and reset process-wide singletons."""
    monkeypatch.setattr(settings, "storage_path", tmp_path / "pharmaai.db")
    monkeypatch.setattr(settings, "auth_latency_seconds", 0.0)
    for env_var in ("GEMINI_API_KEY", "API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(env_var, raising=False)
    reset_store()
    reset_user_repo()
    reset_gemini_service()
    reset_all_breakers()
    LogContext.clear()
    yield
    reset_store()
    reset_user_repo()
    reset_gemini_service()
    LogContext.clear()


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
    s = LocalStore(tmp_path / "store.db")
    yield s
    s.close()


@pytest.fixture
def repo(store: LocalStore) -> UserRepo:
    return UserRepo(store)


@pytest.fixture
def session() -> dict[str, Any]:
    """Stand-in for st.session_state."""
    return {}


@pytest.fixture
def sample_products() -> list[Product]:
    return [
        Product(
            id="p1",
            name="Parol 500mg",
            category="Ağrı Kesici",
            description="Parasetamol içerir, ateş düşürücü",
            stock=100,
            usage="Günde 3 defa",
        ),
        Product(
            id="p2",
            name="Majezik Sprey",
            category="Boğaz",
            description="Boğaz ağrısı ve iltihabı",
            stock=5,
            usage="Boğaza sıkılır",
        ),
        Product(
            id="p3",
            name="Bepanthol Krem",
            category="Cilt Bakımı",
            description="Kuru ciltler için",
            stock=20,
            usage="Gece uygulanır",
        ),
    ]


# =============================================================================
# Fake google-genai client
# =============================================================================


class FakeModels:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.responses: list[Any] = []

    def generate_content(self, *, model: str, contents: Any, config: Any = None) -> Any:
        self.calls.append({"model": model, "contents": contents, "config": config})
        response = self.responses.pop(0) if self.responses else SimpleNamespace(text="ok")
        if isinstance(response, BaseException):
            raise response
        return response


class FakeChat:
    def __init__(self, chunks: list[Any]) -> None:
        self.chunks = chunks
        self.sent: list[str] = []

    def send_message_stream(self, text: str):
        self.sent.append(text)
        for chunk in self.chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            yield SimpleNamespace(text=chunk)


class FakeChats:
    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.chunks: list[Any] = ["Merhaba", "", " dünya"]

    def create(self, *, model: str, config: Any = None) -> FakeChat:
        self.created.append({"model": model, "config": config})
        return FakeChat(self.chunks)


class FakeLiveSession:
    def __init__(self, messages: list[Any], receive_error: BaseException | None = None) -> None:
        self.messages = messages
        self.receive_error = receive_error
        self.sent: list[dict[str, Any]] = []

    async def send_realtime_input(self, **kwargs: Any) -> None:
        self.sent.append(kwargs)

    async def receive(self):
        for message in self.messages:
            yield message
        if self.receive_error is not None:
            raise self.receive_error


class FakeLive:
    def __init__(self) -> None:
        self.messages: list[Any] = []
        self.connect_error: BaseException | None = None
        self.receive_error: BaseException | None = None
        self.sessions: list[FakeLiveSession] = []
        self.connects: list[dict[str, Any]] = []

    @contextlib.asynccontextmanager
    async def connect(self, *, model: str, config: Any = None):
        self.connects.append({"model": model, "config": config})
        if self.connect_error is not None:
            raise self.connect_error
        live_session = FakeLiveSession(self.messages, self.receive_error)
        self.sessions.append(live_session)
        yield live_session


class FakeClient:
    def __init__(self) -> None:
        self.models = FakeModels()
        self.chats = FakeChats()
        self.aio = SimpleNamespace(live=FakeLive())


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def breaker() -> CircuitBreaker:
    return CircuitBreaker(
        failure_threshold=2,
        timeout=60,
        name="test_gemini",
        expected_exceptions=GEMINI_TRANSIENT_ERRORS,
    )


@pytest.fixture
def gemini(fake_client: FakeClient, breaker: CircuitBreaker) -> GeminiService:
    return GeminiService(api_key="test-key", client=fake_client, breaker=breaker)


# =============================================================================
# Audio helpers
# =============================================================================


class FakeClock:
    """Manually advanced playback clock."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def pcm_chunk(seconds: float, *, value: float = 0.25, rate: int = 24000) -> bytes:
    """Constant-level int16 PCM of the given duration."""
    return float_to_pcm16(np.full(int(round(seconds * rate)), value, dtype=np.float32))


def audio_message(data: bytes, *, turn_complete: bool = False, interrupted: bool = False) -> Any:
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type="audio/pcm;rate=24000"))
    return SimpleNamespace(
        server_content=SimpleNamespace(
            model_turn=SimpleNamespace(parts=[part]),
            interrupted=interrupted,
            turn_complete=turn_complete,
        )
    )


def control_message(*, turn_complete: bool = False, interrupted: bool = False) -> Any:
    return SimpleNamespace(
        server_content=SimpleNamespace(model_turn=None, interrupted=interrupted, turn_complete=turn_complete)
    )
