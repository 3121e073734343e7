"""
PharmaAI - Gemini Service
=========================
Provides:
- Prompt building for recommendation, chat, vision, transcription and search
- Centralized google-genai client management (lazy, one per process)
- Vendor error translation into the PharmaAI exception hierarchy
- Circuit breaker and performance logging around every call

Prompts are Turkish; the assistant answers Turkish-speaking pharmacy staff
and patients.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from pharmaai.circuit_breaker import CircuitBreaker, get_gemini_breaker
from pharmaai.config import GEMINI_KEY_ENV_VARS, settings
from pharmaai.exceptions import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    GeminiAPIError,
    MissingAPIKeyError,
    PharmaAIError,
    RateLimitError,
    exception_to_user_message,
)
from pharmaai.logging_config import PerformanceTracker
from pharmaai.models import Product, User

logger = logging.getLogger(__name__)

SERVICE_NAME = "gemini"

RECOMMENDATION_FALLBACK = "Bir öneri oluşturulamadı."
IMAGE_ANALYSIS_FALLBACK = "Görüntü analiz edilemedi."
TRANSCRIPTION_FALLBACK = "Ses çözümlenemedi."

DEFAULT_IMAGE_PROMPT = (
    "Bu görüntüyü bir eczacı bakış açısıyla analiz et. Eğer bir reçete ise ilaçları listele. "
    "Eğer bir cilt sorunu ise olası durumu ve genel önerileri (tıbbi tavsiye olmadığını belirterek) söyle."
)
TRANSCRIPTION_PROMPT = "Lütfen bu ses kaydını kelimesi kelimesine Türkçe'ye çevir (transcribe et)."


# =============================================================================
# Prompt builders
# =============================================================================


def _inventory_context(inventory: Iterable[Product]) -> str:
    return json.dumps([product.context_dict() for product in inventory], ensure_ascii=False)


def build_profile_context(user: Optional[User]) -> str:
    """Patient profile block, empty when nobody is logged in."""
    if user is None:
        return ""
    return f"""
    HASTA PROFİLİ:
    - Yaş: {user.age or 'Bilinmiyor'}
    - Cinsiyet: {user.gender or 'Bilinmiyor'}
    - Bilinen Alerjiler/Durumlar: {user.allergies or 'Yok'}

    ÖNEMLİ: Eğer hastanın alerjisi veya yaşı bu ilaç için risk oluşturuyorsa kesinlikle uyar.
    """


def build_recommendation_prompt(complaint: str, inventory: Iterable[Product], user: Optional[User] = None) -> str:
    return f"""
    Sen uzman bir eczacı asistanısın.

    MEVCUT ENVANTER (Sadece bu ürünleri önerebilirsin):
    {_inventory_context(inventory)}
    {build_profile_context(user)}

    HASTA ŞİKAYETİ:
    "{complaint}"

    GÖREV:
    Mevcut envanterden hastanın şikayetine ve (varsa) profiline en uygun ilacı/ürünü seç.
    Eğer uygun ürün yoksa dürüstçe belirt.

    Çıktı formatı (Markdown):
    **Önerilen Ürün:** [Ürün Adı]
    **Neden:** [Kısa açıklama, profil uyumluluğu dahil]
    **Kullanım Şekli:** [Envanterdeki veya genel kullanım bilgisi]
    **Uyarılar:** [Varsa önemli uyarılar, özellikle hasta profiliyle ilgili]
    """


def build_chat_instruction(inventory: Iterable[Product]) -> str:
    names = json.dumps(", ".join(product.name for product in inventory), ensure_ascii=False)
    return f"""
    Sen PharmaAI, eczane asistanısın. Türkçe konuşuyorsun.
    Aşağıdaki envantere erişimin var. Sorulara bu envanter ışığında cevap ver.
    Envanter: {names}
    """


def build_search_prompt(query: str, inventory: Iterable[Product]) -> str:
    candidates = json.dumps(
        [
            {"id": p.id, "name": p.name, "description": p.description, "category": p.category}
            for p in inventory
        ],
        ensure_ascii=False,
    )
    return f"""
    KULLANICI SORGUSU: "{query}"

    ENVANTER:
    {candidates}

    GÖREV:
    Kullanıcının sorgusuyla eşleşen ilaçların ID'lerini JSON listesi olarak döndür.
    Kullanıcı "ağrı kesici", "uyku yapmayan", "parasetamol içeren" gibi etken madde veya endikasyon araması yapabilir.
    Envanterdeki açıklama veya isimden bu özellikleri çıkarım yap.

    Sadece ID listesi döndür. Örn: ["prod-1", "prod-2"]
    """


def parse_id_list(text: Optional[str]) -> list[str]:
    """Parse the JSON id list returned by semantic search."""
    data = json.loads(text or "[]")
    if not isinstance(data, list):
        raise GeminiAPIError("Semantic search returned a non-list payload", error_type=type(data).__name__)
    return [str(item) for item in data]


# =============================================================================
# Error translation
# =============================================================================


def translate_gemini_error(exc: BaseException) -> BaseException:
    """Map SDK and transport exceptions onto the PharmaAI hierarchy."""
    if isinstance(exc, PharmaAIError):
        return exc
    if isinstance(exc, genai_errors.APIError):
        code = getattr(exc, "code", None)
        if code in (401, 403):
            return AuthenticationError(SERVICE_NAME)
        if code == 429:
            return RateLimitError(SERVICE_NAME)
        if code in (408, 504):
            return APITimeoutError(SERVICE_NAME, timeout_seconds=settings.llm_timeout_seconds)
        if isinstance(code, int) and code >= 500:
            return APIConnectionError(SERVICE_NAME, reason=f"{code} {getattr(exc, 'status', '')}".strip())
        return GeminiAPIError(
            getattr(exc, "message", None) or str(exc),
            status_code=code,
            error_type=getattr(exc, "status", None),
        )
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return APITimeoutError(SERVICE_NAME, timeout_seconds=settings.llm_timeout_seconds)
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return APIConnectionError(SERVICE_NAME, reason=str(exc))
    return exc


def handle_gemini_error(
    exc: BaseException, page_message: Optional[str] = None, *, detail_prefix: Optional[str] = None
) -> str:
    """
    Convert any exception raised around a Gemini call into the UI message.

    Args:
        exc: The caught exception (raw SDK errors are translated first).
        page_message: The page's fixed error text. Shown for every failure
            except a missing API key, which keeps its setup hint.
        detail_prefix: Optional prefix, e.g. the page name.
    """
    translated = translate_gemini_error(exc)
    if isinstance(translated, PharmaAIError):
        translated.log(logging.WARNING)
    else:
        logger.error("Unexpected error around Gemini call", exc_info=(type(exc), exc, exc.__traceback__))
    if page_message is not None and not isinstance(translated, MissingAPIKeyError):
        message = page_message
    else:
        message = exception_to_user_message(translated)
    return f"{detail_prefix}: {message}" if detail_prefix else message


# =============================================================================
# Service
# =============================================================================


class GeminiService:
    """
    Centralized wrapper for the google-genai client.

    Usage:
        service = get_gemini_service()
        text = service.get_recommendation("Başım ağrıyor", inventory.products, user)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        client: Any = None,
        breaker: Optional[CircuitBreaker] = None,
    ) -> None:
        """
        Args:
            api_key: Gemini API key. If None, resolved from the environment.
            client: Pre-built client (tests pass a fake).
            breaker: Circuit breaker; the shared Gemini breaker by default.
        """
        self._api_key = api_key or settings.gemini_api_key
        self._client = client
        self._breaker = breaker or get_gemini_breaker()
        if self._client is None and not self._api_key:
            logger.warning("No Gemini API key found; set one of %s", ", ".join(GEMINI_KEY_ENV_VARS))

    @property
    def client(self) -> Any:
        """Lazy-load the genai client."""
        if self._client is None:
            if not self._api_key:
                raise MissingAPIKeyError(SERVICE_NAME, env_var=GEMINI_KEY_ENV_VARS[0])
            self._client = genai.Client(
                api_key=self._api_key,
                http_options=types.HttpOptions(timeout=settings.llm_timeout_seconds * 1000),
            )
        return self._client

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _generate(self, operation: str, *, model: str, contents: Any, config: Any = None) -> Optional[str]:
        """Run one generate_content call through the breaker and return its text."""

        def invoke() -> Any:
            try:
                return self.client.models.generate_content(model=model, contents=contents, config=config)
            except (genai_errors.APIError, httpx.HTTPError, TimeoutError, ConnectionError) as e:
                raise translate_gemini_error(e) from e

        with PerformanceTracker(f"gemini_{operation}", model=model):
            response = self._breaker.call(invoke)
        return getattr(response, "text", None)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_recommendation(self, complaint: str, inventory: Iterable[Product], user: Optional[User] = None) -> str:
        prompt = build_recommendation_prompt(complaint, list(inventory), user)
        text = self._generate("recommendation", model=settings.recommendation_model, contents=prompt)
        return text or RECOMMENDATION_FALLBACK

    def create_pharmacy_chat(self, inventory: Iterable[Product]) -> PharmacyChat:
        config = types.GenerateContentConfig(system_instruction=build_chat_instruction(list(inventory)))
        try:
            chat = self.client.chats.create(model=settings.chat_model, config=config)
        except (genai_errors.APIError, httpx.HTTPError) as e:
            raise translate_gemini_error(e) from e
        return PharmacyChat(chat, self._breaker)

    def analyze_medical_image(self, image_bytes: bytes, prompt: str = "", mime_type: str = "image/jpeg") -> str:
        contents = [
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            prompt.strip() or DEFAULT_IMAGE_PROMPT,
        ]
        text = self._generate("vision", model=settings.vision_model, contents=contents)
        return text or IMAGE_ANALYSIS_FALLBACK

    def transcribe_audio(self, audio_bytes: bytes, mime_type: str) -> str:
        contents = [
            types.Part.from_bytes(data=audio_bytes, mime_type=mime_type),
            TRANSCRIPTION_PROMPT,
        ]
        text = self._generate("transcription", model=settings.transcription_model, contents=contents)
        return text or TRANSCRIPTION_FALLBACK

    def semantic_search_ids(self, query: str, inventory: Iterable[Product]) -> list[str]:
        """Ask the model which product ids match ``query`` (JSON response mode)."""
        text = self._generate(
            "semantic_search",
            model=settings.search_model,
            contents=build_search_prompt(query, list(inventory)),
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
        try:
            return parse_id_list(text)
        except json.JSONDecodeError as e:
            raise GeminiAPIError("Semantic search returned invalid JSON", error_type="JSONDecodeError") from e


class PharmacyChat:
    """A multi-turn chat session bound to one inventory snapshot."""

    def __init__(self, chat: Any, breaker: CircuitBreaker) -> None:
        self._chat = chat
        self._breaker = breaker

    def send_message_stream(self, text: str) -> Iterator[str]:
        """Yield the answer's text chunks as they arrive."""
        self._breaker.before_call()
        try:
            with PerformanceTracker("gemini_chat_turn", model=settings.chat_model):
                for chunk in self._chat.send_message_stream(text):
                    if chunk.text:
                        yield chunk.text
        except (genai_errors.APIError, httpx.HTTPError, TimeoutError, ConnectionError) as e:
            translated = translate_gemini_error(e)
            if isinstance(translated, (APITimeoutError, APIConnectionError)):
                self._breaker.record_failure()
            raise translated from e
        self._breaker.record_success()


_service: Optional[GeminiService] = None


def get_gemini_service() -> GeminiService:
    """Get the process-wide Gemini service."""
    global _service
    if _service is None:
        _service = GeminiService()
    return _service


def reset_gemini_service() -> None:
    global _service
    _service = None
