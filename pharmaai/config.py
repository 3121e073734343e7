"""
PharmaAI - Configuration Management
===================================
Centralized configuration with environment variable support.

Usage:
    from pharmaai.config import settings

    api_key = settings.gemini_api_key
    model = settings.recommendation_model
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings with environment variable overrides."""

    # Paths
    storage_path: Path = field(default_factory=lambda: Path("data/pharmaai.db"))

    # Gemini models
    recommendation_model: str = "gemini-3-pro-preview"
    chat_model: str = "gemini-3-pro-preview"
    vision_model: str = "gemini-3-pro-preview"
    transcription_model: str = "gemini-2.5-flash"
    search_model: str = "gemini-2.5-flash"
    live_model: str = "gemini-2.5-flash-native-audio-preview-09-2025"
    live_voice: str = "Kore"
    llm_timeout_seconds: int = 60

    # Live audio
    input_sample_rate: int = 16000
    output_sample_rate: int = 24000
    audio_frame_size: int = 4096

    # Seeded administrator account
    admin_username: str = "admin"
    admin_password: str = "admin123"
    admin_name: str = "Baş Eczacı"

    # Simulated network latency for the user store (seconds, 0 disables)
    auth_latency_seconds: float = 0.0

    # Circuit breaker
    circuit_breaker_gemini_failure_threshold: int = 5
    circuit_breaker_gemini_timeout_seconds: int = 60

    # UI
    app_title: str = "PharmaAI"

    # Feature flags
    enable_live_audio: bool = True
    debug_mode: bool = False

    def __post_init__(self):
        """Load overrides from environment variables."""
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load configuration from environment variables."""
        if storage_path := os.environ.get("PHARMAAI_STORAGE_PATH"):
            self.storage_path = Path(storage_path)

        # Models
        if model := os.environ.get("PHARMAAI_RECOMMENDATION_MODEL"):
            self.recommendation_model = model
        if model := os.environ.get("PHARMAAI_CHAT_MODEL"):
            self.chat_model = model
        if model := os.environ.get("PHARMAAI_VISION_MODEL"):
            self.vision_model = model
        if model := os.environ.get("PHARMAAI_TRANSCRIPTION_MODEL"):
            self.transcription_model = model
        if model := os.environ.get("PHARMAAI_SEARCH_MODEL"):
            self.search_model = model
        if model := os.environ.get("PHARMAAI_LIVE_MODEL"):
            self.live_model = model
        if voice := os.environ.get("PHARMAAI_LIVE_VOICE"):
            self.live_voice = voice
        if timeout := os.environ.get("LLM_TIMEOUT_SECONDS"):
            self.llm_timeout_seconds = int(timeout)

        # Audio
        if frame_size := os.environ.get("PHARMAAI_AUDIO_FRAME_SIZE"):
            self.audio_frame_size = int(frame_size)

        # Admin seed
        if username := os.environ.get("PHARMAAI_ADMIN_USERNAME"):
            self.admin_username = username
        if password := os.environ.get("PHARMAAI_ADMIN_PASSWORD"):
            self.admin_password = password
        if name := os.environ.get("PHARMAAI_ADMIN_NAME"):
            self.admin_name = name

        if latency := os.environ.get("PHARMAAI_AUTH_LATENCY_SECONDS"):
            self.auth_latency_seconds = float(latency)

        # Circuit breaker
        if threshold := os.environ.get("CIRCUIT_BREAKER_GEMINI_FAILURES"):
            self.circuit_breaker_gemini_failure_threshold = int(threshold)
        if cb_timeout := os.environ.get("CIRCUIT_BREAKER_GEMINI_TIMEOUT"):
            self.circuit_breaker_gemini_timeout_seconds = int(cb_timeout)

        # Feature flags
        if os.environ.get("DISABLE_LIVE_AUDIO", "").lower() in ("1", "true"):
            self.enable_live_audio = False
        if os.environ.get("DEBUG", "").lower() in ("1", "true"):
            self.debug_mode = True

    @property
    def gemini_api_key(self) -> str | None:
        """Get the Gemini API key from environment (never stored in config)."""
        for env_var in GEMINI_KEY_ENV_VARS:
            if value := os.environ.get(env_var):
                return value
        return None


GEMINI_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY", "GOOGLE_API_KEY")

# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        if _settings.debug_mode:
            logger.info("Settings loaded with debug mode enabled")
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings


# Convenience alias
settings = get_settings()


# Domain constants
ROLES = frozenset({"pharmacist", "patient"})

GENDERS = ("Erkek", "Kadın", "Diğer")

ALL_CATEGORIES = "Tümü"

ROLE_LABELS = {
    "pharmacist": "Eczacı",
    "patient": "Hasta",
}
