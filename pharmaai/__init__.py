"""
PharmaAI - pharmacy assistant (inventory, AI recommendation, chat, live audio,
image analysis and transcription) on top of Gemini and a local key-value store.
"""

from __future__ import annotations

__version__ = "0.3.0"
