"""
PharmaAI - Live Audio
=====================
Thin adapter over the Gemini Live API for spoken consultations.

Pipeline for one turn:
- a WAV recording from the browser is decoded to mono float samples,
  resampled to 16 kHz and cut into 4096-sample frames
- every frame is converted to little-endian int16 PCM and streamed as
  ``audio/pcm;rate=16000``
- returned 24 kHz PCM chunks are decoded and laid out back to back on a
  playback timeline, which renders to a WAV clip for the page

There is no framing, retry or backpressure logic beyond what the SDK does.
"""

from __future__ import annotations

import base64
import io
import itertools
import logging
import time
import wave
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import numpy as np
from google.genai import errors as genai_errors
from google.genai import types
from websockets.exceptions import WebSocketException

from pharmaai.ai_service import SERVICE_NAME, get_gemini_service, translate_gemini_error
from pharmaai.circuit_breaker import GEMINI_TRANSIENT_ERRORS
from pharmaai.config import settings
from pharmaai.exceptions import APIConnectionError, AudioFormatError, PharmaAIError
from pharmaai.logging_config import log_error, log_event

logger = logging.getLogger(__name__)

INPUT_MIME_TYPE = "audio/pcm;rate=16000"
SYSTEM_INSTRUCTION = "Sen Türkçe konuşan yardımsever bir eczacı asistanısın. Kısa ve net cevaplar ver."

STATUS_WAITING = "Bağlantı Bekleniyor..."
STATUS_STARTING = "Başlatılıyor..."
STATUS_CONNECTED = "Bağlandı - Konuşabilirsiniz"
STATUS_CLOSED = "Bağlantı Kapandı"
STATUS_STOPPED = "Durduruldu"

CONNECTION_ERROR = "Bağlantı hatası oluştu."
SETUP_ERROR = "Mikrofon izni verilemedi veya API hatası."

INT16_SCALE = 32768.0


# =============================================================================
# Capture
# =============================================================================


def read_wav(data: bytes) -> tuple[np.ndarray, int]:
    """
    Decode WAV bytes into mono float32 samples in [-1, 1) and the sample rate.

    Raises:
        AudioFormatError: If the payload is not a PCM WAV file.
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wav:
            channels = wav.getnchannels()
            width = wav.getsampwidth()
            rate = wav.getframerate()
            raw = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError) as e:
        raise AudioFormatError(str(e)) from e

    if width == 1:
        samples = (np.frombuffer(raw, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
    elif width == 2:
        samples = np.frombuffer(raw, dtype="<i2").astype(np.float32) / INT16_SCALE
    elif width == 4:
        samples = np.frombuffer(raw, dtype="<i4").astype(np.float32) / 2147483648.0
    else:
        raise AudioFormatError(f"unsupported sample width: {width} bytes")

    if channels > 1:
        usable = len(samples) - len(samples) % channels
        samples = samples[:usable].reshape(-1, channels).mean(axis=1)
    return samples.astype(np.float32), rate


def resample(samples: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    """Linear-interpolation resampling."""
    if src_rate == dst_rate or len(samples) == 0:
        return samples.astype(np.float32)
    duration = len(samples) / src_rate
    target_length = max(int(round(duration * dst_rate)), 1)
    src_times = np.arange(len(samples)) / src_rate
    dst_times = np.arange(target_length) / dst_rate
    return np.interp(dst_times, src_times, samples).astype(np.float32)


def iter_frames(samples: np.ndarray, frame_size: int) -> Iterator[np.ndarray]:
    """Cut samples into consecutive frames; the last one may be shorter."""
    if frame_size <= 0:
        raise ValueError("frame_size must be positive")
    for start in range(0, len(samples), frame_size):
        yield samples[start : start + frame_size]


def prepare_recording(wav_bytes: bytes, *, rate: Optional[int] = None, frame_size: Optional[int] = None) -> list[np.ndarray]:
    """WAV recording -> 16 kHz mono frames ready for streaming."""
    samples, src_rate = read_wav(wav_bytes)
    target_rate = rate or settings.input_sample_rate
    return list(iter_frames(resample(samples, src_rate, target_rate), frame_size or settings.audio_frame_size))


# =============================================================================
# Encode / decode
# =============================================================================


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Float samples -> little-endian int16 bytes (``x * 32768``, clipped)."""
    scaled = np.clip(np.asarray(samples, dtype=np.float32) * INT16_SCALE, -32768, 32767)
    return scaled.astype("<i2").tobytes()


@dataclass(frozen=True)
class PcmBlob:
    data: bytes
    mime_type: str = INPUT_MIME_TYPE

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_genai(self) -> types.Blob:
        return types.Blob(data=self.data, mime_type=self.mime_type)


def create_pcm_blob(samples: np.ndarray) -> PcmBlob:
    return PcmBlob(float_to_pcm16(samples))


def decode(data: str | bytes) -> bytes:
    """Base64 text -> bytes. Raw bytes (what the Python SDK delivers) pass through."""
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


@dataclass
class AudioBuffer:
    """Decoded PCM: ``channels`` has shape (number_of_channels, length)."""

    channels: np.ndarray
    sample_rate: int

    @property
    def number_of_channels(self) -> int:
        return self.channels.shape[0]

    @property
    def length(self) -> int:
        return self.channels.shape[1]

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate

    def get_channel_data(self, channel: int) -> np.ndarray:
        return self.channels[channel]


def decode_audio_data(data: bytes, sample_rate: int, num_channels: int = 1) -> AudioBuffer:
    """Interleaved int16 PCM -> per-channel float samples (``value / 32768``)."""
    usable = len(data) - len(data) % 2
    pcm = np.frombuffer(data[:usable], dtype="<i2")
    frame_count = len(pcm) // num_channels
    interleaved = pcm[: frame_count * num_channels].reshape(frame_count, num_channels)
    return AudioBuffer(channels=(interleaved.T.astype(np.float32) / INT16_SCALE), sample_rate=sample_rate)


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Mono float samples -> 16-bit PCM WAV bytes."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(float_to_pcm16(samples))
    return buffer.getvalue()


# =============================================================================
# Playback scheduling
# =============================================================================


class _Stopwatch:
    """Seconds since construction; the default playback clock."""

    def __init__(self) -> None:
        self._origin = time.monotonic()

    def __call__(self) -> float:
        return time.monotonic() - self._origin


@dataclass(eq=False)
class ScheduledSource:
    buffer: AudioBuffer
    start_time: float
    source_id: int
    stopped_at: Optional[float] = None

    @property
    def end_time(self) -> float:
        natural_end = self.start_time + self.buffer.duration
        if self.stopped_at is None:
            return natural_end
        return max(self.start_time, min(natural_end, self.stopped_at))

    def stop(self, when: float) -> None:
        self.stopped_at = when


class PlaybackScheduler:
    """
    Gapless playback clock for streamed audio chunks.

    Each buffer starts at ``max(next_start_time, now)`` and pushes
    ``next_start_time`` forward by its duration. ``interrupt`` stops every
    active source and resets ``next_start_time`` to 0.
    """

    def __init__(self, sample_rate: int | None = None, clock: Callable[[], float] | None = None) -> None:
        self.sample_rate = sample_rate or settings.output_sample_rate
        self._clock = clock or _Stopwatch()
        self.next_start_time = 0.0
        self.sources: set[ScheduledSource] = set()
        self.timeline: list[ScheduledSource] = []
        self._ids = itertools.count(1)

    def now(self) -> float:
        return self._clock()

    def schedule(self, buffer: AudioBuffer) -> ScheduledSource:
        self.prune()
        self.next_start_time = max(self.next_start_time, self.now())
        source = ScheduledSource(buffer=buffer, start_time=self.next_start_time, source_id=next(self._ids))
        self.next_start_time += buffer.duration
        self.sources.add(source)
        self.timeline.append(source)
        return source

    def on_ended(self, source: ScheduledSource) -> None:
        self.sources.discard(source)

    def prune(self) -> None:
        """Fire ``on_ended`` for sources whose playback finished."""
        now = self.now()
        for source in [s for s in self.sources if s.end_time <= now]:
            self.on_ended(source)

    def interrupt(self) -> None:
        now = self.now()
        for source in self.sources:
            source.stop(now)
        self.sources.clear()
        self.next_start_time = 0.0

    def reset(self) -> None:
        self.interrupt()
        self.timeline.clear()

    @property
    def duration(self) -> float:
        """Length of the rendered clip in seconds."""
        audible = [s for s in self.timeline if s.end_time > s.start_time]
        if not audible:
            return 0.0
        return max(s.end_time for s in audible) - min(s.start_time for s in audible)

    def render(self) -> np.ndarray:
        """Mix the timeline (first channel of each buffer) into one mono track, leading silence trimmed."""
        audible = [s for s in self.timeline if s.end_time > s.start_time]
        if not audible:
            return np.zeros(0, dtype=np.float32)

        origin = min(s.start_time for s in audible)
        total = int(round((max(s.end_time for s in audible) - origin) * self.sample_rate))
        mix = np.zeros(total, dtype=np.float32)
        for source in audible:
            offset = int(round((source.start_time - origin) * self.sample_rate))
            played = int(round((source.end_time - source.start_time) * self.sample_rate))
            samples = source.buffer.get_channel_data(0)[:played]
            end = min(offset + len(samples), total)
            mix[offset:end] += samples[: end - offset]
        return np.clip(mix, -1.0, 1.0)

    def render_wav(self) -> bytes:
        return encode_wav(self.render(), self.sample_rate)


# =============================================================================
# Live session
# =============================================================================

# Failures of the realtime transport; anything else is a bug and propagates.
LIVE_ERRORS: tuple[type[BaseException], ...] = (
    genai_errors.APIError,
    httpx.HTTPError,
    WebSocketException,
    PharmaAIError,
    OSError,
    TimeoutError,
)


def translate_live_error(exc: BaseException) -> BaseException:
    """Like translate_gemini_error, with a dropped websocket counted as a lost connection."""
    if isinstance(exc, WebSocketException):
        return APIConnectionError(SERVICE_NAME, reason=str(exc) or type(exc).__name__)
    return translate_gemini_error(exc)


def build_live_config(voice: Optional[str] = None) -> types.LiveConnectConfig:
    return types.LiveConnectConfig(
        response_modalities=[types.Modality.AUDIO],
        system_instruction=SYSTEM_INSTRUCTION,
        speech_config=types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice or settings.live_voice),
            ),
        ),
    )


@dataclass
class TurnResult:
    chunks_sent: int = 0
    chunks_received: int = 0
    interrupted: bool = False
    audio: bytes = b""
    duration: float = 0.0
    errors: list[str] = field(default_factory=list)


class LiveSession:
    """
    One spoken consultation against the Live API.

    ``status`` and ``error`` carry the literal strings shown on the page.
    """

    def __init__(
        self,
        service: Any = None,
        *,
        model: Optional[str] = None,
        scheduler: Optional[PlaybackScheduler] = None,
    ) -> None:
        self._service = service if service is not None else get_gemini_service()
        self.model = model or settings.live_model
        self.scheduler = scheduler or PlaybackScheduler()
        self.status = STATUS_WAITING
        self.error: Optional[str] = None
        self.is_active = False

    def handle_message(self, message: Any, result: TurnResult) -> bool:
        """Schedule returned audio, honor interruptions. Returns True on turn completion."""
        content = getattr(message, "server_content", None)
        if content is None:
            return False

        model_turn = getattr(content, "model_turn", None)
        for part in getattr(model_turn, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                buffer = decode_audio_data(decode(inline.data), self.scheduler.sample_rate, 1)
                self.scheduler.schedule(buffer)
                result.chunks_received += 1

        if getattr(content, "interrupted", False):
            self.scheduler.interrupt()
            result.interrupted = True

        return bool(getattr(content, "turn_complete", False))

    async def run_turn(self, frames: Iterable[np.ndarray]) -> TurnResult:
        """Stream one recorded utterance and collect the spoken answer."""
        result = TurnResult()
        self.error = None
        self.status = STATUS_STARTING
        connected = False
        breaker = self._service.breaker

        try:
            breaker.before_call()
            async with self._service.client.aio.live.connect(model=self.model, config=build_live_config()) as session:
                connected = True
                self.status = STATUS_CONNECTED
                self.is_active = True
                log_event("live_session_opened", model=self.model)

                for frame in frames:
                    await session.send_realtime_input(audio=create_pcm_blob(frame).to_genai())
                    result.chunks_sent += 1
                await session.send_realtime_input(audio_stream_end=True)

                async for message in session.receive():
                    if self.handle_message(message, result):
                        break
        except LIVE_ERRORS as e:
            if isinstance(translate_live_error(e), GEMINI_TRANSIENT_ERRORS):
                breaker.record_failure()
            log_error("live_session_failed", e, connected=connected)
            if connected:
                self.error = CONNECTION_ERROR
                self.stop()
            else:
                self.error = SETUP_ERROR
                self.is_active = False
                self.status = STATUS_WAITING
            result.errors.append(self.error)
        else:
            breaker.record_success()
            self.status = STATUS_CLOSED
            self.is_active = False

        result.audio = self.scheduler.render_wav() if self.scheduler.duration > 0 else b""
        result.duration = self.scheduler.duration
        log_event(
            "live_turn_finished",
            chunks_sent=result.chunks_sent,
            chunks_received=result.chunks_received,
            interrupted=result.interrupted,
        )
        return result

    def stop(self) -> None:
        self.scheduler.interrupt()
        self.is_active = False
        self.status = STATUS_STOPPED
