"""Text-to-speech backend powered by ``pyttsx3``."""

from __future__ import annotations

import asyncio
import threading

from voice_practice.errors import SynthesisUnavailable

from .interfaces import SpeechEngine


class Pyttsx3SpeechEngine(SpeechEngine):
    """Speaker playback using a local pyttsx3 engine instance.

    ``rate`` is relative to the engine's default speaking rate.
    """

    def __init__(self, *, voice_id: str | None = None, rate: float = 0.9, volume: float = 1.0) -> None:
        try:
            import pyttsx3
        except ImportError as exc:  # pragma: no cover - import guard
            raise SynthesisUnavailable(
                "Voice TTS backend unavailable. Install extras with: pip install 'voice-practice[voice]'"
            ) from exc

        try:
            self._engine = pyttsx3.init()
        except (OSError, RuntimeError) as exc:
            raise SynthesisUnavailable(f"Speech synthesis could not be initialised: {exc}") from exc

        if voice_id:
            self._engine.setProperty("voice", voice_id)
        base_rate = self._engine.getProperty("rate") or 200
        self._engine.setProperty("rate", int(base_rate * max(0.1, rate)))
        self._engine.setProperty("volume", max(0.0, min(1.0, volume)))
        self._lock = threading.Lock()

    async def say(self, text: str) -> None:
        await asyncio.to_thread(self._say_blocking, text)

    def stop(self) -> None:
        self._engine.stop()

    def _say_blocking(self, text: str) -> None:
        with self._lock:
            self._engine.say(text)
            self._engine.runAndWait()
