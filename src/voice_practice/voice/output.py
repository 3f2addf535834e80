"""Text-to-speech orchestration for spoken tutor replies."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from voice_practice.errors import SynthesisUnavailable

from .events import Listeners, PlaybackEvent, PlaybackEventType
from .interfaces import SpeechEngine


@dataclass(slots=True)
class VoiceOutputConfig:
    """Configurable controls for response speech."""

    enabled: bool = True
    max_chars: int = 500


class SpeechPlaybackAdapter:
    """Plays one utterance at a time and reports started/ended/error transitions.

    Starting a new utterance silently supersedes the current one; the superseded
    utterance emits no further events.
    """

    def __init__(
        self,
        engine: SpeechEngine | None,
        config: VoiceOutputConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._engine = engine
        self._config = config or VoiceOutputConfig()
        self._logger = logger or logging.getLogger("voice_practice.voice.output")
        self._listeners: Listeners[PlaybackEvent] = Listeners()
        self._task: asyncio.Task[None] | None = None
        self._current: str | None = None
        self._generation = 0

    @property
    def available(self) -> bool:
        return self._engine is not None and self._config.enabled

    @property
    def speaking(self) -> bool:
        return self._current is not None

    def subscribe(self, callback: Callable[[PlaybackEvent], None]) -> Callable[[], None]:
        """Register for playback transitions; returns the unsubscribe handle."""
        return self._listeners.subscribe(callback)

    def speak(self, text: str) -> None:
        """Start speaking ``text`` in the background, replacing any current utterance."""
        engine = self._engine
        if engine is None or not self._config.enabled:
            raise SynthesisUnavailable("No speech synthesis capability is available.")

        normalized = " ".join(text.split())
        if not normalized:
            return

        self._interrupt()
        utterance = normalized[: self._config.max_chars]
        self._generation += 1
        self._current = utterance
        self._task = asyncio.get_running_loop().create_task(
            self._play(engine, utterance, self._generation),
            name="speech-playback",
        )

    def stop(self) -> None:
        """Cancel current playback. No-op when idle."""
        if self._current is None:
            return
        text = self._current
        self._interrupt()
        self._logger.info("playback_stopped")
        self._listeners.emit(PlaybackEvent(PlaybackEventType.ENDED, text))

    async def wait(self) -> None:
        """Wait for the current utterance, if any, to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _interrupt(self) -> None:
        self._generation += 1
        self._current = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            if self._engine is not None:
                self._engine.stop()
            task.cancel()

    async def _play(self, engine: SpeechEngine, text: str, generation: int) -> None:
        self._emit(generation, PlaybackEvent(PlaybackEventType.STARTED, text))
        try:
            await engine.say(text)
        except asyncio.CancelledError:
            return
        except Exception as exc:  # noqa: BLE001 - a broken synthesizer must leave the session usable.
            self._logger.warning("playback_failed", extra={"error": f"{type(exc).__name__}: {exc}"})
            self._finish(generation, PlaybackEvent(PlaybackEventType.ERROR, text, error=str(exc)))
            return
        self._finish(generation, PlaybackEvent(PlaybackEventType.ENDED, text))

    def _finish(self, generation: int, event: PlaybackEvent) -> None:
        if generation != self._generation:
            return
        self._current = None
        self._task = None
        self._listeners.emit(event)

    def _emit(self, generation: int, event: PlaybackEvent) -> None:
        if generation == self._generation:
            self._listeners.emit(event)
