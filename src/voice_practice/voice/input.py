"""Speech capture and typed-input guards."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Callable

from voice_practice.errors import CaptureError, CaptureUnavailable

from .events import Listeners
from .interfaces import TranscriptionSource


@dataclass(slots=True)
class TypedInputPolicy:
    """Client-side cap on typed message length, counted in whitespace-separated words."""

    max_words: int = 30

    @staticmethod
    def word_count(text: str) -> int:
        return len(text.split())

    def can_send(self, text: str) -> bool:
        count = self.word_count(text)
        return 0 < count <= self.max_words

    def words_left(self, text: str) -> int:
        return self.max_words - self.word_count(text)


class SpeechCaptureAdapter:
    """Turns a continuous transcription source into cumulative transcript snapshots.

    The latest snapshot is always readable through :attr:`transcript`; listeners are
    notified on every change. Phrases may arrive from a recognizer thread and are
    marshalled onto the event loop that called :meth:`start`.
    """

    def __init__(self, source: TranscriptionSource | None, *, logger: logging.Logger | None = None) -> None:
        self._source = source
        self._logger = logger or logging.getLogger("voice_practice.voice.input")
        self._listeners: Listeners[str] = Listeners()
        self._phrases: list[str] = []
        self._active = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._changed: asyncio.Event | None = None
        self._session = 0

    @property
    def available(self) -> bool:
        return self._source is not None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def transcript(self) -> str:
        return " ".join(self._phrases)

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register for transcript snapshots; returns the unsubscribe handle."""
        return self._listeners.subscribe(callback)

    async def start(self) -> None:
        """Begin a fresh capture. No-op when already capturing."""
        if self._active:
            return
        if self._source is None:
            raise CaptureUnavailable("No speech capture capability is available on this host.")

        self._loop = asyncio.get_running_loop()
        self._changed = asyncio.Event()
        self._phrases = []
        self._session += 1
        session = self._session
        source = self._source

        def _on_phrase(text: str) -> None:
            loop = self._loop
            if loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(self._accept_phrase, session, text)

        try:
            # Opening the microphone may block on a permission prompt.
            await asyncio.to_thread(source.begin, _on_phrase)
        except CaptureError:
            raise
        except OSError as exc:
            raise CaptureUnavailable(f"Microphone could not be opened: {exc}") from exc
        except Exception as exc:
            raise CaptureUnavailable(f"Speech capture failed to start: {exc}") from exc

        self._active = True
        self._logger.info("capture_started", extra={"session": session})

    def stop(self) -> None:
        """End capture. Always succeeds, even if capture never started."""
        if not self._active:
            return
        self._active = False
        self._session += 1
        if self._source is not None:
            try:
                self._source.end()
            except Exception:  # noqa: BLE001 - stop must always succeed.
                self._logger.exception("capture_stop_failed")
        self._notify_waiters()
        self._logger.info("capture_stopped", extra={"chars": len(self.transcript)})

    async def snapshots(self) -> AsyncIterator[str]:
        """Yield the cumulative transcript each time it changes until capture stops."""
        if not self._active or self._changed is None:
            return
        seen: str | None = None
        while self._active:
            current = self.transcript
            if current != seen:
                seen = current
                yield current
                continue
            await self._changed.wait()

    def _accept_phrase(self, session: int, text: str) -> None:
        if session != self._session:
            return
        phrase = " ".join(text.split())
        if not phrase:
            return
        self._phrases.append(phrase)
        self._listeners.emit(self.transcript)
        self._notify_waiters()

    def _notify_waiters(self) -> None:
        changed = self._changed
        if changed is None:
            return
        self._changed = asyncio.Event()
        changed.set()
