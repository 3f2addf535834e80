"""Event payloads and the subscription helper used across the session layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, TypeVar

from voice_practice.models import Message

T = TypeVar("T")

_logger = logging.getLogger("voice_practice.voice.events")


class Listeners(Generic[T]):
    """Ordered set of callbacks with unsubscribe handles."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def emit(self, event: T) -> None:
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:  # noqa: BLE001 - one bad listener must not break the emitter.
                _logger.exception("listener_failed", extra={"event": repr(event)})

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)


class PlaybackEventType(str, Enum):
    STARTED = "started"
    ENDED = "ended"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class PlaybackEvent:
    type: PlaybackEventType
    text: str
    error: str | None = None


class SessionEventType(str, Enum):
    MESSAGE_APPENDED = "message_appended"
    ACCURACY_PATCHED = "accuracy_patched"
    STATE_CHANGED = "state_changed"


@dataclass(slots=True, frozen=True)
class SessionEvent:
    type: SessionEventType
    message: Message | None = None
