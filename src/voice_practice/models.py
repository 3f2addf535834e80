from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class MessageRole(str, Enum):
    user = "user"
    assistant = "assistant"


class InputMode(str, Enum):
    voice = "voice"
    typed = "typed"


@dataclass(slots=True)
class Message:
    """One conversation turn.

    ``accuracy`` and ``corrections`` are filled in later, once, for voice turns whose
    speech analysis succeeded.
    """

    role: MessageRole
    content: str
    input_mode: InputMode | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    accuracy: int | None = None
    corrections: list[str] | None = None

    @classmethod
    def from_user(cls, content: str, input_mode: InputMode) -> Message:
        return cls(role=MessageRole.user, content=content, input_mode=input_mode)

    @classmethod
    def from_assistant(cls, content: str) -> Message:
        return cls(role=MessageRole.assistant, content=content)

    @property
    def analyzed(self) -> bool:
        return self.accuracy is not None


@dataclass(slots=True)
class RecordingWindow:
    """Bounded recording period; exists only while a recording is active."""

    cap_seconds: float
    clock: Callable[[], float] = time.monotonic
    started_at: float = field(default=0.0)

    def __post_init__(self) -> None:
        if not self.started_at:
            self.started_at = self.clock()

    @property
    def elapsed(self) -> float:
        return max(0.0, self.clock() - self.started_at)

    @property
    def remaining(self) -> float:
        return max(0.0, self.cap_seconds - self.elapsed)

    @property
    def progress(self) -> float:
        """Remaining share of the window as a percentage, counting down from 100."""
        if self.cap_seconds <= 0:
            return 0.0
        return self.remaining / self.cap_seconds * 100

    @property
    def expired(self) -> bool:
        return self.elapsed >= self.cap_seconds


class SpeechAnalysis(BaseModel):
    """Body returned by ``POST /api/speech/analyze``."""

    accuracy: int
    corrections: list[str] = Field(default_factory=list)

    @field_validator("accuracy", mode="before")
    @classmethod
    def clamp_accuracy(cls, value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError("accuracy must be numeric")
        score = round(float(value))
        return max(0, min(100, score))


class ChatReply(BaseModel):
    """Body returned by ``POST /api/chat``."""

    response: str
