"""Contracts for host speech capture and synthesis capabilities."""

from typing import Callable, Protocol


class TranscriptionSource(Protocol):
    """Continuous speech-to-text capability (microphone plus recognizer)."""

    def begin(self, on_phrase: Callable[[str], None]) -> None:
        """Start capturing; call ``on_phrase`` for every recognized phrase, possibly from another thread."""

    def end(self) -> None:
        """Stop capturing. Must tolerate being called when not capturing."""


class SpeechEngine(Protocol):
    """Text-to-speech capability."""

    async def say(self, text: str) -> None:
        """Speak ``text``, returning once the utterance has finished or was stopped."""

    def stop(self) -> None:
        """Interrupt the current utterance, if any."""
