"""Continuous speech-to-text capture powered by ``speech_recognition``."""

from __future__ import annotations

import logging
from typing import Any, Callable

from voice_practice.errors import CaptureUnavailable, PermissionDenied

from .interfaces import TranscriptionSource

_INSTALL_HINT = "Install extras with: pip install 'voice-practice[voice]'"


class SpeechRecognitionSource(TranscriptionSource):
    """Listen on the default microphone in the background and recognize each phrase."""

    def __init__(
        self,
        *,
        language: str = "en-US",
        phrase_time_limit: float | None = 5.0,
        sample_rate: int = 16_000,
        chunk_size: int = 1024,
        adjust_noise_seconds: float = 0.2,
        logger: logging.Logger | None = None,
    ) -> None:
        try:
            import speech_recognition as sr
        except ImportError as exc:  # pragma: no cover - import guard
            raise CaptureUnavailable(f"Voice STT backend unavailable. {_INSTALL_HINT}") from exc
        self._sr = sr
        self._recognizer = sr.Recognizer()
        self._language = language
        self._phrase_time_limit = phrase_time_limit
        self._sample_rate = sample_rate
        self._chunk_size = chunk_size
        self._adjust_noise_seconds = max(0.0, adjust_noise_seconds)
        self._logger = logger or logging.getLogger("voice_practice.voice.stt")
        self._stopper: Callable[..., None] | None = None

    def begin(self, on_phrase: Callable[[str], None]) -> None:
        if self._stopper is not None:
            return
        try:
            microphone = self._sr.Microphone(sample_rate=self._sample_rate, chunk_size=self._chunk_size)
            # The device stream is only opened on enter.
            with microphone as source:
                if self._adjust_noise_seconds > 0:
                    self._recognizer.adjust_for_ambient_noise(source, duration=self._adjust_noise_seconds)
        except AttributeError as exc:  # raised by speech_recognition when PyAudio is missing
            raise CaptureUnavailable(f"Microphone backend unavailable. {_INSTALL_HINT}") from exc
        except OSError as exc:
            raise PermissionDenied(f"Microphone access failed: {exc}") from exc

        def _callback(recognizer: Any, audio: Any) -> None:
            try:
                text = recognizer.recognize_google(audio, language=self._language)
            except self._sr.UnknownValueError:
                return
            except self._sr.RequestError as exc:
                self._logger.warning("speech_recognition_request_failed", extra={"error": str(exc)})
                return
            if text:
                on_phrase(text)

        self._stopper = self._recognizer.listen_in_background(
            microphone,
            _callback,
            phrase_time_limit=self._phrase_time_limit,
        )

    def end(self) -> None:
        stopper, self._stopper = self._stopper, None
        if stopper is not None:
            stopper(wait_for_stop=False)
