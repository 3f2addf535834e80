"""Failure taxonomy shared by the capture, playback and backend layers."""

from __future__ import annotations


class VoicePracticeError(RuntimeError):
    """Base class for every recoverable session failure."""


class CaptureError(VoicePracticeError):
    """Speech capture could not start."""


class CaptureUnavailable(CaptureError):
    """The host has no usable speech-to-text capability."""


class PermissionDenied(CaptureError):
    """Microphone access was declined."""


class SynthesisUnavailable(VoicePracticeError):
    """The host has no usable text-to-speech capability."""


class BackendClientError(VoicePracticeError):
    """A tutoring backend call failed."""


class NetworkError(BackendClientError):
    """Transport-level failure, including timeouts."""


class BackendError(BackendClientError):
    """The backend answered with a non-success status or an unusable body."""

    def __init__(self, status: int, detail: str) -> None:
        super().__init__(f"backend returned {status}: {detail}")
        self.status = status
        self.detail = detail
