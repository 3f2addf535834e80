"""Voice capture and playback module boundaries."""

from .events import Listeners, PlaybackEvent, PlaybackEventType, SessionEvent, SessionEventType
from .input import SpeechCaptureAdapter, TypedInputPolicy
from .interfaces import SpeechEngine, TranscriptionSource
from .output import SpeechPlaybackAdapter, VoiceOutputConfig

__all__ = [
    "Listeners",
    "PlaybackEvent",
    "PlaybackEventType",
    "SessionEvent",
    "SessionEventType",
    "SpeechCaptureAdapter",
    "SpeechEngine",
    "SpeechPlaybackAdapter",
    "TranscriptionSource",
    "TypedInputPolicy",
    "VoiceOutputConfig",
]
