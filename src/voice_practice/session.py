"""Voice practice session state machine.

The controller owns the conversation transcript and the session state. It drives
speech capture, enforces the recording window, runs the analysis/chat/speak
pipeline and reconciles user interruptions with work that is still in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from voice_practice.errors import BackendClientError, CaptureError, SynthesisUnavailable
from voice_practice.models import ChatReply, InputMode, Message, RecordingWindow, SpeechAnalysis
from voice_practice.telemetry import NullTelemetry, Telemetry
from voice_practice.voice.events import (
    Listeners,
    PlaybackEvent,
    PlaybackEventType,
    SessionEvent,
    SessionEventType,
)
from voice_practice.voice.input import SpeechCaptureAdapter, TypedInputPolicy
from voice_practice.voice.output import SpeechPlaybackAdapter

DEFAULT_GREETING = (
    "Hello! I'm your AI English tutor. Let's start practicing! "
    "Tell me about your day or ask me anything you'd like to discuss."
)
APOLOGY_TEXT = "I'm sorry, I encountered an error. Please try again."


class TutorBackend(Protocol):
    """Backend calls the session depends on."""

    async def analyze_speech(self, transcript: str, reference_text: str) -> SpeechAnalysis:
        """Score the transcript against the reference text."""

    async def chat(self, message: str) -> ChatReply:
        """Return the tutor's reply to one learner turn."""


class SessionPhase(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


class SessionStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    SENDING = "sending"
    SPEAKING = "speaking"


@dataclass(slots=True)
class SessionState:
    """Microphone phase plus the independent sending/speaking busy flags."""

    phase: SessionPhase = SessionPhase.IDLE
    sending: bool = False
    speaking: bool = False
    transcript: str = ""
    last_error: str | None = None

    @property
    def status(self) -> SessionStatus:
        if self.phase is SessionPhase.RECORDING:
            return SessionStatus.RECORDING
        if self.sending:
            return SessionStatus.SENDING
        if self.speaking:
            return SessionStatus.SPEAKING
        return SessionStatus.IDLE


class CelebrationObserver:
    """Session listener that fires when a voice turn scores above ``threshold``."""

    def __init__(self, on_celebrate: Callable[[Message], None], threshold: int = 80) -> None:
        self._on_celebrate = on_celebrate
        self._threshold = threshold

    def __call__(self, event: SessionEvent) -> None:
        message = event.message
        if event.type is not SessionEventType.ACCURACY_PATCHED or message is None:
            return
        if message.accuracy is not None and message.accuracy > self._threshold:
            self._on_celebrate(message)


class VoiceSessionController:
    """Single owner of session state and the message list."""

    def __init__(
        self,
        *,
        capture: SpeechCaptureAdapter,
        playback: SpeechPlaybackAdapter,
        backend: TutorBackend,
        typed_policy: TypedInputPolicy | None = None,
        recording_cap_seconds: float = 20.0,
        greeting: str | None = DEFAULT_GREETING,
        telemetry: Telemetry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._capture = capture
        self._playback = playback
        self._backend = backend
        self._typed_policy = typed_policy or TypedInputPolicy()
        self._recording_cap_seconds = recording_cap_seconds
        self._greeting = greeting
        self._telemetry = telemetry or NullTelemetry()
        self._logger = logger or logging.getLogger("voice_practice.session")

        self._state = SessionState()
        self._messages: list[Message] = []
        self._by_id: dict[str, Message] = {}
        self._listeners: Listeners[SessionEvent] = Listeners()
        self._unsubscribers: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task[object]] = set()
        self._window: RecordingWindow | None = None
        self._deadline: asyncio.TimerHandle | None = None
        self._starting_capture = False
        self._started = False
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def recording_window(self) -> RecordingWindow | None:
        return self._window

    @property
    def typed_policy(self) -> TypedInputPolicy:
        return self._typed_policy

    def get_message(self, message_id: str) -> Message:
        if message_id not in self._by_id:
            raise KeyError(f"Unknown message id: {message_id}")
        return self._by_id[message_id]

    def subscribe(self, callback: Callable[[SessionEvent], None]) -> Callable[[], None]:
        """Register for session events; returns the unsubscribe handle."""
        return self._listeners.subscribe(callback)

    async def start(self) -> None:
        """Attach to the adapters, seed the greeting and speak it."""
        if self._started:
            return
        self._started = True
        self._unsubscribers.append(self._capture.subscribe(self._on_transcript))
        self._unsubscribers.append(self._playback.subscribe(self._on_playback))
        if self._greeting:
            self._append(Message.from_assistant(self._greeting))
            self._speak(self._greeting)
        self._logger.info("session_started", extra={"recording_cap_seconds": self._recording_cap_seconds})

    async def close(self) -> None:
        """Detach from the adapters and abandon any outstanding work."""
        if self._closed:
            return
        self._closed = True
        self._cancel_deadline()
        self._window = None
        self._state.phase = SessionPhase.IDLE
        self._capture.stop()
        self._playback.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._listeners.clear()
        self._logger.info("session_closed", extra={"messages": len(self._messages)})

    async def drain(self) -> None:
        """Wait until every detached pipeline step (auto-send, analysis) has settled."""
        while True:
            pending = {task for task in self._tasks if not task.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    async def press_talk(self) -> bool:
        """Begin recording, interrupting tutor speech first. Returns whether recording started."""
        if self._closed or self._state.phase is SessionPhase.RECORDING or self._starting_capture:
            return False
        if self._state.sending:
            self._logger.info("talk_refused_while_sending")
            return False

        if self._playback.speaking:
            self._playback.stop()
            self._set_speaking(False)

        self._starting_capture = True
        self._state.last_error = None
        try:
            await self._capture.start()
        except CaptureError as exc:
            self._state.last_error = str(exc)
            self._logger.warning("capture_start_failed", extra={"error": f"{type(exc).__name__}: {exc}"})
            self._notify_state()
            return False
        finally:
            self._starting_capture = False

        if self._closed:
            self._capture.stop()
            return False

        loop = asyncio.get_running_loop()
        self._state.phase = SessionPhase.RECORDING
        self._state.transcript = ""
        self._window = RecordingWindow(cap_seconds=self._recording_cap_seconds, clock=loop.time)
        self._deadline = loop.call_later(self._recording_cap_seconds, self._on_recording_cap)
        self._telemetry.emit("recording_started", {"cap_seconds": self._recording_cap_seconds})
        self._notify_state()
        return True

    async def release_talk(self) -> Message | None:
        """Stop recording and send whatever was captured."""
        return await self._finish_recording(send=True, reason="release")

    async def send_voice_message(self) -> Message | None:
        """Send the captured transcript now, from a live recording or a held buffer."""
        if self._state.phase is SessionPhase.RECORDING:
            return await self._finish_recording(send=True, reason="manual")
        transcript = self._state.transcript.strip()
        if not transcript:
            return None
        return await self._send_voice(transcript)

    def cancel_recording(self) -> None:
        """Abandon the current recording without creating a message."""
        if self._state.phase is not SessionPhase.RECORDING:
            return
        self._leave_recording()
        self._state.transcript = ""
        self._telemetry.emit("recording_finished", {"reason": "cancel", "chars": 0})
        self._notify_state()

    async def send_typed_message(self, text: str) -> Message | None:
        """Send a typed turn. Text over the word cap or while a send is in flight is rejected."""
        content = text.strip()
        if not self._typed_policy.can_send(content):
            self._logger.info(
                "typed_message_rejected",
                extra={"words": self._typed_policy.word_count(content), "max_words": self._typed_policy.max_words},
            )
            return None
        if not self._begin_send():
            return None

        message = Message.from_user(content, InputMode.typed)
        self._append(message)
        await self._exchange(message)
        return message

    def can_send_typed(self, text: str) -> bool:
        return not self._state.sending and self._typed_policy.can_send(text.strip())

    async def wait_for_playback(self) -> None:
        """Wait until the utterance currently playing, if any, has finished."""
        await self._playback.wait()

    def stop_speaking(self) -> None:
        """Interrupt tutor speech. In-flight sends are unaffected."""
        self._playback.stop()
        self._set_speaking(False)

    def _on_recording_cap(self) -> None:
        self._deadline = None
        if self._state.phase is not SessionPhase.RECORDING:
            return
        self._logger.info("recording_cap_reached", extra={"cap_seconds": self._recording_cap_seconds})
        self._spawn(self._finish_recording(send=True, reason="cap"), name="recording-cap-send")

    async def _finish_recording(self, *, send: bool, reason: str) -> Message | None:
        if self._state.phase is not SessionPhase.RECORDING:
            return None
        self._leave_recording()
        transcript = (self._capture.transcript or self._state.transcript).strip()
        self._state.transcript = transcript
        self._telemetry.emit("recording_finished", {"reason": reason, "chars": len(transcript)})

        if not send or not transcript:
            self._state.transcript = ""
            self._notify_state()
            return None
        return await self._send_voice(transcript)

    def _leave_recording(self) -> None:
        self._cancel_deadline()
        self._window = None
        self._capture.stop()
        self._state.phase = SessionPhase.IDLE

    def _cancel_deadline(self) -> None:
        deadline, self._deadline = self._deadline, None
        if deadline is not None:
            deadline.cancel()

    def _begin_send(self) -> bool:
        if self._closed:
            return False
        if self._state.sending:
            self._logger.info("send_ignored_while_sending")
            return False
        self._state.sending = True
        self._state.last_error = None
        self._notify_state()
        return True

    async def _send_voice(self, transcript: str) -> Message | None:
        if not self._begin_send():
            # Keep the buffer so the learner can send it once the current turn settles.
            self._notify_state()
            return None

        message = Message.from_user(transcript, InputMode.voice)
        self._append(message)
        self._state.transcript = ""
        self._logger.info("voice_message_sent", extra={"message_id": message.id, "chars": len(transcript)})
        self._spawn(self._analyze(message), name=f"speech-analysis-{message.id}")
        await self._exchange(message)
        return message

    async def _analyze(self, message: Message) -> None:
        try:
            analysis = await self._backend.analyze_speech(message.content, message.content)
        except BackendClientError as exc:
            self._logger.warning(
                "speech_analysis_failed",
                extra={"message_id": message.id, "error": f"{type(exc).__name__}: {exc}"},
            )
            return
        self._patch_accuracy(message.id, analysis)

    def _patch_accuracy(self, message_id: str, analysis: SpeechAnalysis) -> None:
        target = self._by_id.get(message_id)
        if target is None or target.analyzed or self._closed:
            return
        target.accuracy = analysis.accuracy
        target.corrections = list(analysis.corrections)
        self._telemetry.emit("accuracy_patched", {"message_id": message_id, "accuracy": analysis.accuracy})
        self._listeners.emit(SessionEvent(SessionEventType.ACCURACY_PATCHED, target))

    async def _exchange(self, message: Message) -> None:
        try:
            reply = await self._backend.chat(message.content)
        except BackendClientError as exc:
            self._state.sending = False
            self._state.last_error = str(exc)
            self._logger.warning(
                "chat_failed",
                extra={"message_id": message.id, "error": f"{type(exc).__name__}: {exc}"},
            )
            self._telemetry.emit("turn_failed", {"message_id": message.id, "error": type(exc).__name__})
            if not self._closed:
                self._append(Message.from_assistant(APOLOGY_TEXT))
            self._notify_state()
            return
        finally:
            self._state.sending = False

        if self._closed:
            return
        answer = Message.from_assistant(reply.response)
        self._append(answer)
        input_mode = message.input_mode.value if message.input_mode else None
        self._telemetry.emit(
            "turn_completed",
            {"message_id": message.id, "reply_id": answer.id, "input_mode": input_mode},
        )
        self._speak(answer.content)
        self._notify_state()

    def _speak(self, text: str) -> None:
        if self._state.phase is SessionPhase.RECORDING or self._starting_capture:
            self._logger.info("reply_not_spoken_while_recording")
            return
        try:
            self._playback.speak(text)
        except SynthesisUnavailable as exc:
            self._logger.info("playback_unavailable", extra={"error": str(exc)})

    def _on_transcript(self, transcript: str) -> None:
        if self._state.phase is not SessionPhase.RECORDING:
            return
        self._state.transcript = transcript
        self._notify_state()

    def _on_playback(self, event: PlaybackEvent) -> None:
        self._set_speaking(event.type is PlaybackEventType.STARTED)

    def _set_speaking(self, speaking: bool) -> None:
        if self._state.speaking == speaking:
            return
        self._state.speaking = speaking
        self._notify_state()

    def _append(self, message: Message) -> None:
        self._messages.append(message)
        self._by_id[message.id] = message
        self._listeners.emit(SessionEvent(SessionEventType.MESSAGE_APPENDED, message))

    def _notify_state(self) -> None:
        self._listeners.emit(SessionEvent(SessionEventType.STATE_CHANGED))

    def _spawn(self, coro, *, name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
