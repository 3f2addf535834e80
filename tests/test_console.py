from __future__ import annotations

import asyncio
import io

from rich.console import Console

from voice_practice.cli import ConsoleAction, ConsoleCommandHandler, MessagePrinter, parse_console_line
from voice_practice.models import ChatReply, SpeechAnalysis
from voice_practice.session import SessionPhase, VoiceSessionController
from voice_practice.voice.input import SpeechCaptureAdapter, TypedInputPolicy
from voice_practice.voice.output import SpeechPlaybackAdapter


class StubSource:
    def __init__(self) -> None:
        self.on_phrase = None

    def begin(self, on_phrase) -> None:
        self.on_phrase = on_phrase

    def end(self) -> None:
        self.on_phrase = None


class EchoBackend:
    def __init__(self) -> None:
        self.chat_calls: list[str] = []

    async def analyze_speech(self, transcript: str, reference_text: str) -> SpeechAnalysis:
        return SpeechAnalysis(accuracy=72, corrections=["Use the past tense."])

    async def chat(self, message: str) -> ChatReply:
        self.chat_calls.append(message)
        return ChatReply(response=f"echo: {message}")


def _setup(source=None, max_words: int = 30):
    backend = EchoBackend()
    controller = VoiceSessionController(
        capture=SpeechCaptureAdapter(source or StubSource()),
        playback=SpeechPlaybackAdapter(None),
        backend=backend,
        typed_policy=TypedInputPolicy(max_words=max_words),
        greeting="Welcome back!",
    )
    output = io.StringIO()
    console = Console(file=output, width=120, color_system=None)
    controller.subscribe(MessagePrinter(console))
    return controller, backend, ConsoleCommandHandler(controller, console), output


def test_parse_console_line_shortcuts() -> None:
    assert parse_console_line("") == (ConsoleAction.TALK, "")
    assert parse_console_line("  Q ") == (ConsoleAction.QUIT, "")
    assert parse_console_line("c") == (ConsoleAction.CANCEL, "")
    assert parse_console_line("s") == (ConsoleAction.STOP_SPEAKING, "")
    assert parse_console_line(" I visited Paris ") == (ConsoleAction.TYPED, "I visited Paris")


def test_typed_line_is_sent_and_printed() -> None:
    async def _run():
        controller, backend, handler, output = _setup()
        await controller.start()
        keep_going = await handler.handle("I visited Paris last year")
        return keep_going, backend.chat_calls, output.getvalue()

    keep_going, chat_calls, printed = asyncio.run(_run())
    assert keep_going is True
    assert chat_calls == ["I visited Paris last year"]
    assert "Tutor: Welcome back!" in printed
    assert "You: I visited Paris last year" in printed
    assert "Tutor: echo: I visited Paris last year" in printed


def test_over_limit_line_is_rejected_with_hint() -> None:
    async def _run():
        controller, backend, handler, output = _setup(max_words=3)
        await controller.start()
        await handler.handle("one two three four")
        return backend.chat_calls, output.getvalue()

    chat_calls, printed = asyncio.run(_run())
    assert chat_calls == []
    assert "limited to 3 words" in printed


def test_enter_toggles_recording_and_sends_voice_turn() -> None:
    async def _run():
        source = StubSource()
        controller, backend, handler, output = _setup(source=source)
        await controller.start()
        await handler.handle("")
        phase_after_first = controller.state.phase
        source.on_phrase("I goed to school")
        for _ in range(3):
            await asyncio.sleep(0)
        await handler.handle("")
        await controller.drain()
        return phase_after_first, controller.state.phase, backend.chat_calls, output.getvalue()

    first_phase, final_phase, chat_calls, printed = asyncio.run(_run())
    assert first_phase is SessionPhase.RECORDING
    assert final_phase is SessionPhase.IDLE
    assert chat_calls == ["I goed to school"]
    assert "accuracy 72%" in printed
    assert "- Use the past tense." in printed


def test_microphone_failure_is_reported() -> None:
    async def _run():
        controller = VoiceSessionController(
            capture=SpeechCaptureAdapter(None),
            playback=SpeechPlaybackAdapter(None),
            backend=EchoBackend(),
            greeting=None,
        )
        output = io.StringIO()
        handler = ConsoleCommandHandler(controller, Console(file=output, width=120, color_system=None))
        await controller.start()
        await handler.handle("")
        return controller.state.phase, output.getvalue()

    phase, printed = asyncio.run(_run())
    assert phase is SessionPhase.IDLE
    assert "Microphone unavailable" in printed


def test_quit_stops_the_loop() -> None:
    async def _run():
        controller, _, handler, _ = _setup()
        await controller.start()
        return await handler.handle("q")

    assert asyncio.run(_run()) is False
