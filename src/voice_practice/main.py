"""CLI startup entrypoint for voice practice."""

from __future__ import annotations

import asyncio

import typer
from rich import print
from rich.console import Console

from voice_practice.backend import BackendClient, StaticCredentials
from voice_practice.cli import ConsoleCommandHandler, MessagePrinter
from voice_practice.config import settings
from voice_practice.errors import BackendClientError, CaptureUnavailable, SynthesisUnavailable
from voice_practice.models import Message
from voice_practice.session import CelebrationObserver, VoiceSessionController
from voice_practice.telemetry import LoggingTelemetry, NullTelemetry, configure_logging
from voice_practice.voice import SpeechCaptureAdapter, SpeechPlaybackAdapter, TypedInputPolicy, VoiceOutputConfig

app = typer.Typer(help="Voice practice session entrypoint")


def _build_backend() -> BackendClient:
    token = settings.api_token.get_secret_value() if settings.api_token else None
    return BackendClient(
        settings.backend_url,
        credentials=StaticCredentials(token),
        user_id=settings.user_id,
        timeout_seconds=settings.request_timeout_seconds,
    )


def _build_capture(enabled: bool) -> SpeechCaptureAdapter:
    if not enabled:
        return SpeechCaptureAdapter(None)
    try:
        from voice_practice.voice.stt_speechrecognition import SpeechRecognitionSource

        return SpeechCaptureAdapter(SpeechRecognitionSource())
    except CaptureUnavailable as exc:
        print({"warning": str(exc)})
        return SpeechCaptureAdapter(None)


def _build_playback(enabled: bool) -> SpeechPlaybackAdapter:
    config = VoiceOutputConfig(enabled=enabled, max_chars=settings.speech_max_chars)
    if not enabled:
        return SpeechPlaybackAdapter(None, config)
    try:
        from voice_practice.voice.tts_pyttsx3 import Pyttsx3SpeechEngine

        engine = Pyttsx3SpeechEngine(rate=settings.speech_rate, volume=settings.speech_volume)
    except SynthesisUnavailable as exc:
        print({"warning": str(exc)})
        return SpeechPlaybackAdapter(None, config)
    return SpeechPlaybackAdapter(engine, config)


def _build_controller(
    backend: BackendClient,
    *,
    voice: bool,
    greeting: bool = True,
) -> VoiceSessionController:
    options = {} if greeting else {"greeting": None}
    return VoiceSessionController(
        capture=_build_capture(voice),
        playback=_build_playback(voice),
        backend=backend,
        typed_policy=TypedInputPolicy(max_words=settings.typed_word_limit),
        recording_cap_seconds=settings.recording_cap_seconds,
        telemetry=LoggingTelemetry() if settings.telemetry_enabled else NullTelemetry(),
        **options,
    )


@app.callback()
def _configure(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")) -> None:
    configure_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def start() -> None:
    """Show runtime backend configuration."""
    print(
        {
            "app_name": settings.app_name,
            "backend_url": settings.backend_url,
            "authenticated": settings.api_token is not None,
            "recording_cap_seconds": settings.recording_cap_seconds,
            "typed_word_limit": settings.typed_word_limit,
            "voice_enabled": settings.voice_enabled,
        }
    )


@app.command()
def ask(
    message: str = typer.Argument(..., help="Message to send to the tutor"),
    speak: bool = typer.Option(False, help="Speak the reply aloud"),
) -> None:
    """Send one typed turn to the tutor and print the reply."""
    policy = TypedInputPolicy(max_words=settings.typed_word_limit)
    if not policy.can_send(message):
        print({"error": f"Typed messages must contain 1-{policy.max_words} words."})
        raise typer.Exit(code=1)

    async def _run() -> tuple[list[Message], str | None]:
        backend = _build_backend()
        controller = _build_controller(backend, voice=speak, greeting=False)
        try:
            await controller.start()
            await controller.send_typed_message(message)
            await controller.drain()
            error = controller.state.last_error
            if speak and error is None:
                await controller.wait_for_playback()
            return controller.messages, error
        finally:
            await controller.close()
            await backend.close()

    messages, error = asyncio.run(_run())
    if error is not None:
        print({"sent": message, "error": error})
        raise typer.Exit(code=1)
    print({"sent": message, "reply": messages[-1].content if len(messages) > 1 else None})


@app.command()
def analyze(
    transcript: str = typer.Argument(..., help="What was said"),
    reference: str = typer.Option(None, help="Reference text; defaults to the transcript itself"),
) -> None:
    """Score a transcript with the backend speech analysis."""

    async def _run():
        async with _build_backend() as backend:
            return await backend.analyze_speech(transcript, reference or transcript)

    try:
        result = asyncio.run(_run())
    except BackendClientError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    print({"accuracy": result.accuracy, "corrections": result.corrections})


@app.command()
def practice(
    voice: bool = typer.Option(settings.voice_enabled, help="Use the microphone and speak replies"),
) -> None:
    """Run an interactive practice session."""
    console = Console()

    async def _run() -> None:
        backend = _build_backend()
        controller = _build_controller(backend, voice=voice)
        controller.subscribe(MessagePrinter(console))
        controller.subscribe(
            CelebrationObserver(
                lambda message: console.print(f"[bold green]Great job! {message.accuracy}% accuracy[/]"),
                threshold=settings.celebration_threshold,
            )
        )
        handler = ConsoleCommandHandler(controller, console)
        console.print("Press Enter to talk and again to send, type to chat, 's' stops the tutor, 'q' quits.")
        try:
            await controller.start()
            while True:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break
                if not await handler.handle(line):
                    break
            await controller.drain()
        finally:
            await controller.close()
            await backend.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        print({"practice": "interrupted"})


if __name__ == "__main__":
    app()
