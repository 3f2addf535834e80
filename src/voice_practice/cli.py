"""Terminal-side handlers for the interactive practice loop."""

from __future__ import annotations

from enum import Enum

from rich.console import Console
from rich.text import Text

from voice_practice.models import Message, MessageRole
from voice_practice.session import SessionPhase, VoiceSessionController
from voice_practice.voice.events import SessionEvent, SessionEventType


class ConsoleAction(str, Enum):
    """What a line typed at the practice prompt asks for."""

    TALK = "talk"
    CANCEL = "cancel"
    STOP_SPEAKING = "stop_speaking"
    QUIT = "quit"
    TYPED = "typed"


_SHORTCUTS = {
    "": ConsoleAction.TALK,
    "c": ConsoleAction.CANCEL,
    "s": ConsoleAction.STOP_SPEAKING,
    "q": ConsoleAction.QUIT,
}


def parse_console_line(line: str) -> tuple[ConsoleAction, str]:
    stripped = line.strip()
    action = _SHORTCUTS.get(stripped.lower())
    if action is not None:
        return action, ""
    return ConsoleAction.TYPED, stripped


class ConsoleCommandHandler:
    """Sync-friendly facade mapping prompt lines onto controller actions."""

    def __init__(self, controller: VoiceSessionController, console: Console | None = None) -> None:
        self._controller = controller
        self._console = console or Console()

    async def handle(self, line: str) -> bool:
        """Apply one prompt line. Returns ``False`` once the user asked to quit."""
        action, text = parse_console_line(line)
        controller = self._controller

        if action is ConsoleAction.QUIT:
            return False
        if action is ConsoleAction.TALK:
            if controller.state.phase is SessionPhase.RECORDING:
                await controller.release_talk()
            elif await controller.press_talk():
                self._console.print("[bold red]Recording...[/] press Enter to send, 'c' to cancel.")
            elif controller.state.last_error:
                self._console.print(f"[red]Microphone unavailable:[/] {controller.state.last_error}")
            return True
        if action is ConsoleAction.CANCEL:
            controller.cancel_recording()
            return True
        if action is ConsoleAction.STOP_SPEAKING:
            controller.stop_speaking()
            return True

        if not controller.typed_policy.can_send(text):
            limit = controller.typed_policy.max_words
            self._console.print(f"[yellow]Typed messages are limited to {limit} words.[/]")
            return True
        await controller.send_typed_message(text)
        return True


class MessagePrinter:
    """Session listener that prints new turns and late accuracy results."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def __call__(self, event: SessionEvent) -> None:
        message = event.message
        if message is None:
            return
        if event.type is SessionEventType.MESSAGE_APPENDED:
            self._console.print(render_message(message))
        elif event.type is SessionEventType.ACCURACY_PATCHED:
            self._console.print(render_accuracy(message))


def render_message(message: Message) -> Text:
    if message.role is MessageRole.user:
        return Text.assemble(("You: ", "bold magenta"), message.content)
    return Text.assemble(("Tutor: ", "bold cyan"), message.content)


def render_accuracy(message: Message) -> Text:
    text = Text.assemble(("  accuracy ", "dim"), (f"{message.accuracy}%", "bold green"))
    for correction in message.corrections or []:
        text.append(f"\n  - {correction}", style="yellow")
    return text
