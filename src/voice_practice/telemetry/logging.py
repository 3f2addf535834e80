"""Contract for runtime telemetry and structured logging sinks."""

from __future__ import annotations

import logging
from typing import Protocol

from rich.console import Console
from rich.logging import RichHandler


class Telemetry(Protocol):
    """Reports session events and tutoring outcomes."""

    def emit(self, event_name: str, payload: dict) -> None:
        """Publish telemetry event to the configured sink."""


class LoggingTelemetry:
    """Telemetry sink that writes each event as a structured log record."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("voice_practice.telemetry")

    def emit(self, event_name: str, payload: dict) -> None:
        self._logger.info(event_name, extra={"telemetry": payload})


class NullTelemetry:
    def emit(self, event_name: str, payload: dict) -> None:
        return None


def configure_logging(level: str = "INFO") -> None:
    """Route log records through rich for interactive terminals."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
