from __future__ import annotations

import importlib

import httpx
import pytest

from voice_practice.backend import BackendClient


def test_console_entrypoint_exposes_app() -> None:
    pytest.importorskip("typer")

    module = importlib.import_module("voice_practice.main")

    assert hasattr(module, "app")
    assert module.app is not None


def test_start_prints_configuration() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from voice_practice.main import app

    result = typer_testing.CliRunner().invoke(app, ["start"])

    assert result.exit_code == 0
    assert "backend_url" in result.stdout


def test_ask_rejects_messages_over_word_limit() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from voice_practice.main import app

    result = typer_testing.CliRunner().invoke(app, ["ask", " ".join(["word"] * 31)])

    assert result.exit_code == 1
    assert "1-30 words" in result.stdout


def _mock_backend(handler):
    def _build() -> BackendClient:
        return BackendClient("http://tutor.test", transport=httpx.MockTransport(handler))

    return _build


def test_ask_prints_tutor_reply(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from voice_practice import main

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"response": "Paris is lovely in spring."})

    monkeypatch.setattr(main, "_build_backend", _mock_backend(handler))

    result = typer_testing.CliRunner().invoke(main.app, ["ask", "Tell me about Paris"])

    assert result.exit_code == 0
    assert "Paris is lovely in spring." in result.stdout


def test_analyze_reports_backend_error(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from voice_practice import main

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"detail": "analysis offline"})

    monkeypatch.setattr(main, "_build_backend", _mock_backend(handler))

    result = typer_testing.CliRunner().invoke(main.app, ["analyze", "I goed home"])

    assert result.exit_code == 1
    assert "analysis offline" in result.stdout


class RecordingEngine:
    def __init__(self) -> None:
        self.spoken: list[str] = []

    async def say(self, text: str) -> None:
        self.spoken.append(text)

    def stop(self) -> None:
        return None


def test_ask_speak_plays_the_reply(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from voice_practice import main
    from voice_practice.voice import SpeechCaptureAdapter, SpeechPlaybackAdapter

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"response": "Paris is lovely."})

    engine = RecordingEngine()
    monkeypatch.setattr(main, "_build_backend", _mock_backend(handler))
    monkeypatch.setattr(main, "_build_capture", lambda enabled: SpeechCaptureAdapter(None))
    monkeypatch.setattr(main, "_build_playback", lambda enabled: SpeechPlaybackAdapter(engine))

    result = typer_testing.CliRunner().invoke(main.app, ["ask", "--speak", "Tell me about Paris"])

    assert result.exit_code == 0
    assert engine.spoken == ["Paris is lovely."]


def test_ask_exits_nonzero_when_chat_fails(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from voice_practice import main

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "model overloaded"})

    monkeypatch.setattr(main, "_build_backend", _mock_backend(handler))

    result = typer_testing.CliRunner().invoke(main.app, ["ask", "Tell me about Paris"])

    assert result.exit_code == 1
    assert "model overloaded" in result.stdout
    assert "I'm sorry" not in result.stdout
