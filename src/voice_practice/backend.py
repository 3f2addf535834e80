"""HTTP client for the tutoring backend.

Each call is attempted exactly once. Transport failures surface as ``NetworkError``
and non-success answers as ``BackendError``; the caller decides what to do next.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ValidationError

from voice_practice.errors import BackendError, NetworkError
from voice_practice.models import ChatReply, SpeechAnalysis

CHAT_PATH = "/api/chat"
ANALYZE_PATH = "/api/speech/analyze"


class CredentialProvider(Protocol):
    """Supplies the opaque bearer credential owned by the auth layer."""

    def token(self) -> str | None:
        """Return the current credential, or ``None`` when signed out."""


class StaticCredentials:
    """Credential holder for a token obtained out of band."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def token(self) -> str | None:
        return self._token


class BackendClient:
    """Issues speech-analysis and chat requests against the tutoring backend."""

    def __init__(
        self,
        base_url: str,
        *,
        credentials: CredentialProvider | None = None,
        user_id: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._credentials = credentials or StaticCredentials()
        self._user_id = user_id
        self._logger = logger or logging.getLogger("voice_practice.backend")
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    async def analyze_speech(self, transcript: str, reference_text: str) -> SpeechAnalysis:
        """Score ``transcript`` against ``reference_text``."""
        payload = {"transcript": transcript, "original_text": reference_text}
        return await self._post(ANALYZE_PATH, payload, SpeechAnalysis)

    async def chat(self, message: str) -> ChatReply:
        """Send one learner turn and return the tutor's reply."""
        return await self._post(CHAT_PATH, {"message": message}, ChatReply)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._credentials.token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _post(self, path: str, payload: dict[str, Any], model: type[BaseModel]) -> Any:
        if self._user_id is not None:
            payload = {**payload, "user_id": self._user_id}

        try:
            resp = await self._client.post(path, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            self._logger.warning("backend_timeout", extra={"path": path})
            raise NetworkError(f"request to {path} timed out") from exc
        except httpx.TransportError as exc:
            self._logger.warning("backend_unreachable", extra={"path": path, "error": str(exc)})
            raise NetworkError(f"request to {path} failed: {exc}") from exc

        if not resp.is_success:
            detail = self._error_detail(resp)
            self._logger.warning(
                "backend_error_status",
                extra={"path": path, "status": resp.status_code, "detail": detail},
            )
            raise BackendError(resp.status_code, detail)

        try:
            result = model.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            self._logger.warning("backend_malformed_response", extra={"path": path, "status": resp.status_code})
            raise BackendError(resp.status_code, "malformed response") from exc

        self._logger.debug("backend_call_succeeded", extra={"path": path, "status": resp.status_code})
        return result

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or resp.reason_phrase
        if isinstance(body, dict):
            for key in ("detail", "error"):
                if body.get(key):
                    return str(body[key])
        return resp.text or resp.reason_phrase
