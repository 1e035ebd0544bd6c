"""Client for a Judge0-compatible remote code execution service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Protocol
from urllib.parse import urlparse

import httpx

from ..editor.languages import extension_of

__all__ = [
    "ExecutionError",
    "ExecutionProvider",
    "ExecutionRequest",
    "ExecutionResult",
    "JUDGE0_LANGUAGE_IDS",
    "Judge0Executor",
    "language_id_for",
]

LOGGER = logging.getLogger(__name__)

JUDGE0_LANGUAGE_IDS: Mapping[str, int] = MappingProxyType(
    {
        "js": 63,
        "py": 71,
        "java": 62,
        "cpp": 54,
        "c": 50,
        "cs": 51,
        "go": 60,
        "rs": 73,
        "rb": 72,
        "php": 68,
        "swift": 83,
        "kt": 78,
        "scala": 81,
    }
)
_PENDING_STATUS_IDS = frozenset({1, 2})


class ExecutionError(RuntimeError):
    """Raised when the execution service rejects or fails a submission."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(slots=True, frozen=True)
class ExecutionRequest:
    source_text: str
    language_id: int
    stdin: str = ""


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    stdout: str = ""
    stderr: str = ""
    status: str | None = None


class ExecutionProvider(Protocol):
    async def execute(self, request: ExecutionRequest) -> ExecutionResult:  # pragma: no cover - protocol
        ...


def language_id_for(name: str) -> int:
    """Return the Judge0 language id for a file name."""

    ext = extension_of(name)
    try:
        return JUDGE0_LANGUAGE_IDS[ext]
    except KeyError:
        raise ExecutionError(f"Execution is not supported for .{ext} files") from None


class Judge0Executor:
    """Submits source text to Judge0 and polls until a result is ready."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        client: httpx.AsyncClient | None = None,
        poll_interval: float = 1.0,
        max_polls: int = 30,
        timeout: float = 30.0,
    ) -> None:
        headers = {"content-type": "application/json"}
        if api_key:
            headers["X-RapidAPI-Host"] = urlparse(base_url).netloc
            headers["X-RapidAPI-Key"] = api_key
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout)
        self._poll_interval = max(0.0, poll_interval)
        self._max_polls = max(1, max_polls)

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        token = await self._submit(request)
        LOGGER.debug("Submitted execution %s (language %s)", token, request.language_id)
        for attempt in range(self._max_polls):
            payload = await self._fetch(token)
            status = payload.get("status") or {}
            if status.get("id") not in _PENDING_STATUS_IDS:
                return _to_result(payload)
            if attempt + 1 < self._max_polls:
                await asyncio.sleep(self._poll_interval)
        raise ExecutionError(f"Execution {token} did not finish after {self._max_polls} polls")

    async def _submit(self, request: ExecutionRequest) -> str:
        body = {
            "source_code": request.source_text,
            "language_id": request.language_id,
            "stdin": request.stdin,
        }
        data = await self._request("POST", "/submissions", params={"base64_encoded": "false"}, json=body)
        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise ExecutionError("Execution service returned no submission token")
        return token

    async def _fetch(self, token: str) -> Mapping[str, Any]:
        return await self._request("GET", f"/submissions/{token}", params={"base64_encoded": "false"})

    async def _request(self, method: str, url: str, **kwargs: Any) -> Mapping[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise ExecutionError(f"Execution service is unreachable: {exc}") from exc
        if response.is_error:
            raise ExecutionError(f"Execution service error: {response.reason_phrase}", status=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise ExecutionError("Malformed response from execution service", status=response.status_code) from exc
        if not isinstance(data, Mapping):
            raise ExecutionError("Malformed response from execution service", status=response.status_code)
        return data

    async def aclose(self) -> None:
        await self._client.aclose()


def _to_result(payload: Mapping[str, Any]) -> ExecutionResult:
    stderr_parts = [part for part in (payload.get("compile_output"), payload.get("stderr")) if part]
    status = payload.get("status") or {}
    return ExecutionResult(
        stdout=payload.get("stdout") or "",
        stderr="\n".join(stderr_parts),
        status=status.get("description"),
    )
