"""String-in/string-out completion providers for the assistant."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, InternalServerError, OpenAIError, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

__all__ = [
    "ClientSettings",
    "OllamaProvider",
    "OpenAIProvider",
    "Provider",
    "ProviderError",
    "build_provider",
]

LOGGER = logging.getLogger(__name__)

_OLLAMA_OPTIONS: Mapping[str, Any] = {"top_p": 0.9, "top_k": 40, "num_ctx": 4096}


class ProviderError(RuntimeError):
    """Raised when a provider is unreachable, unauthorized, or answers badly."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (status {self.status})"


class Provider(Protocol):
    """Completion backend contract: prompt text in, completion text out."""

    name: str

    async def complete(self, prompt: str) -> str:  # pragma: no cover - protocol
        ...

    async def aclose(self) -> None:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure a provider."""

    provider: str
    model: str
    base_url: str
    api_key: str = ""
    temperature: float | None = 0.7
    max_tokens: int | None = 2_000
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: Any) -> "ClientSettings":
        provider = (settings.provider or "").strip().lower()
        base_url = settings.ollama_url if provider == "ollama" else settings.base_url
        return cls(
            provider=provider,
            model=settings.model,
            base_url=base_url,
            api_key=settings.api_key,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            debug_logging=settings.debug_logging,
        )


def _retrying(settings: ClientSettings, retry_on: tuple[type[BaseException], ...]) -> AsyncRetrying:
    return AsyncRetrying(
        reraise=True,
        stop=stop_after_attempt(max(1, settings.max_retries)),
        wait=wait_exponential(multiplier=settings.retry_min_seconds, max=settings.retry_max_seconds),
        retry=retry_if_exception_type(retry_on),
    )


class OllamaProvider:
    """Provider talking to a local Ollama server via ``/api/generate``."""

    name = "ollama"

    def __init__(self, settings: ClientSettings, *, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=settings.request_timeout,
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete(self, prompt: str) -> str:
        payload: dict[str, Any] = {
            "model": self._settings.model,
            "prompt": prompt,
            "stream": False,
            "options": dict(_OLLAMA_OPTIONS),
        }
        if self._settings.temperature is not None:
            payload["options"]["temperature"] = self._settings.temperature
        LOGGER.debug("Requesting completion from Ollama model %s (%d chars)", self._settings.model, len(prompt))
        if self._settings.debug_logging:
            LOGGER.debug("Ollama prompt:\n%s", prompt)

        try:
            async for attempt in _retrying(self._settings, (httpx.TransportError,)):
                with attempt:
                    response = await self._client.post("/api/generate", json=payload)
        except httpx.TransportError as exc:
            raise ProviderError(None, f"Ollama is unreachable: {exc}") from exc

        if response.is_error:
            raise ProviderError(response.status_code, f"Ollama API error: {response.reason_phrase}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(response.status_code, "Malformed response from Ollama") from exc
        text = data.get("response") if isinstance(data, Mapping) else None
        if not isinstance(text, str):
            raise ProviderError(response.status_code, "Malformed response from Ollama")
        return text

    async def aclose(self) -> None:
        await self._client.aclose()


class OpenAIProvider:
    """Provider backed by an OpenAI-compatible chat completions endpoint."""

    name = "openai"

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        if client is None and not settings.api_key:
            raise ProviderError(None, "OpenAI API key not configured")
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def complete(self, prompt: str) -> str:
        request: dict[str, Any] = {
            "model": self._settings.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self._settings.temperature is not None:
            request["temperature"] = self._settings.temperature
        if self._settings.max_tokens is not None:
            request["max_tokens"] = self._settings.max_tokens
        LOGGER.debug("Requesting chat completion via %s (%d chars)", self._settings.model, len(prompt))

        try:
            async for attempt in _retrying(self._settings, (APIConnectionError, RateLimitError, InternalServerError)):
                with attempt:
                    response = await self._client.chat.completions.create(**request)
        except APIStatusError as exc:
            raise ProviderError(exc.status_code, f"OpenAI API error: {exc.message}") from exc
        except APIConnectionError as exc:
            raise ProviderError(None, f"OpenAI API is unreachable: {exc}") from exc
        except OpenAIError as exc:
            raise ProviderError(None, f"OpenAI API error: {exc}") from exc

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as exc:
            raise ProviderError(None, "Malformed response from OpenAI") from exc
        if not isinstance(content, str):
            raise ProviderError(None, "Malformed response from OpenAI")
        return content

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result


def build_provider(settings: ClientSettings) -> Provider:
    """Instantiate the backend selected by ``settings.provider``."""

    if settings.provider == OllamaProvider.name:
        return OllamaProvider(settings)
    if settings.provider == OpenAIProvider.name:
        return OpenAIProvider(settings)
    raise ProviderError(None, f"Unsupported AI provider: {settings.provider}")
