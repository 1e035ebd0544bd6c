"""Shared test helpers and stub classes."""

from __future__ import annotations

from atelier.ai.client import ProviderError


class FakeProvider:
    """Provider stub returning canned replies and recording prompts."""

    name = "fake"

    def __init__(self, *replies: str, error: ProviderError | None = None) -> None:
        self._replies = list(replies)
        self._error = error
        self.prompts: list[str] = []
        self.closed = False

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return self._replies.pop(0) if self._replies else ""

    async def aclose(self) -> None:
        self.closed = True
