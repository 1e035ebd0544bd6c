"""Assistant conversation with a pending batch of suggested edits."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Literal

from ..editor.applicator import ApplyReport
from ..editor.directives import EditDirective, extract_directives
from ..editor.workspace import Workspace
from ..project.errors import InvalidOperationError, NotFoundError
from ..project.tree import FileNode
from .client import Provider, ProviderError
from .context import build_prompt, build_suggestion_prompt, flatten_conversation, split_suggestions

__all__ = ["Assistant", "ChatMessage", "PendingBatch", "GREETING"]

LOGGER = logging.getLogger(__name__)

ChatRole = Literal["user", "assistant"]

GREETING = (
    "Hi! I'm your AI coding assistant. I can help you with your code and understand your project "
    "structure. I can suggest edits, create new files, and help improve your code. How can I help you today?"
)
_TROUBLESHOOTING = {
    "ollama": (
        "Please make sure:\n"
        "1. Ollama is running (check http://localhost:11434)\n"
        "2. The model is installed (run: ollama pull <model>)\n"
        "3. The model is running (run: ollama run <model>)\n\n"
        "If the issue persists, try restarting Ollama."
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ChatMessage:
    """A single entry in the assistant conversation."""

    role: ChatRole
    content: str
    created_at: datetime = field(default_factory=_utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return bool(self.metadata.get("error"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }


@dataclass(slots=True)
class PendingBatch:
    """Directives suggested by the last reply and not yet applied or rejected."""

    directives: List[EditDirective] = field(default_factory=list)
    skipped: int = 0

    def __iter__(self) -> Iterator[EditDirective]:
        return iter(list(self.directives))

    def __len__(self) -> int:
        return len(self.directives)

    def get(self, index: int) -> EditDirective:
        if not 0 <= index < len(self.directives):
            raise NotFoundError(f"No pending edit at index {index}", reason="unknown_edit")
        return self.directives[index]

    def remove(self, index: int) -> EditDirective:
        directive = self.get(index)
        del self.directives[index]
        return directive

    def clear(self) -> int:
        count = len(self.directives)
        self.directives.clear()
        self.skipped = 0
        return count


class Assistant:
    """Runs assistant turns against a :class:`Workspace`.

    Each reply is scanned for directives, which wait in :attr:`pending`
    until they are applied (individually or together) or rejected.
    """

    def __init__(self, workspace: Workspace, provider: Provider, *, greeting: str | None = GREETING) -> None:
        self._workspace = workspace
        self._provider = provider
        self._history: List[ChatMessage] = []
        self._pending = PendingBatch()
        self._busy = False
        if greeting:
            self._history.append(ChatMessage(role="assistant", content=greeting))

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        return tuple(self._history)

    @property
    def pending(self) -> PendingBatch:
        return self._pending

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def ask(self, text: str) -> ChatMessage:
        """Send ``text`` with the current project context and record the reply.

        Provider failures are recorded as an assistant error message instead
        of being raised.
        """

        prompt_text = (text or "").strip()
        if not prompt_text:
            raise InvalidOperationError("Cannot send an empty message", reason="empty_message")
        if self._busy:
            raise InvalidOperationError("An assistant request is already in progress", reason="busy")

        self._history.append(ChatMessage(role="user", content=prompt_text))
        self._pending.clear()
        session = self._workspace.session
        system_prompt = build_prompt(
            self._workspace.tree,
            current_file=session.current_file,
            language=session.language,
            code=session.buffer,
        )
        prompt = flatten_conversation(system_prompt, [message.content for message in self._history])

        self._busy = True
        try:
            reply_text = await self._provider.complete(prompt)
        except ProviderError as exc:
            LOGGER.warning("Assistant request via %s failed: %s", getattr(self._provider, "name", "provider"), exc)
            message = ChatMessage(
                role="assistant",
                content=self._format_error(exc),
                metadata={"error": True, "status": exc.status},
            )
            self._history.append(message)
            return message
        finally:
            self._busy = False

        result = extract_directives(reply_text)
        self._pending = PendingBatch(directives=list(result.directives), skipped=result.skipped)
        message = ChatMessage(
            role="assistant",
            content=reply_text,
            metadata={"edits": len(result), "skipped_blocks": result.skipped},
        )
        self._history.append(message)
        return message

    async def suggest(self, code: str, language: str) -> tuple[str, ...]:
        """Ask for standalone code suggestions for ``code``.

        Suggestions stay out of the conversation and the pending batch.
        Provider failures propagate as :class:`ProviderError`.
        """

        reply_text = await self._provider.complete(build_suggestion_prompt(code, language))
        suggestions = split_suggestions(reply_text)
        LOGGER.debug("Received %d code suggestion(s)", len(suggestions))
        return suggestions

    def apply(self, index: int) -> FileNode:
        """Apply one pending edit; it leaves the batch only when it succeeds."""

        directive = self._pending.get(index)
        node = self._workspace.apply(directive)
        self._pending.remove(index)
        return node

    def apply_all(self) -> ApplyReport:
        report = self._workspace.apply_all(list(self._pending))
        self._pending.clear()
        return report

    def discard(self, index: int) -> EditDirective:
        return self._pending.remove(index)

    def reject(self) -> int:
        """Drop every pending edit without applying any of them."""

        count = self._pending.clear()
        LOGGER.debug("Rejected %d pending edit(s)", count)
        return count

    def _format_error(self, error: ProviderError) -> str:
        hint = _TROUBLESHOOTING.get(getattr(self._provider, "name", ""), "")
        body = f"Error: {error}"
        return f"{body}\n\n{hint}" if hint else body

    async def aclose(self) -> None:
        await self._provider.aclose()
