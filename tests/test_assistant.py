"""Tests for the assistant conversation and pending edit batch."""

from __future__ import annotations

import pytest

from atelier.ai.assistant import GREETING, Assistant
from atelier.ai.client import ProviderError
from atelier.editor.workspace import Workspace
from atelier.project.errors import InvalidOperationError, NotFoundError

from tests.helpers import FakeProvider

REPLY = (
    "Here you go.\n"
    "```edit:/js/app.js\nconsole.log(2)\n```\n"
    "```new:/js/util.js\nexport const x = 1;\n```\n"
    "```edit:\nbroken\n```\n"
)


def test_history_starts_with_greeting(web_workspace: Workspace) -> None:
    assistant = Assistant(web_workspace, FakeProvider())

    assert [message.content for message in assistant.history] == [GREETING]
    assert Assistant(web_workspace, FakeProvider(), greeting=None).history == ()


@pytest.mark.asyncio
async def test_ask_builds_prompt_from_active_tab(web_workspace: Workspace) -> None:
    provider = FakeProvider("Sure.")
    web_workspace.session.open("/index.html")
    assistant = Assistant(web_workspace, provider)

    reply = await assistant.ask("  Add a footer  ")

    prompt = provider.prompts[0]
    assert "Current File: /index.html" in prompt
    assert "Current Language: html" in prompt
    assert prompt.endswith(f"\n\n{GREETING}\n\nAdd a footer")
    assert reply.role == "assistant"
    assert reply.content == "Sure."
    assert [message.role for message in assistant.history] == ["assistant", "user", "assistant"]


@pytest.mark.asyncio
async def test_ask_collects_pending_edits(web_workspace: Workspace) -> None:
    assistant = Assistant(web_workspace, FakeProvider(REPLY))

    reply = await assistant.ask("refactor")

    assert [directive.path for directive in assistant.pending] == ["/js/util.js", "/js/app.js"]
    assert assistant.pending.skipped == 1
    assert reply.metadata == {"edits": 2, "skipped_blocks": 1}


@pytest.mark.asyncio
async def test_apply_single_edit_removes_it_from_batch(web_workspace: Workspace) -> None:
    assistant = Assistant(web_workspace, FakeProvider(REPLY))
    await assistant.ask("refactor")

    node = assistant.apply(0)

    assert node.path == "/js/util.js"
    assert [directive.path for directive in assistant.pending] == ["/js/app.js"]
    assert web_workspace.session.current_file == "/js/util.js"


@pytest.mark.asyncio
async def test_failed_apply_keeps_edit_pending(web_workspace: Workspace) -> None:
    reply = "```edit:/nope.js\nx\n```"
    assistant = Assistant(web_workspace, FakeProvider(reply))
    await assistant.ask("edit nope")

    with pytest.raises(NotFoundError):
        assistant.apply(0)

    assert len(assistant.pending) == 1


@pytest.mark.asyncio
async def test_apply_all_and_reject(web_workspace: Workspace) -> None:
    assistant = Assistant(web_workspace, FakeProvider(REPLY, REPLY))
    await assistant.ask("refactor")

    report = assistant.apply_all()

    assert report.ok
    assert web_workspace.tree.find("/js/app.js").content == "console.log(2)"
    assert len(assistant.pending) == 0

    await assistant.ask("again")
    assert assistant.reject() == 2
    assert len(assistant.pending) == 0
    assert assistant.pending.skipped == 0


@pytest.mark.asyncio
async def test_discard_drops_one_edit(web_workspace: Workspace) -> None:
    assistant = Assistant(web_workspace, FakeProvider(REPLY))
    await assistant.ask("refactor")

    dropped = assistant.discard(1)

    assert dropped.path == "/js/app.js"
    with pytest.raises(NotFoundError):
        assistant.discard(5)


@pytest.mark.asyncio
async def test_provider_error_becomes_error_message(web_workspace: Workspace) -> None:
    provider = FakeProvider(error=ProviderError(503, "Service unavailable"))
    assistant = Assistant(web_workspace, provider)

    reply = await assistant.ask("hello")

    assert reply.is_error
    assert reply.metadata == {"error": True, "status": 503}
    assert reply.content == "Error: Service unavailable (status 503)"
    assert assistant.is_busy is False
    assert len(assistant.pending) == 0


@pytest.mark.asyncio
async def test_ollama_errors_include_troubleshooting(web_workspace: Workspace) -> None:
    provider = FakeProvider(error=ProviderError(None, "Ollama is unreachable"))
    provider.name = "ollama"
    assistant = Assistant(web_workspace, provider)

    reply = await assistant.ask("hello")

    assert reply.content.startswith("Error: Ollama is unreachable\n\nPlease make sure:")


@pytest.mark.asyncio
async def test_empty_message_is_rejected(web_workspace: Workspace) -> None:
    assistant = Assistant(web_workspace, FakeProvider())

    with pytest.raises(InvalidOperationError):
        await assistant.ask("   ")
    assert len(assistant.history) == 1


@pytest.mark.asyncio
async def test_aclose_closes_provider(web_workspace: Workspace) -> None:
    provider = FakeProvider()
    assistant = Assistant(web_workspace, provider)

    await assistant.aclose()

    assert provider.closed is True


@pytest.mark.asyncio
async def test_suggest_returns_blocks_without_touching_conversation(web_workspace: Workspace) -> None:
    provider = FakeProvider("```\nconst a = 1;\n```\n```\nconst b = 2;\n```")
    assistant = Assistant(web_workspace, provider)

    suggestions = await assistant.suggest("const a = 0;", "javascript")

    assert suggestions == ("const a = 1;", "const b = 2;")
    assert provider.prompts[0].startswith("You are an expert programmer. Given this javascript code:")
    assert "const a = 0;" in provider.prompts[0]
    assert len(assistant.history) == 1
    assert len(assistant.pending) == 0


@pytest.mark.asyncio
async def test_suggest_propagates_provider_errors(web_workspace: Workspace) -> None:
    provider = FakeProvider(error=ProviderError(500, "Ollama API request failed"))
    assistant = Assistant(web_workspace, provider)

    with pytest.raises(ProviderError):
        await assistant.suggest("print(1)", "python")
    assert len(assistant.history) == 1
