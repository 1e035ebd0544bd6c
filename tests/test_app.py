"""Tests for the command line entry point."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from atelier import app
from atelier.services.persistence import ProjectStore

from tests.helpers import FakeProvider


@pytest.fixture(autouse=True)
def _isolate(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("ATELIER_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def run_cli(tmp_path: Path):
    settings_path = tmp_path / "settings.json"
    project_path = tmp_path / "project.json"

    def _run(*argv: str) -> int:
        return app.main(["--settings-path", str(settings_path), "--project-path", str(project_path), *argv])

    _run.project_path = project_path  # type: ignore[attr-defined]
    return _run


def test_no_command_prints_help(run_cli, capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli() == 0
    assert "usage: atelier" in capsys.readouterr().out


def test_add_tree_and_remove(run_cli, capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli("tree") == 0
    assert "(empty project)" in capsys.readouterr().out

    assert run_cli("add", "/", "src", "--folder") == 0
    assert run_cli("add", "/src", "main.py", "--content", "print(1)") == 0
    capsys.readouterr()

    assert run_cli("tree") == 0
    out = capsys.readouterr().out
    assert "/src\n" in out
    assert "  " in out and "/src/main.py" in out

    snapshot = ProjectStore(run_cli.project_path).load()
    assert snapshot.files[0]["children"][0]["content"] == "print(1)"

    assert run_cli("rm", "/src") == 0
    assert "removed 2 node(s)" in capsys.readouterr().out
    assert ProjectStore(run_cli.project_path).load().files == []


def test_duplicate_add_reports_error(run_cli, capsys: pytest.CaptureFixture[str]) -> None:
    run_cli("add", "/", "a.js")

    assert run_cli("add", "/", "a.js") == 1
    assert "error: Path already exists: /a.js" in capsys.readouterr().err


def test_rm_missing_path_fails(run_cli, capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli("rm", "/ghost") == 1
    assert "nothing at /ghost" in capsys.readouterr().err


def test_theme_toggle_persists(run_cli, capsys: pytest.CaptureFixture[str]) -> None:
    assert run_cli("theme") == 0
    assert capsys.readouterr().out.strip() == "dark"

    assert run_cli("theme", "toggle") == 0
    assert capsys.readouterr().out.strip() == "light"
    assert ProjectStore(run_cli.project_path).load().theme == "light"


def test_ask_applies_suggested_changes(run_cli, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    run_cli("add", "/", "a.js", "--content", "console.log(1)")
    reply = "Done.\n```edit:/a.js\nconsole.log(2)\n```\n```new:/b.css\nbody{}\n```"
    provider = FakeProvider(reply)
    monkeypatch.setattr(app, "build_provider", lambda settings: provider)
    capsys.readouterr()

    assert run_cli("ask", "improve it", "--file", "/a.js", "--apply") == 0

    out = capsys.readouterr().out
    assert "Suggested changes:" in out
    assert "[0] New file suggested by AI - /b.css" in out
    assert "[1] Suggested edit by AI - /a.js" in out
    assert "created /b.css" in out
    assert "updated /a.js" in out
    assert "Current File: /a.js" in provider.prompts[0]
    assert provider.closed is True

    files = {entry["path"]: entry.get("content") for entry in ProjectStore(run_cli.project_path).load().files}
    assert files == {"/a.js": "console.log(2)", "/b.css": "body{}"}


def test_ask_reports_provider_errors(run_cli, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    from atelier.ai.client import ProviderError

    provider = FakeProvider(error=ProviderError(500, "boom"))
    monkeypatch.setattr(app, "build_provider", lambda settings: provider)

    assert run_cli("ask", "hello") == 1
    assert "Error: boom (status 500)" in capsys.readouterr().out


def test_dump_settings_redacts_secrets(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings_path = tmp_path / "settings.json"

    exit_code = app.main(
        [
            "--settings-path",
            str(settings_path),
            "--dump-settings",
            "--set",
            "api_key=sk-abcdef",
            "--set",
            "temperature=0.1",
            "--set",
            "debug_logging=true",
        ]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["api_key"] == "sk*****ef"
    assert payload["settings"]["temperature"] == 0.1
    assert payload["settings"]["debug_logging"] is True
    assert payload["meta"]["cli_overrides"] == ["api_key", "debug_logging", "temperature"]
    assert payload["meta"]["secret_backend"] == "fernet"


def test_invalid_override_is_rejected(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "nonsense=1", "tree"])

    assert exit_code == 2
    assert "Unknown setting 'nonsense'" in capsys.readouterr().err


def test_coerce_value_handles_optional_fields() -> None:
    overrides = app._coerce_cli_overrides(["project_path=none", "max_tokens=42", "model=llama3"])

    assert overrides == {"project_path": None, "max_tokens": 42, "model": "llama3"}
