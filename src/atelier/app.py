"""Command line entry point for inspecting and editing an Atelier project."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO

from .ai.assistant import Assistant
from .ai.client import ClientSettings, ProviderError, build_provider
from .ai.context import render_tree
from .editor.workspace import Workspace
from .project.errors import AtelierError
from .project.tree import FILE, FOLDER
from .services.execution import ExecutionError, ExecutionRequest, Judge0Executor, language_id_for
from .services.persistence import ProjectStore
from .services.settings import Settings, SettingsStore, parse_override, redact_secret
from .utils import logging as logging_utils

_DEBUG_WORDS = frozenset({"1", "true", "yes", "on", "debug"})
_SECRET_FIELDS = ("api_key", "execution_api_key")
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, force: bool = False, secrets: Sequence[str] = ()) -> None:
    level = logging_utils.level_for(debug)
    logging_utils.setup_logging(level, force=force, secrets=secrets)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``atelier`` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = _debug_requested()
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("ATELIER_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2
    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0
    secrets = tuple(value for value in (getattr(settings, name) for name in _SECRET_FIELDS) if value)
    if secrets or (settings.debug_logging and not debug):
        configure_logging(debug or settings.debug_logging, force=True, secrets=secrets)
    if args.command is None:
        parser.print_help()
        return 0

    project_path = args.project_path or settings.project_path
    project_store = ProjectStore(Path(project_path).expanduser() if project_path else None)
    workspace = Workspace.from_snapshot(project_store.load())

    try:
        return _COMMANDS[args.command](args, settings, workspace, project_store)
    except AtelierError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
def _cmd_tree(args: argparse.Namespace, settings: Settings, workspace: Workspace, store: ProjectStore) -> int:
    outline = render_tree(workspace.tree)
    sys.stdout.write(outline or "(empty project)\n")
    return 0


def _cmd_add(args: argparse.Namespace, settings: Settings, workspace: Workspace, store: ProjectStore) -> int:
    node = workspace.create(args.parent, args.name, FOLDER if args.folder else FILE)
    if args.content is not None and node.is_file:
        workspace.set_content(node.path, args.content)
    store.save(workspace.snapshot())
    print(f"created {node.type} {node.path}")
    return 0


def _cmd_rm(args: argparse.Namespace, settings: Settings, workspace: Workspace, store: ProjectStore) -> int:
    removed = workspace.delete(args.path)
    if not removed:
        print(f"error: nothing at {args.path}", file=sys.stderr)
        return 1
    store.save(workspace.snapshot())
    print(f"removed {len(removed)} node(s)")
    return 0


def _cmd_theme(args: argparse.Namespace, settings: Settings, workspace: Workspace, store: ProjectStore) -> int:
    if args.value == "toggle":
        workspace.toggle_theme()
    elif args.value:
        workspace.set_theme(args.value)
    else:
        print(workspace.theme)
        return 0
    store.save(workspace.snapshot())
    print(workspace.theme)
    return 0


def _cmd_ask(args: argparse.Namespace, settings: Settings, workspace: Workspace, store: ProjectStore) -> int:
    if args.file:
        workspace.session.open(args.file)
    try:
        provider = build_provider(ClientSettings.from_settings(settings))
    except ProviderError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    assistant = Assistant(workspace, provider)
    reply = asyncio.run(_ask_once(assistant, args.prompt))
    print(reply.content)
    if reply.is_error:
        return 1

    pending = list(assistant.pending)
    if pending:
        print("\nSuggested changes:")
        for index, directive in enumerate(pending):
            print(f"  [{index}] {directive.description} - {directive.path}")
    if assistant.pending.skipped:
        print(f"  ({assistant.pending.skipped} malformed block(s) ignored)")

    if args.apply and pending:
        report = assistant.apply_all()
        for outcome in report.outcomes:
            print(outcome.summary())
        store.save(workspace.snapshot())
        return 0 if report.ok else 1
    return 0


def _cmd_run(args: argparse.Namespace, settings: Settings, workspace: Workspace, store: ProjectStore) -> int:
    node = workspace.tree.require_file(args.path)
    try:
        request = ExecutionRequest(source_text=node.content or "", language_id=language_id_for(node.name))
        executor = Judge0Executor(settings.execution_url, api_key=settings.execution_api_key)
        result = asyncio.run(_execute_once(executor, request))
    except ExecutionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if result.stdout:
        sys.stdout.write(result.stdout)
    if result.stderr:
        sys.stderr.write(result.stderr)
    return 0 if not result.stderr else 1


async def _ask_once(assistant: Assistant, prompt: str):
    try:
        return await assistant.ask(prompt)
    finally:
        await assistant.aclose()


async def _execute_once(executor: Judge0Executor, request: ExecutionRequest):
    try:
        return await executor.execute(request)
    finally:
        await executor.aclose()


_COMMANDS = {
    "tree": _cmd_tree,
    "add": _cmd_add,
    "rm": _cmd_rm,
    "theme": _cmd_theme,
    "ask": _cmd_ask,
    "run": _cmd_run,
}


# ----------------------------------------------------------------------
# Argument parsing
# ----------------------------------------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atelier",
        description="Inspect and edit an Atelier project, or ask the assistant for changes.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument("--settings-path", metavar="PATH", help="Override the default ~/.atelier/settings.json path.")
    parser.add_argument("--project-path", metavar="PATH", help="Override the default ~/.atelier/project.json path.")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("tree", help="Print the project outline.")

    add = commands.add_parser("add", help="Create a file or folder.")
    add.add_argument("parent", help="Parent folder path ('/' for the root).")
    add.add_argument("name")
    add.add_argument("--folder", action="store_true", help="Create a folder instead of a file.")
    add.add_argument("--content", help="Initial file content.")

    remove = commands.add_parser("rm", help="Delete a file or folder with its contents.")
    remove.add_argument("path")

    theme = commands.add_parser("theme", help="Show or change the theme.")
    theme.add_argument("value", nargs="?", choices=("light", "dark", "toggle"))

    ask = commands.add_parser("ask", help="Ask the assistant about the project.")
    ask.add_argument("prompt")
    ask.add_argument("--file", help="Open this file first so it becomes the current file.")
    ask.add_argument("--apply", action="store_true", help="Apply every suggested change and save the project.")

    run = commands.add_parser("run", help="Execute a project file on the configured execution service.")
    run.add_argument("path")
    return parser


def _debug_requested() -> bool:
    return os.environ.get("ATELIER_DEBUG", "").strip().lower() in _DEBUG_WORDS


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    return dict(parse_override(entry) for entry in items)


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    for secret_field in _SECRET_FIELDS:
        payload[secret_field] = redact_secret(payload.get(secret_field) or "")
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": sorted(name for name in os.environ if name.startswith("ATELIER_")),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")
