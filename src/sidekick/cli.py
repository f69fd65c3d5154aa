"""Command line entrypoint: run prompts and inspect session costs."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from sidekick.agent.coordinator import Coordinator
from sidekick.agent.errors import (
    ConfigError,
    DelegationError,
    ModelBuildError,
    PromptBuildError,
    SessionNotFoundError,
    ToolBuildError,
)
from sidekick.agent.session_store import Session, SessionStore
from sidekick.agent.usage import format_usage_summary
from sidekick.config import AppConfig, load_config
from sidekick.log_utils import build_log_config, configure_logging
from sidekick.paths import sessions_dir

logger = logging.getLogger(__name__)

_console = Console(highlight=False)


def session_store(config: AppConfig) -> SessionStore:
    return SessionStore(sessions_dir(config.options.data_dir))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sidekick", description="Coding agent with delegated sub-agents")
    parser.add_argument("--config", type=Path, default=None, help="Path to sidekick.json")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Send a prompt to the coder agent")
    run.add_argument("prompt")
    run.add_argument("--session", default=None, help="Continue an existing session")

    sub.add_parser("sessions", help="List sessions")

    show = sub.add_parser("session", help="Show a session and its delegated children")
    show.add_argument("session_id")
    return parser


def _sessions_table(sessions: list[Session]) -> Table:
    table = Table(title="Sessions")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("title")
    table.add_column("parent", style="dim")
    table.add_column("messages", justify="right")
    table.add_column("cost", justify="right", style="green")
    for session in sessions:
        table.add_row(
            session.id,
            session.title,
            session.parent_session_id or "",
            str(session.message_count),
            f"${session.cost:.4f}",
        )
    return table


def _session_label(session: Session) -> Text:
    return Text.assemble((session.title, "bold"), f"  {session.id}  ", (f"${session.cost:.4f}", "green"))


async def _session_tree(store: SessionStore, session: Session, tree: Tree | None = None) -> Tree:
    node = Tree(_session_label(session)) if tree is None else tree.add(_session_label(session))
    for child in await store.children(session.id):
        await _session_tree(store, child, node)
    return node


async def _run(coordinator: Coordinator, prompt: str, session_id: str | None) -> int:
    if session_id is None:
        session_id = (await coordinator.create_session()).id
    result = await coordinator.run(session_id, prompt)
    session = await coordinator.sessions.get(session_id)
    _console.print(result.response)
    _console.print(
        Text(format_usage_summary(session.prompt_tokens, session.completion_tokens, session.cost), style="dim")
    )
    _console.print(Text(f"session: {session_id}", style="dim"))
    return 0


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(build_log_config(log_file_name="sidekick.log"))

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        _console.print(Text(str(exc), style="red"))
        return 2

    store = session_store(config)
    try:
        if args.command == "run":
            return await _run(Coordinator(config, store), args.prompt, args.session)
        if args.command == "sessions":
            _console.print(_sessions_table(await store.list_sessions()))
            return 0
        if args.command == "session":
            _console.print(await _session_tree(store, await store.get(args.session_id)))
            return 0
    except (SessionNotFoundError, ModelBuildError, PromptBuildError, ToolBuildError, DelegationError) as exc:
        logger.error("Command %s failed: %s", args.command, exc)
        _console.print(Text(str(exc), style="red"))
        return 1
    return 2


def main_entry() -> int:
    try:
        return asyncio.run(main(sys.argv[1:]))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main_entry())
