from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Callable, TextIO

from quotesync.application.sync_reporting import format_conflict, format_quote, format_sync_status
from quotesync.bootstrap.container import AppContainer, build_container
from quotesync.bootstrap.logging import configure_logging, install_exception_hook, log_operational_error
from quotesync.bootstrap.settings import resolve_log_dir
from quotesync.core.errors import BusinessError, InfraError
from quotesync.domain.sync_models import SyncOutcome, SyncTrigger
from quotesync.infrastructure.db import get_connection

logger = logging.getLogger(__name__)

ContainerFactory = Callable[[argparse.Namespace], AppContainer]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quotesync", description="Local quote replica with remote sync")
    parser.add_argument("--db", type=Path, help="SQLite database file")
    parser.add_argument("--log-dir", type=Path, help="Directory for JSON Lines logs")
    parser.add_argument("--remote", choices=("http", "sheets"), help="Remote source kind")
    parser.add_argument("--endpoint", help="HTTP endpoint returning a JSON array")
    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="List quotes")
    list_cmd.add_argument("--category", help="Filter and remember the category ('all' clears it)")
    commands.add_parser("categories", help="List categories")
    random_cmd = commands.add_parser("random", help="Show a random quote")
    random_cmd.add_argument("--category")

    add_cmd = commands.add_parser("add", help="Add a quote")
    add_cmd.add_argument("--text", required=True)
    add_cmd.add_argument("--author")
    add_cmd.add_argument("--category")

    import_cmd = commands.add_parser("import", help="Import quotes from a JSON file")
    import_cmd.add_argument("path", type=Path)
    export_cmd = commands.add_parser("export", help="Export quotes as JSON")
    export_cmd.add_argument("path", type=Path, nargs="?")

    commands.add_parser("sync", help="Run one sync cycle now")
    watch_cmd = commands.add_parser("watch", help="Sync periodically")
    watch_cmd.add_argument("--cycles", type=int, help="Stop after this many cycles")
    watch_cmd.add_argument("--interval", type=float, help="Seconds between cycles")

    commands.add_parser("conflicts", help="List open conflicts")
    resolve_cmd = commands.add_parser("resolve", help="Resolve a conflict")
    resolve_cmd.add_argument("id")
    resolve_cmd.add_argument("choice", choices=("local", "server"))
    return parser


def _default_container(args: argparse.Namespace) -> AppContainer:
    overrides = {"remote_kind": args.remote, "endpoint": args.endpoint}
    if getattr(args, "interval", None):
        overrides["sync_interval_seconds"] = args.interval
    return build_container(partial(get_connection, args.db), overrides=overrides)


def _write(out: TextIO, text: str) -> None:
    out.write(text + "\n")


def _cmd_list(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    category = container.preferences.save(args.category) if args.category else container.preferences.load()
    quotes = container.replica.filter_by_category(category)
    if not quotes:
        _write(out, "No quotes available.")
        return 0
    for quote in quotes:
        _write(out, f"{quote.id}  {format_quote(quote)}")
    return 0


def _cmd_categories(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    selected = container.preferences.load()
    for category in container.replica.categories():
        marker = "*" if category == selected else " "
        _write(out, f"{marker} {category}")
    return 0


def _cmd_random(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    quote = container.replica.random_quote(args.category or container.preferences.load())
    _write(out, format_quote(quote) if quote else "No quotes available.")
    return 0


def _cmd_add(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    raw = {"text": args.text, "author": args.author, "category": args.category}
    quote = container.replica.add({key: value for key, value in raw.items() if value is not None})
    _write(out, f"Added {quote.id}  {format_quote(quote)}")
    return 0


def _cmd_import(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    result = container.replica.import_json(args.path.read_text(encoding="utf-8"))
    _write(out, f"Imported {result.imported} quotes, rejected {result.rejected}.")
    for error in result.errors:
        _write(out, f"  {error}")
    return 0


def _cmd_export(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    document = container.replica.export_json()
    if args.path is None:
        _write(out, document)
        return 0
    args.path.write_text(document, encoding="utf-8")
    _write(out, f"Exported {len(container.replica)} quotes to {args.path}")
    return 0


def _cmd_sync(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    outcome = container.orchestrator.run_cycle(SyncTrigger.MANUAL)
    _write(out, format_sync_status(outcome))
    return 0 if outcome.succeeded else 1


def _cmd_watch(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    def _report(outcome: SyncOutcome) -> None:
        _write(out, format_sync_status(outcome))
        out.flush()

    container.orchestrator.add_listener(_report)
    try:
        container.scheduler.run_forever(max_cycles=args.cycles)
    except KeyboardInterrupt:
        logger.info("Watch interrupted")
    return 0


def _cmd_conflicts(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    conflicts = container.ledger.list()
    if not conflicts:
        _write(out, "No open conflicts.")
        return 0
    for conflict in conflicts:
        _write(out, format_conflict(conflict))
    return 0


def _cmd_resolve(container: AppContainer, args: argparse.Namespace, out: TextIO) -> int:
    quote = container.ledger.resolve(args.id, args.choice)
    if quote is None:
        _write(out, f"No open conflict for {args.id}.")
        return 1
    _write(out, f"Resolved {args.id} with {args.choice}: {format_quote(quote)}")
    return 0


COMMANDS: dict[str, Callable[[AppContainer, argparse.Namespace, TextIO], int]] = {
    "list": _cmd_list,
    "categories": _cmd_categories,
    "random": _cmd_random,
    "add": _cmd_add,
    "import": _cmd_import,
    "export": _cmd_export,
    "sync": _cmd_sync,
    "watch": _cmd_watch,
    "conflicts": _cmd_conflicts,
    "resolve": _cmd_resolve,
}


def main(
    argv: list[str] | None = None,
    *,
    container_factory: ContainerFactory = _default_container,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    args = _build_parser().parse_args(argv)
    out = stdout or sys.stdout
    err = stderr or sys.stderr

    log_dir = args.log_dir or resolve_log_dir()
    configure_logging(log_dir)
    install_exception_hook(log_dir)
    logger.info("Command started", extra={"extra": {"command": args.command, "log_dir": str(log_dir)}})

    container = container_factory(args)
    try:
        return COMMANDS[args.command](container, args, out)
    except BusinessError as exc:
        _write(err, str(exc))
        return 1
    except InfraError as exc:
        log_operational_error(logger, "Command failed", exc=exc, extra={"command": args.command})
        _write(err, f"Error: {exc}")
        return 1
    except OSError as exc:
        _write(err, f"Error: {exc}")
        return 1
    finally:
        container.close()


if __name__ == "__main__":
    raise SystemExit(main())
