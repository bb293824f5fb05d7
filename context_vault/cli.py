"""
Command line interface for the context vault.

Examples:
    context-vault sync
    context-vault watch --interval 10
    context-vault search '"database migration" OR rollback' --session session:abc123
    context-vault snapshot session:abc123 before-refactor
    context-vault recover session:abc123 --count 100 --output RECOVERY.md
    context-vault stats
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .backends.sqlite import SQLiteVault
from .config import VaultConfig
from .exceptions import VaultError
from .logging_utils import configure_console_logging, configure_structured_logging
from .models import SnapshotTrigger
from .recovery import RecoveryComposer
from .sync.engine import SessionSynchronizer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="context-vault",
        description="Persist agent session transcripts so history survives compaction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--db", type=Path, help="Vault database file (overrides config)")
    parser.add_argument("--config", type=Path, help="YAML settings file")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sync", help="Sync all transcripts once")

    watch = sub.add_parser("watch", help="Sync continuously")
    watch.add_argument("--interval", type=float, help="Seconds between passes")

    search = sub.add_parser("search", help="Full-text search")
    search.add_argument("query", help="FTS5 query (tokens, \"phrases\", OR, prefix*)")
    search.add_argument("--session", help="Restrict to one session")
    search.add_argument("--limit", type=int, default=20)
    search.add_argument("--json", action="store_true", help="Print JSON")

    messages = sub.add_parser("messages", help="Show recent messages of a session")
    messages.add_argument("session")
    messages.add_argument("--limit", type=int, default=50)
    messages.add_argument("--offset", type=int, default=0)
    messages.add_argument("--json", action="store_true", help="Print JSON")

    snapshot = sub.add_parser("snapshot", help="Create a named snapshot")
    snapshot.add_argument("session")
    snapshot.add_argument("name")
    snapshot.add_argument(
        "--trigger",
        choices=[t.value for t in SnapshotTrigger],
        default=SnapshotTrigger.MANUAL.value,
    )

    snapshots = sub.add_parser("snapshots", help="List snapshots of a session")
    snapshots.add_argument("session")

    compactions = sub.add_parser("compactions", help="List compactions of a session")
    compactions.add_argument("session")

    recover = sub.add_parser("recover", help="Write a recovery document")
    recover.add_argument("session")
    recover.add_argument("--count", type=int, help="Number of recent messages")
    recover.add_argument("--output", type=Path, help="Write to this file instead of stdout")

    stats = sub.add_parser("stats", help="Show vault or session statistics")
    stats.add_argument("session", nargs="?")

    return parser


def load_config(args: argparse.Namespace) -> VaultConfig:
    config = VaultConfig.load(args.config)
    if args.db is not None:
        config.db_path = args.db.expanduser()
    return config


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run(args: argparse.Namespace, config: VaultConfig) -> int:
    """Execute one command against the vault. Returns the exit code."""
    async with await SQLiteVault.create(config) as vault:
        if args.command == "sync":
            report = await SessionSynchronizer(vault, config).sync_all()
            print(
                f"Synced {report.total_appended} messages across {report.sessions_updated} "
                f"sessions ({report.files_scanned} files scanned)"
            )
            for error in report.errors:
                print(f"  error: {error.path}: {error.error}", file=sys.stderr)
            return 0 if report.success else 1

        if args.command == "watch":
            # Runs until the process is interrupted
            await SessionSynchronizer(vault, config).watch(args.interval)
            return 0

        if args.command == "search":
            hits = await vault.search(args.query, session_id=args.session, limit=args.limit)
            if args.json:
                _print_json([hit.to_dict() for hit in hits])
            else:
                for hit in hits:
                    msg = hit.message
                    print(f"[{msg.session_id} #{msg.message_index}] {msg.role.value}: {hit.highlighted}")
            return 0

        if args.command == "messages":
            found = await vault.get_messages(args.session, limit=args.limit, offset=args.offset)
            if args.json:
                _print_json([m.to_dict() for m in found])
            else:
                for msg in found:
                    print(f"#{msg.message_index} [{msg.timestamp.isoformat()}] {msg.role.value}: {msg.content}")
            return 0

        if args.command == "snapshot":
            snap = await vault.create_snapshot(args.session, args.name, args.trigger)
            print(f"Snapshot '{snap.name}' created at {snap.message_count} messages")
            return 0

        if args.command == "snapshots":
            _print_json([s.to_dict() for s in await vault.get_snapshots(args.session)])
            return 0

        if args.command == "compactions":
            _print_json([c.to_dict() for c in await vault.get_compactions(args.session)])
            return 0

        if args.command == "recover":
            count = args.count or config.recovery_message_count
            document = await RecoveryComposer(vault).compose(args.session, count, args.output)
            if args.output is None:
                print(document)
            else:
                print(f"Recovery file written to {args.output}")
            return 0

        if args.command == "stats":
            if args.session:
                _print_json((await vault.get_session_stats(args.session)).to_dict())
            else:
                _print_json((await vault.get_stats()).to_dict())
            return 0

    raise AssertionError(f"unhandled command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    if args.json_logs:
        configure_structured_logging(level, "context_vault")
    else:
        configure_console_logging(level, "context_vault")

    try:
        config = load_config(args)
        return asyncio.run(run(args, config))
    except VaultError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nStopped.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
