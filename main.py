"""Console maintenance commands for the Taskhold store."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.settings import DB_PATH  # noqa: E402
from services.engine import TaskEngine  # noqa: E402
from services.result import Result  # noqa: E402


def _print(result: Result) -> int:
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2, default=str))
    return 0 if result.success else 1


def run(args: argparse.Namespace) -> int:
    # Opening the engine applies pending migrations.
    with TaskEngine(args.db) as engine:
        if args.command == "migrate":
            version = engine.migrations.current_version()
            return _print(Result.ok({"schema_version": version}))
        if args.command == "stats":
            return _print(engine.get_task_statistics())
        if args.command == "search":
            return _print(engine.search_tasks(" ".join(args.term)))
        if args.command == "vacuum":
            return _print(engine.vacuum())
        if args.command == "reindex":
            return _print(engine.rebuild_search_index())
        if args.command == "analyze":
            return _print(engine.analyze())
        if args.command == "backup":
            return _print(engine.backup(args.directory))
        return _print(engine.health_check())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__ or "")
    parser.add_argument(
        "--db",
        type=Path,
        default=DB_PATH,
        help="Path to the SQLite store (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("migrate", help="Bring the schema up to date and print its version")
    sub.add_parser("stats", help="Print task statistics")
    search = sub.add_parser("search", help="Full-text search over tasks")
    search.add_argument("term", nargs="+")
    sub.add_parser("vacuum", help="Rebuild the database file")
    sub.add_parser("analyze", help="Refresh query planner statistics")
    sub.add_parser("reindex", help="Rebuild the full-text search index")
    backup = sub.add_parser("backup", help="Write today's backup copy")
    backup.add_argument("--directory", type=Path, default=None)
    sub.add_parser("health", help="Check that the store responds")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except Exception as exc:  # pragma: no cover - CLI entry point
        logging.getLogger("taskhold.engine").exception("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
