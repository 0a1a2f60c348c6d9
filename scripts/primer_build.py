"""
Compile a memory primer from a JSON dump of sessions.

Usage:
    python scripts/primer_build.py sessions.json --handle margaret
    python scripts/primer_build.py sessions.json --handle margaret --store data/cache/memory.db

The input is a JSON list of session records
({"id", "user_handle", "title", "created_at", "turns": [{"role", "text"}]}).
Only sessions whose handle matches --handle are used; records that do not
validate are skipped.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from memoir_engine.config.settings import Settings
from memoir_engine.memory.primer import build_memory_primer, primer_key_for_handle
from memoir_engine.memory.schemas import Session
from memoir_engine.memory.store import PrimerStore
from memoir_engine.telemetry import configure_logging


def load_sessions(path: Path) -> list:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("sessions", [])
    if not isinstance(data, list):
        return []
    return [s for s in (Session.from_record(record) for record in data) if s is not None]


def main():
    """CLI entrypoint."""
    parser = argparse.ArgumentParser(description="Compile a memory primer from recorded sessions")
    parser.add_argument("sessions", type=Path, help="JSON file with a list of session records")
    parser.add_argument("--handle", type=str, default=None, help="Handle to compile for (default: unassigned)")
    parser.add_argument("--store", type=Path, default=None, help="Also save the primer into this SQLite store")
    parser.add_argument("--verbose", action="store_true", help="Log diagnostic events to stderr")
    args = parser.parse_args()

    if args.verbose:
        configure_logging(logging.INFO)

    if not args.sessions.exists():
        print(f"Sessions file not found: {args.sessions}", file=sys.stderr)
        sys.exit(1)

    try:
        sessions = load_sessions(args.sessions)
    except json.JSONDecodeError as e:
        print(f"Could not parse {args.sessions}: {e}", file=sys.stderr)
        sys.exit(1)

    key = primer_key_for_handle(args.handle)
    matching = [s for s in sessions if primer_key_for_handle(s.user_handle) == key]
    primer = build_memory_primer(matching, handle=args.handle, settings=Settings())

    if args.store:
        PrimerStore(db_path=args.store).put(primer)

    print(primer.markdown_text)
    sys.exit(0)


if __name__ == "__main__":
    main()
