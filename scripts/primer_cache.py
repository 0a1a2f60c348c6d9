"""
CLI utility for the session/primer store.

Usage:
    python scripts/primer_cache.py --stats
    python scripts/primer_cache.py --show @margaret
    python scripts/primer_cache.py --purge primers
    python scripts/primer_cache.py --purge all
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

from memoir_engine.memory.store import PrimerStore
from memoir_engine.persist import KVStore, TABLES


def format_bytes(bytes_val: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "KB", "MB", "GB"]:
        if bytes_val < 1024:
            return f"{bytes_val:.1f} {unit}"
        bytes_val /= 1024
    return f"{bytes_val:.1f} TB"


def format_time(ts: int) -> str:
    """Format unix timestamp as human-readable string."""
    if ts == 0:
        return "never"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def show_stats(db_path: Path) -> int:
    """Display per-table statistics and the stored primer handles."""
    if not db_path.exists():
        print(f"Store database not found: {db_path}")
        return 1

    print(f"Store statistics: {db_path}\n")

    with KVStore(db_path) as kv:
        print(f"{'Table':<15} {'Count':>10} {'Size':>12} {'Oldest':>20} {'Newest':>20}")
        print("=" * 80)
        for table in TABLES:
            stats = kv.stats(table)
            print(
                f"{table:<15} {stats['count']:>10,} {format_bytes(stats['total_bytes']):>12} "
                f"{format_time(stats['oldest_ts']):>20} {format_time(stats['newest_ts']):>20}"
            )
        print()
        handles = PrimerStore(kv=kv).handles()
        if handles:
            print("Primers: " + ", ".join(handles))
    return 0


def show_primer(db_path: Path, handle: str) -> int:
    """Print the stored primer for one handle."""
    if not db_path.exists():
        print(f"Store database not found: {db_path}")
        return 1

    with KVStore(db_path) as kv:
        primer = PrimerStore(kv=kv).get(handle)
        if primer is None:
            print(f"No primer stored for {handle}")
            return 1
        print(primer.markdown_text)
    return 0


def purge(db_path: Path, tables: list) -> int:
    """
    Purge store tables.

    Args:
        db_path: SQLite database file
        tables: Table names to purge (or ["all"])
    """
    if not db_path.exists():
        print(f"Store database not found: {db_path}")
        return 1

    if "all" in tables:
        tables = list(TABLES)

    invalid = set(tables) - set(TABLES)
    if invalid:
        print(f"Invalid table names: {invalid}")
        print(f"   Valid tables: {', '.join(TABLES)}, all")
        return 1

    with KVStore(db_path) as kv:
        total = 0
        for table in tables:
            count = kv.purge_table(table)
            total += count
            print(f"   {table:<15} {count:>10,} entries purged")
        print(f"\n   TOTAL:          {total:>10,} entries purged")
        kv.vacuum()
    return 0


def main():
    """CLI entrypoint."""
    parser = argparse.ArgumentParser(description="Inspect or purge the session/primer store")
    parser.add_argument("--stats", action="store_true", help="Show store statistics")
    parser.add_argument("--show", type=str, help="Print the primer stored for a handle")
    parser.add_argument("--purge", type=str, help="Purge tables (comma-separated: sessions,primers or 'all')")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path("data/cache/memory.db"),
        help="SQLite database (default: data/cache/memory.db)",
    )

    args = parser.parse_args()

    if not args.stats and not args.purge and not args.show:
        parser.print_help()
        sys.exit(1)

    if args.stats:
        code = show_stats(args.db)
        if code != 0:
            sys.exit(code)

    if args.show:
        code = show_primer(args.db, args.show)
        if code != 0:
            sys.exit(code)

    if args.purge:
        sys.exit(purge(args.db, [t.strip() for t in args.purge.split(",")]))

    sys.exit(0)


if __name__ == "__main__":
    main()
