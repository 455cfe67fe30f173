#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from db.booking_store import BookingStore  # noqa: E402
from models.errors import ToolError  # noqa: E402


def parse_args():
    parser = argparse.ArgumentParser(description="Create the booking SQLite schema.")
    parser.add_argument(
        "--db-path",
        default=None,
        help="SQLite DB path (default: BOOKING_DB, BOOKING_ROOT/data/booking.db or data/booking.db).",
    )
    parser.add_argument(
        "--seed-languages",
        nargs="*",
        default=[],
        metavar="NAME",
        help="Language names to insert, e.g. --seed-languages Arabiska Persiska.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        with BookingStore(args.db_path, create=True) as store:
            store.ensure_schema()
            for name in args.seed_languages:
                lang_id = store.create_language(name)
                print(f"language {lang_id}: {name}")
            store.commit()
            db_path = store.resolved_path
    except ToolError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    print(f"schema ready: {db_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
