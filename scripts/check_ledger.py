#!/usr/bin/env python3
"""
Ledger check utility.

Shows how many URLs of a candidate list are already in the ledger and with
which status, then the first few matches.

Usage:
    python scripts/check_ledger.py lists/unapplied.txt

Environment variables:
    LEDGER_BACKEND - "json" (default) or "sqlite"
    LEDGER_PATH - JSON ledger path (default: ./applied.json)
    SQLITE_PATH - SQLite ledger path (if using sqlite)
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from jobapply.utils.candidates import list_urls, load_candidate_list
from jobapply.utils.ledger import open_ledger, summarize


def main(list_path: str) -> int:
    print("=" * 60)
    print("LEDGER CHECK")
    print("=" * 60)

    ledger = open_ledger()
    entries = ledger.load_all()
    urls = list_urls(load_candidate_list(list_path))

    matched = [(u, entries[u]) for u in urls if u in entries]
    print(f"\n📋 List total: {len(urls)}")
    print(f"📒 In ledger:  {len(matched)}")
    for status, count in summarize(entries, urls).items():
        print(f"   {status}: {count}")

    print()
    for i, (url, entry) in enumerate(matched[:20], 1):
        print(f"{i}. {entry.status.value} | {url}")

    ledger.close()
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    sys.exit(main(sys.argv[1]))
