"""
Ledger abstraction: the URL -> status map that gates repeat work.

Backend selection via LEDGER_BACKEND environment variable:
- LEDGER_BACKEND=json (default) - JSON file at LEDGER_PATH (default: ./applied.json)
- LEDGER_BACKEND=sqlite - SQLite file at SQLITE_PATH (default: ./applied.sqlite)
"""
from __future__ import annotations

import os
from collections import Counter
from typing import Dict, Iterable, Optional, Protocol

from robocorp import log

from .config import get_ledger_path
from .ledger_json import JsonLedger, LedgerError
from .ledger_sqlite import SqliteLedger
from .models import ApplyStatus, LedgerEntry


class Ledger(Protocol):
    backend: str

    def has(self, url: str) -> bool: ...

    def get(self, url: str) -> Optional[LedgerEntry]: ...

    def set(
        self,
        url: str,
        status: ApplyStatus,
        detail: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> LedgerEntry: ...

    def load_all(self) -> Dict[str, LedgerEntry]: ...

    def persist_all(self, entries: Dict[str, LedgerEntry]) -> None: ...

    def close(self) -> None: ...


def open_ledger(backend: Optional[str] = None) -> Ledger:
    """Open the configured ledger backend."""
    backend = (backend or os.getenv("LEDGER_BACKEND", "json")).lower()
    if backend == "sqlite":
        log.info("[Ledger] Using SQLite backend")
        return SqliteLedger()
    if backend != "json":
        log.warn(f"[Ledger] Unknown LEDGER_BACKEND '{backend}', defaulting to JSON")
    else:
        log.info("[Ledger] Using JSON backend")
    return JsonLedger(get_ledger_path())


def summarize(entries: Dict[str, LedgerEntry], urls: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """Count entries by status, optionally only those whose URL is in `urls`."""
    if urls is not None:
        wanted = set(urls)
        selected = [e for url, e in entries.items() if url in wanted]
    else:
        selected = list(entries.values())
    counts = Counter(e.status.value for e in selected)
    return dict(sorted(counts.items()))


__all__ = [
    "Ledger",
    "LedgerError",
    "JsonLedger",
    "SqliteLedger",
    "open_ledger",
    "summarize",
]
