"""
JSON-file ledger backend.

The file is a single object keyed by posting URL:

    {"https://...": {"timestamp": "...", "status": "submitted", "detail": "..."}}

Every write rewrites the whole file through a temp file, fsync and an atomic
rename, so an interrupted run never leaves a half-written ledger behind.
"""
from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from robocorp import log

from .models import ApplyStatus, LedgerEntry


class LedgerError(Exception):
    """The ledger file exists but cannot be parsed."""


class JsonLedger:
    """URL -> status map persisted as an indented JSON document."""

    backend = "json"

    def __init__(self, path: str):
        self.path = Path(path)
        self._records: Dict[str, Dict[str, Any]] = self._read()
        log.info(f"[Ledger] Loaded {len(self._records)} entries from {self.path}")

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LedgerError(f"Ledger file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise LedgerError(f"Ledger file {self.path} must contain a JSON object")
        return {url: (value if isinstance(value, dict) else {"status": str(value)}) for url, value in data.items()}

    def has(self, url: str) -> bool:
        return url in self._records

    def get(self, url: str) -> Optional[LedgerEntry]:
        record = self._records.get(url)
        return LedgerEntry.from_record(url, record) if record is not None else None

    def set(
        self,
        url: str,
        status: ApplyStatus,
        detail: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> LedgerEntry:
        """Record the status for a URL and flush it to disk before returning."""
        entry = LedgerEntry(
            url=url,
            status=ApplyStatus(status),
            detail=detail,
            timestamp=timestamp or datetime.now().isoformat(),
        )
        self._records[url] = entry.to_record()
        self._flush()
        log.info(f"[Ledger] {entry.status.value}: {url}")
        return entry

    def load_all(self) -> Dict[str, LedgerEntry]:
        self._records = self._read()
        return {url: LedgerEntry.from_record(url, record) for url, record in self._records.items()}

    def persist_all(self, entries: Dict[str, LedgerEntry]) -> None:
        self._records = {url: entry.to_record() for url, entry in entries.items()}
        self._flush()

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".ledger-", suffix=".json", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._records, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def close(self) -> None:
        pass
