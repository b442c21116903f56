"""Diagnostics sink: screenshot + markup snapshot of a tab in an ambiguous state.

Files are named `<timestamp>-<tag>.png` / `<timestamp>-<tag>.html` so a human
can line them up with ledger entries later.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from robocorp import log

from .robolog_screenshots import embed_screenshot, take_screenshot

_TAG_RE = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass
class DiagnosticArtifacts:
    screenshot: Optional[Path]
    markup: Optional[Path]


class DiagnosticsSink:
    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _stem(self, tag: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")[:-3]
        safe_tag = _TAG_RE.sub("_", tag).strip("_") or "state"
        return f"{timestamp}-{safe_tag}"

    def capture(self, page: Any, tag: str, message: Optional[str] = None) -> DiagnosticArtifacts:
        """Write what can be captured; a closed or crashed tab yields empty paths."""
        self.directory.mkdir(parents=True, exist_ok=True)
        stem = self._stem(tag)
        screenshot_path: Optional[Path] = None
        markup_path: Optional[Path] = None

        try:
            image = take_screenshot(page, full_page=True, annotate=f"{tag} | {page.url}")
            screenshot_path = self.directory / f"{stem}.png"
            screenshot_path.write_bytes(image)
            embed_screenshot(image, tag, message=message, level="WARN")
        except Exception as e:
            log.warn(f"[Diagnostics] Screenshot failed for {tag}: {e}")

        try:
            markup_path = self.directory / f"{stem}.html"
            markup_path.write_text(page.content(), encoding="utf-8")
        except Exception as e:
            log.warn(f"[Diagnostics] Markup snapshot failed for {tag}: {e}")
            markup_path = None

        log.info(f"[Diagnostics] Saved {stem} to {self.directory}")
        return DiagnosticArtifacts(screenshot=screenshot_path, markup=markup_path)
