"""Submission detector.

Four independent signals, any one of which counts as submitted:

- a known success marker element is present
- the visible text contains a confirmation phrase
- the URL path looks like a confirmation page
- a same-origin iframe's text contains a confirmation phrase

Timing out is not a failure: the caller records `attempted` for human review.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence
from urllib.parse import urlparse

from playwright.sync_api import Error as PlaywrightError
from robocorp import log

from .dom_scripts import BODY_TEXT_JS, SAME_ORIGIN_FRAME_TEXT_JS

SUCCESS_PHRASES = (
    "thank you for applying",
    "application submitted",
    "we've received your application",
    "we have received your application",
    "has been submitted",
    "thanks for your application",
    "submission confirmation",
)

SUCCESS_SELECTORS = (
    ".application-submitted",
    ".thanks",
    "#submissionConfirmation",
    '[data-qa="application-confirmation"]',
    ".lever-application-complete",
)

SUCCESS_URL_RE = re.compile(
    r"thank-you|thankyou|confirmation|application-submitted|application-complete|success",
    re.IGNORECASE,
)


@dataclass
class Detection:
    submitted: bool
    signal: Optional[str] = None
    elapsed: float = 0.0


def _contains_phrase(text: str, phrases: Iterable[str]) -> bool:
    lowered = (text or "").lower()
    return any(p in lowered for p in phrases)


class SubmissionDetector:
    def __init__(
        self,
        success_selectors: Sequence[str] = SUCCESS_SELECTORS,
        phrases: Sequence[str] = SUCCESS_PHRASES,
        url_pattern=SUCCESS_URL_RE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.success_selectors = tuple(dict.fromkeys(success_selectors))
        self.phrases = tuple(p.lower() for p in phrases)
        self.url_pattern = url_pattern
        self._clock = clock
        self._sleep = sleep

    def dom_marker(self, page: Any) -> bool:
        for selector in self.success_selectors:
            try:
                if page.query_selector(selector):
                    return True
            except PlaywrightError:
                continue
        return False

    def text_phrase(self, page: Any) -> bool:
        try:
            return _contains_phrase(page.evaluate(BODY_TEXT_JS), self.phrases)
        except PlaywrightError:
            return False

    def url_path(self, page: Any) -> bool:
        parsed = urlparse(page.url or "")
        return bool(self.url_pattern.search(parsed.path))

    def iframe_text(self, page: Any) -> bool:
        try:
            texts = page.evaluate(SAME_ORIGIN_FRAME_TEXT_JS) or []
        except PlaywrightError:
            return False
        return any(_contains_phrase(t, self.phrases) for t in texts)

    def check(self, page: Any) -> Detection:
        """One pass over all signals."""
        for name, signal in (
            ("dom-marker", self.dom_marker),
            ("text-phrase", self.text_phrase),
            ("url-path", self.url_path),
            ("iframe-text", self.iframe_text),
        ):
            if signal(page):
                return Detection(submitted=True, signal=name)
        return Detection(submitted=False)

    def wait(self, page: Any, timeout: float = 180.0, interval: float = 2.5) -> Detection:
        """Poll until a signal fires or `timeout` elapses."""
        start = self._clock()
        while True:
            result = self.check(page)
            elapsed = self._clock() - start
            if result.submitted:
                result.elapsed = elapsed
                log.info(f"[Detector] Submission detected via {result.signal} after {elapsed:.1f}s")
                return result
            if elapsed + interval > timeout:
                log.info(f"[Detector] No submission signal within {timeout:.0f}s")
                return Detection(submitted=False, elapsed=elapsed)
            self._sleep(interval)
