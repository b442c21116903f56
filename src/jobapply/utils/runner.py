"""Sequential run over candidates: ledger gating, one flow per URL, pacing.

Each processed URL gets exactly one ledger write, made before its tab is
released, so an interrupted run loses at most the attempt in flight.
"""
from __future__ import annotations

import random
import time
from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from robocorp import log

from .answers import AnswerBook
from .config import Credentials, FlowSettings
from .diagnostics import DiagnosticsSink
from .flow import ApplyFlow
from .ledger import Ledger
from .models import ApplyAttempt, ApplyStatus, Candidate, LedgerEntry, Outcome
from .session import BrowserSession, looks_like_connection_loss


class ApplyRunner:
    def __init__(
        self,
        session: BrowserSession,
        ledger: Ledger,
        settings: FlowSettings,
        credentials: Optional[Credentials] = None,
        answers: Optional[AnswerBook] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        flow_factory: Callable[..., Any] = ApplyFlow,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.session = session
        self.ledger = ledger
        self.settings = settings
        self.credentials = credentials
        self.answers = answers or AnswerBook()
        self.diagnostics = diagnostics or DiagnosticsSink(settings.diagnostics_dir)
        self.flow_factory = flow_factory
        self._sleep = sleep
        self._rng = rng
        self.processed: set = set()

    def pending(self, candidates: List[Candidate], only_url: Optional[str] = None) -> List[Candidate]:
        """Candidates not yet in the ledger, in list order, without duplicates."""
        seen = set()
        todo = []
        for candidate in candidates:
            if only_url and candidate.url != only_url:
                continue
            if candidate.url in seen or self.ledger.has(candidate.url):
                continue
            seen.add(candidate.url)
            todo.append(candidate)
        return todo

    def run(
        self,
        candidates: List[Candidate],
        max_per_run: Optional[int] = None,
        only_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        limit = self.settings.max_per_run if max_per_run is None else max_per_run
        todo = self.pending(candidates, only_url)[:limit]
        log.info(f"[Runner] {len(todo)} candidate(s) to process (limit {limit})")

        results = []
        for index, candidate in enumerate(todo):
            if candidate.url in self.processed or self.ledger.has(candidate.url):
                continue
            self.processed.add(candidate.url)
            log.info(f"[Runner] ({index + 1}/{len(todo)}) {candidate.company or '?'} | {candidate.title or '?'} | {candidate.url}")
            entry = self.process(candidate)
            results.append({
                "url": entry.url,
                "company": candidate.company,
                "title": candidate.title,
                "status": entry.status.value,
                "detail": entry.detail,
            })
            if index < len(todo) - 1:
                self.pace()

        counts: Dict[str, int] = {}
        for result in results:
            counts[result["status"]] = counts.get(result["status"], 0) + 1
        return {"processed": len(results), "counts": counts, "results": results}

    def process(self, candidate: Candidate) -> LedgerEntry:
        """Run one candidate to a terminal status and record it."""
        reconnected = False
        while True:
            attempt: Optional[ApplyAttempt] = None
            try:
                page = self.session.new_tab()
                attempt = ApplyAttempt(candidate=candidate, page=page, pages=[page])
                flow = self.flow_factory(
                    session=self.session,
                    attempt=attempt,
                    settings=self.settings,
                    credentials=self.credentials,
                    answer=self.answers.answer_for(candidate),
                    diagnostics=self.diagnostics,
                    sleep=self._sleep,
                )
                outcome = flow.run()
            except Exception as e:
                lost = looks_like_connection_loss(e) or not self.session.is_connected()
                if lost and not reconnected:
                    reconnected = True
                    self.release(attempt, Outcome(ApplyStatus.ERROR))
                    if self.session.reconnect():
                        log.warn(f"[Runner] Reconnected, retrying {candidate.url}")
                        continue
                    outcome = Outcome(ApplyStatus.ERROR, f"browser connection lost: {e}")
                else:
                    log.critical(f"[Runner] Error processing {candidate.url}: {e}")
                    log.exception()
                    outcome = Outcome(ApplyStatus.ERROR, str(e) or e.__class__.__name__)
                    if attempt is not None and not lost:
                        self.diagnostics.capture(attempt.page, "error", str(e))

            entry = self.ledger.set(candidate.url, outcome.status, outcome.detail)
            self.release(attempt, outcome)
            return entry

    def release(self, attempt: Optional[ApplyAttempt], outcome: Outcome) -> None:
        """Close the attempt's tabs unless a human has to take over."""
        if attempt is None or outcome.leave_open:
            if attempt is not None:
                log.info(f"[Runner] Leaving tab open for manual follow-up: {attempt.page.url}")
            return
        for page in attempt.pages:
            try:
                if not page.is_closed():
                    page.close()
            except PlaywrightError as e:
                log.debug(f"[Runner] Could not close tab: {e}")

    def pace(self) -> None:
        low, high = self.settings.pacing_min, self.settings.pacing_max
        delay = low + self._rng() * max(0.0, high - low)
        if delay > 0:
            log.info(f"[Runner] Pacing {delay:.1f}s before next candidate")
            self._sleep(delay)
