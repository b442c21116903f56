"""Apply flow: drive one posting from first load to a terminal status.

States run in order, each handler returning the next state:

    loading -> hydrating -> apply_entry -> modal_choice -> account_gate
            -> question_fill -> submission_wait

Any handler may finish early with a blocking status (captcha, login_required,
needs_account, verify_email, unavailable). Blocked and ambiguous outcomes
leave the tab open for a human and save diagnostics.
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from robocorp import log

from .account_gate import AccountGate, body_text
from .config import Credentials, FlowSettings
from .diagnostics import DiagnosticsSink
from .dom_scripts import ROOT_STATE_JS
from .locator import DEFAULT_CLICK_ORDER, LocatorEngine
from .models import ApplyAttempt, ApplyStatus, Outcome
from .session import BrowserSession
from .site_hints import resolve_hints
from .submission import SUCCESS_SELECTORS, SubmissionDetector
from .targets import APPLY, MODAL_CHOICES, SUBMIT, why_company_target

CAPTCHA_SELECTOR = (
    "iframe[src*='recaptcha'], iframe[src*='hcaptcha'], div.g-recaptcha, "
    "div.h-captcha, div#captcha, input[name='captcha']"
)
UNAVAILABLE_PHRASE = "service is unavailable"
MIN_PAGE_TEXT = 50


class FlowState(str, Enum):
    LOADING = "loading"
    HYDRATING = "hydrating"
    APPLY_ENTRY = "apply_entry"
    MODAL_CHOICE = "modal_choice"
    ACCOUNT_GATE = "account_gate"
    QUESTION_FILL = "question_fill"
    SUBMISSION_WAIT = "submission_wait"
    DONE = "done"


class ApplyFlow:
    def __init__(
        self,
        session: BrowserSession,
        attempt: ApplyAttempt,
        settings: FlowSettings,
        credentials: Optional[Credentials] = None,
        answer: Optional[str] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.attempt = attempt
        self.settings = settings
        self.credentials = credentials
        self.answer = answer
        self.diagnostics = diagnostics or DiagnosticsSink(settings.diagnostics_dir)
        self._sleep = sleep

        self.hints = resolve_hints(attempt.candidate.url)
        self.click_order = self.hints.click_order or DEFAULT_CLICK_ORDER
        self.locator = LocatorEngine(
            attempt.page,
            deadline=settings.locate_timeout,
            strategy_timeout=settings.strategy_timeout,
            poll=settings.locate_poll,
            click_order=self.click_order,
            sleep=sleep,
        )
        self.gate = AccountGate(self.locator, self.hints, settings, sleep=sleep)
        self.detector = SubmissionDetector(
            success_selectors=tuple(SUCCESS_SELECTORS) + tuple(self.hints.success_selectors),
            sleep=sleep,
        )
        self.outcome: Optional[Outcome] = None
        self.history: List[FlowState] = []

    @property
    def page(self) -> Any:
        return self.attempt.page

    def run(self) -> Outcome:
        handlers: Dict[FlowState, Callable[[], FlowState]] = {
            FlowState.LOADING: self._load,
            FlowState.HYDRATING: self._hydrate,
            FlowState.APPLY_ENTRY: self._enter_apply,
            FlowState.MODAL_CHOICE: self._choose_modal_option,
            FlowState.ACCOUNT_GATE: self._pass_account_gate,
            FlowState.QUESTION_FILL: self._fill_question,
            FlowState.SUBMISSION_WAIT: self._wait_for_submission,
        }
        log.info(f"[Flow] {self.attempt.candidate.url} (hints: {', '.join(self.hints.names)})")
        state = FlowState.LOADING
        while state is not FlowState.DONE:
            self.history.append(state)
            if state is not FlowState.LOADING and self._captcha_present():
                state = self._finish(ApplyStatus.CAPTCHA, f"captcha at {state.value}", leave_open=True, tag="captcha")
                continue
            state = handlers[state]()
        return self.outcome

    def _finish(
        self,
        status: ApplyStatus,
        detail: Optional[str] = None,
        leave_open: bool = False,
        tag: Optional[str] = None,
    ) -> FlowState:
        if tag:
            self.diagnostics.capture(self.page, tag, detail)
        self.attempt.leave_open = leave_open
        self.outcome = Outcome(status=status, detail=detail, leave_open=leave_open)
        log.info(f"[Flow] -> {status.value}{f' ({detail})' if detail else ''}{' [left open]' if leave_open else ''}")
        return FlowState.DONE

    # ------------------------------------------------------------------ helpers

    def _captcha_present(self) -> bool:
        for frame in self.locator.accessible_frames():
            try:
                if frame.query_selector(CAPTCHA_SELECTOR):
                    return True
            except PlaywrightError:
                continue
        return False

    def _switch_to(self, page: Any) -> None:
        log.info(f"[Flow] Switching to new tab: {page.url}")
        self.attempt.switch_to(page)
        self.locator.page = page
        try:
            page.wait_for_load_state("domcontentloaded", timeout=self.settings.navigation_timeout * 1000)
            page.bring_to_front()
        except PlaywrightError as e:
            log.warn(f"[Flow] New tab not ready: {e}")

    def _follow_click(self, known_pages: List[Any], start_url: str) -> None:
        """After a click: adopt a newly opened tab, or wait for in-page navigation."""
        page = self.page
        new_page = self.session.wait_for_new_tab(
            known_pages,
            timeout=self.settings.new_tab_wait,
            stop=lambda: page.url != start_url,
        )
        if new_page is not None:
            self._switch_to(new_page)
            return
        try:
            page.wait_for_load_state("domcontentloaded", timeout=self.settings.navigation_timeout * 1000)
        except PlaywrightError as e:
            log.warn(f"[Flow] Load state wait failed: {e}")

    def _root_state(self) -> Optional[bool]:
        """True populated, False empty, None when no known mount point exists."""
        for selector in self.hints.mount_selectors:
            try:
                state = self.page.evaluate(ROOT_STATE_JS, selector)
            except PlaywrightError:
                continue
            if state is not None:
                return bool(state)
        return None

    def _wait_for_root(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            if self._root_state() is not False:
                return True
            if time.monotonic() >= deadline:
                return False
            self._sleep(0.5)

    def _looks_unavailable(self) -> bool:
        text = body_text(self.page).strip()
        return not text or UNAVAILABLE_PHRASE in text.lower() or len(text) < MIN_PAGE_TEXT

    # ------------------------------------------------------------------- states

    def _load(self) -> FlowState:
        self.page.goto(
            self.attempt.candidate.url,
            wait_until="domcontentloaded",
            timeout=self.settings.navigation_timeout * 1000,
        )
        return FlowState.HYDRATING

    def _hydrate(self) -> FlowState:
        if self._root_state() is not False or self._wait_for_root(self.settings.root_wait):
            return FlowState.APPLY_ENTRY

        for attempt in range(self.settings.reload_retries):
            self._sleep(self.settings.reload_backoff * (attempt + 1))
            log.info(f"[Flow] Root mount empty, reload {attempt + 1}/{self.settings.reload_retries}")
            self.page.reload(wait_until="domcontentloaded")
            if self._wait_for_root(self.settings.reload_root_wait):
                return FlowState.APPLY_ENTRY

        for script in self.hints.bootstrap_scripts:
            try:
                injected = self.page.evaluate(script)
            except PlaywrightError as e:
                log.warn(f"[Flow] Bootstrap injection failed: {e}")
                continue
            if injected:
                log.info("[Flow] Injected client bootstrap scripts")
                if self._wait_for_root(self.settings.reload_root_wait):
                    return FlowState.APPLY_ENTRY

        return self._finish(ApplyStatus.UNAVAILABLE, "root mount never hydrated", leave_open=True, tag="root-empty")

    def _enter_apply(self) -> FlowState:
        known = self.session.pages()
        start_url = self.page.url
        found = self.locator.locate(APPLY)
        if found:
            result = self.locator.activate(found, self.click_order)
            self.attempt.next_step = f"apply:{found.strategy}"
            if result:
                self._follow_click(known, start_url)
        else:
            self.attempt.next_step = "apply:not-found"

        if self._looks_unavailable():
            self._sleep(self.settings.unavailable_reload_delay)
            log.info("[Flow] Apply target looks unavailable, reloading once")
            self.page.reload(wait_until="domcontentloaded")
            if self._looks_unavailable():
                return self._finish(
                    ApplyStatus.UNAVAILABLE,
                    f"apply target unavailable: {self.page.url}",
                    leave_open=True,
                    tag="unavailable",
                )
        return FlowState.MODAL_CHOICE

    def _choose_modal_option(self) -> FlowState:
        deadline = time.monotonic() + self.settings.modal_wait
        while True:
            for target in MODAL_CHOICES:
                found = self.locator.locate(target, single_pass=True)
                if not found:
                    continue
                known = self.session.pages()
                start_url = self.page.url
                if self.locator.click(found, self.click_order):
                    log.info(f"[Flow] Modal choice: {target.name}")
                    self.attempt.next_step = f"modal:{target.name}"
                    self._follow_click(known, start_url)
                    return FlowState.ACCOUNT_GATE
            if time.monotonic() >= deadline:
                return FlowState.ACCOUNT_GATE
            self._sleep(0.5)

    def _pass_account_gate(self) -> FlowState:
        if self.gate.detect_create_account():
            if self.credentials is None:
                return self._finish(
                    ApplyStatus.NEEDS_ACCOUNT,
                    "account required and no credentials configured",
                    leave_open=True,
                    tag="create-account-no-creds",
                )
            hint = self.gate.create_account(self.credentials)
            self.attempt.next_step = f"account:{hint}"
            if hint == "verify-email":
                if not self.gate.wait_for_verification():
                    return self._finish(
                        ApplyStatus.VERIFY_EMAIL,
                        "email verification not completed in time",
                        leave_open=True,
                        tag="verify-email",
                    )
            self.gate.sign_in(self.credentials)

        if self.gate.detect_login_required():
            if self.credentials is None:
                return self._finish(
                    ApplyStatus.LOGIN_REQUIRED, "sign-in required", leave_open=True, tag="login_required"
                )
            self.gate.sign_in(self.credentials)
            if self.gate.still_asks_for_login():
                return self._finish(
                    ApplyStatus.LOGIN_REQUIRED, "sign-in did not succeed", leave_open=True, tag="login_required"
                )
        return FlowState.QUESTION_FILL

    def _fill_question(self) -> FlowState:
        if self.answer:
            target = why_company_target(self.attempt.candidate.company)
            found = self.locator.locate(target, timeout=self.settings.field_wait)
            if found:
                method = self.locator.fill(found, self.answer)
                self.attempt.answer_filled = method is not None
                log.info(f"[Flow] Narrative answer {'filled via ' + method if method else 'not filled'}")
        else:
            log.info("[Flow] No drafted answer for this posting")

        if self.settings.allow_submit:
            submit = self.locator.locate(SUBMIT, timeout=self.settings.field_wait * 2)
            if submit:
                self.locator.click(submit, self.click_order)
        return FlowState.SUBMISSION_WAIT

    def _wait_for_submission(self) -> FlowState:
        detection = self.detector.wait(
            self.page,
            timeout=self.settings.submission_wait,
            interval=self.settings.submission_poll,
        )
        answer_note = "answer=why-company" if self.attempt.answer_filled else "answer=none"
        if detection.submitted:
            return self._finish(ApplyStatus.SUBMITTED, f"signal={detection.signal}; {answer_note}")
        return self._finish(
            ApplyStatus.ATTEMPTED,
            f"no confirmation within {self.settings.submission_wait:.0f}s; {answer_note}",
            leave_open=True,
            tag="no-submit",
        )
