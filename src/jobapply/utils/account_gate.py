"""Account gate: create-account, sign-in and email-verification steps.

Applicant portals (Workday-class systems in particular) often require an
account before the form. Everything here is best effort: a step that cannot
find its fields reports that back to the flow, which decides whether to leave
the tab for a human.
"""
from __future__ import annotations

import re
import time
from typing import Any, List, Optional

from playwright.sync_api import Error as PlaywrightError
from robocorp import log

from .config import Credentials, FlowSettings
from .dom_scripts import BODY_TEXT_JS
from .locator import CHECKBOX, ElementInfo, Found, LocatorEngine, Target
from .robolog import suppress_sensitive_logging
from .site_hints import ResolvedHints
from .targets import AGREE, CONSENT, CREATE_ACCOUNT_SUBMIT, SIGN_IN, VERIFICATION_CONTINUE

EMAIL_SELECTOR = (
    'input[type="email"], input[autocomplete="email"], input[autocomplete="username"], '
    'input[name*="email" i], input[id*="email" i], input[data-automation-id*="email" i], '
    'input[name*="username" i]'
)
PASSWORD_SELECTOR = 'input[type="password"]'
CONFIRM_HINT_RE = re.compile(r"confirm|verify|repeat|again", re.IGNORECASE)

CREATE_ACCOUNT_MARKERS = ("create account", "create my account", "verify your email", "password requirements")
LOGIN_URL_TOKENS = ("login", "signin", "sign-in", "log-in")
LOGIN_FORM_SELECTOR = 'input[type="password"], form[action*="/account"], form[action*="/login"]'
LOGIN_TEXT_RE = re.compile(r"sign in to|please sign in|sign in required|create account to apply", re.IGNORECASE)
VERIFY_HINT_RE = re.compile(r"verify your email|check your email|\bverify\b", re.IGNORECASE)
SIGN_IN_HINT_RE = re.compile(r"\bsign in\b|\blog in\b|\blogin\b", re.IGNORECASE)
VERIFIED_RE = re.compile(
    r"email verified|verification complete|account verified|thank you for verifying", re.IGNORECASE
)
VERIFICATION_CONTROL_TAGS = ("button", "a", "input")


def body_text(page: Any) -> str:
    try:
        return page.evaluate(BODY_TEXT_JS) or ""
    except PlaywrightError:
        return ""


class AccountGate:
    def __init__(
        self,
        locator: LocatorEngine,
        hints: ResolvedHints,
        settings: FlowSettings,
        sleep=time.sleep,
    ):
        self.locator = locator
        self.hints = hints
        self.settings = settings
        self._sleep = sleep

    @property
    def page(self) -> Any:
        return self.locator.page

    # ---------------------------------------------------------------- detection

    def _query_any(self, selector: str) -> List[Any]:
        found = []
        for frame in self.locator.accessible_frames():
            try:
                found.extend(frame.query_selector_all(selector))
            except PlaywrightError:
                continue
        return found

    def detect_create_account(self) -> bool:
        text = body_text(self.page).lower()
        if any(marker in text for marker in CREATE_ACCOUNT_MARKERS):
            return True
        for selector in self.hints.account_gate_selectors:
            if self._query_any(selector):
                return True
        return bool(self._query_any(PASSWORD_SELECTOR)) and bool(self._query_any(EMAIL_SELECTOR))

    def detect_login_required(self) -> bool:
        url = (self.page.url or "").lower()
        if any(token in url for token in LOGIN_URL_TOKENS):
            return True
        if self._query_any(LOGIN_FORM_SELECTOR):
            return True
        return bool(LOGIN_TEXT_RE.search(body_text(self.page)))

    def still_asks_for_login(self) -> bool:
        return bool(LOGIN_TEXT_RE.search(body_text(self.page)))

    # ------------------------------------------------------------------ actions

    def _fill_credentials(self, credentials: Credentials, confirm: bool) -> bool:
        emails = self._query_any(EMAIL_SELECTOR)
        passwords = self._query_any(PASSWORD_SELECTOR)
        if not emails or not passwords:
            log.info(f"[Account] Fields missing (email={len(emails)}, password={len(passwords)})")
            return False

        confirm_field = None
        if confirm:
            for field in passwords[1:]:
                try:
                    descriptor = " ".join(
                        field.get_attribute(name) or "" for name in ("name", "id", "data-automation-id", "aria-label")
                    )
                except PlaywrightError:
                    descriptor = ""
                if CONFIRM_HINT_RE.search(descriptor) or confirm_field is None:
                    confirm_field = field

        with suppress_sensitive_logging():
            self.locator.fill_element(emails[0], credentials.email)
            self.locator.fill_element(passwords[0], credentials.password)
            if confirm_field is not None:
                self.locator.fill_element(confirm_field, credentials.password)
        return True

    def ensure_consent(self) -> bool:
        """Tick the terms/consent checkbox if the form has one."""
        candidates: List[Found] = []
        for selector in self.hints.consent_selectors:
            for element in self._query_any(selector):
                candidates.append(Found("consent", "hint", None, element, ElementInfo()))
        if self.hints.consent_labels:
            labelled = self.locator.locate(
                Target.build("consent-label", [re.escape(l) for l in self.hints.consent_labels], kind=CHECKBOX),
                single_pass=True,
            )
            if labelled:
                candidates.append(labelled)
        generic = self.locator.locate(CONSENT, single_pass=True)
        if generic:
            candidates.append(generic)

        for found in candidates:
            if self.locator.is_checked(found):
                log.info("[Account] Consent already checked")
                return True
            if self.locator.click(found, self.hints.click_order):
                if self.locator.is_checked(found) is not False:
                    return True
        return False

    def create_account(self, credentials: Credentials) -> str:
        """Fill and submit the create-account form.

        Returns the next-step hint: 'verify-email', 'sign-in', 'unknown', or
        'failed' when the form could not be submitted.
        """
        text = body_text(self.page)
        if VERIFY_HINT_RE.search(text) and not self._query_any(PASSWORD_SELECTOR):
            return "verify-email"

        if not self._fill_credentials(credentials, confirm=True):
            return "failed"
        self.ensure_consent()

        agree = self.locator.locate(AGREE, single_pass=True)
        if agree:
            self.locator.click(agree, self.hints.click_order)

        clicked = None
        for selector in self.hints.overlay_selectors:
            overlays = self._query_any(selector)
            if overlays:
                clicked = self.locator.click(
                    Found("create-account", "hint", None, overlays[0], ElementInfo()),
                    ("mouse", "native"),
                )
                if clicked:
                    break
        if not clicked:
            submit = self.locator.locate(CREATE_ACCOUNT_SUBMIT, timeout=self.settings.field_wait * 2)
            if not submit:
                return "failed"
            clicked = self.locator.click(submit, self.hints.click_order)
        if not clicked:
            return "failed"

        self._sleep(self.settings.field_wait)
        after = body_text(self.page)
        if VERIFY_HINT_RE.search(after):
            hint = "verify-email"
        elif SIGN_IN_HINT_RE.search(after) or self._query_any(PASSWORD_SELECTOR):
            hint = "sign-in"
        else:
            hint = "unknown"
        log.info(f"[Account] Create-account submitted, next step: {hint}")
        return hint

    def sign_in(self, credentials: Credentials) -> bool:
        if not self._fill_credentials(credentials, confirm=False):
            return False
        button = self.locator.locate(SIGN_IN, timeout=self.settings.field_wait * 2)
        if not button:
            return False
        result = self.locator.click(button, self.hints.click_order)
        self._sleep(self.settings.field_wait)
        log.info(f"[Account] Sign-in {'submitted' if result else 'not clicked'}")
        return bool(result)

    @staticmethod
    def _is_control(found: Found) -> bool:
        """Buttons, links and inputs only; page copy that mentions signing in does not count."""
        return found.strategy != "brute-force" and found.info.tag.lower() in VERIFICATION_CONTROL_TAGS

    def wait_for_verification(self, timeout: Optional[float] = None, poll: Optional[float] = None) -> bool:
        """Poll until the page says the email was verified or offers to continue."""
        timeout = self.settings.verification_wait if timeout is None else timeout
        poll = self.settings.verification_poll if poll is None else poll
        deadline = time.monotonic() + timeout
        log.info(f"[Account] Waiting up to {timeout:.0f}s for email verification")
        while True:
            if VERIFIED_RE.search(body_text(self.page)):
                return True
            proceed = self.locator.locate(VERIFICATION_CONTINUE, single_pass=True)
            if proceed and self._is_control(proceed):
                self.locator.click(proceed, self.hints.click_order)
                return True
            if time.monotonic() + poll > deadline:
                return False
            self._sleep(poll)
