"""
Tests for individual apply-flow states against Playwright-shaped fakes.

No browser is needed: hydration, modal priority, new-tab adoption and the
account-gate branches run against the fakes from conftest.
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import FakeElement, FakePage, element_info
from jobapply.utils import dom_scripts
from jobapply.utils.config import Credentials, FlowSettings
from jobapply.utils.flow import ApplyFlow, FlowState
from jobapply.utils.models import ApplyAttempt, ApplyStatus, Candidate
from jobapply.utils.site_hints import WORKDAY_BOOTSTRAP_JS

GENERIC_URL = "https://jobs.example.com/posting/42"
WORKDAY_URL = "https://acme.wd5.myworkdayjobs.com/en-US/External/job/42"
LONG_TEXT = "Software Engineering Intern. Tell us about yourself and why you want to join the team."
CREDENTIALS = Credentials(email="me@example.com", password="hunter2!")

FAST = dict(
    navigation_timeout=1,
    locate_timeout=0.1,
    strategy_timeout=0.1,
    locate_poll=0.05,
    root_wait=0,
    reload_retries=2,
    reload_backoff=1.2,
    reload_root_wait=0,
    unavailable_reload_delay=0,
    new_tab_wait=0,
    modal_wait=0,
    field_wait=0,
    submission_wait=0,
)


class FlowPage(FakePage):
    """A tab with an optional `#root` mount point that reloads can populate."""

    def __init__(self, url=GENERIC_URL, text=LONG_TEXT, root=None, populate_on_reload=None):
        super().__init__(url=url, text=text)
        self.root = root
        self.populate_on_reload = populate_on_reload
        self.reloads = 0
        self.bootstrapped = False
        self.fronted = False

    def evaluate(self, script, arg=None):
        if script == dom_scripts.ROOT_STATE_JS:
            return self.root
        if script == WORKDAY_BOOTSTRAP_JS:
            self.bootstrapped = True
            self.root = True
            return True
        return super().evaluate(script, arg)

    def reload(self, **kwargs):
        self.reloads += 1
        if self.populate_on_reload == self.reloads:
            self.root = True

    def wait_for_load_state(self, state="load", timeout=None):
        pass

    def bring_to_front(self):
        self.fronted = True


class FlowSession:
    def __init__(self, *tabs):
        self.tabs = list(tabs)

    def pages(self):
        return list(self.tabs)

    def wait_for_new_tab(self, known, timeout, poll=0.25, stop=None):
        for page in self.tabs:
            if page not in known:
                return page
        return None


class OpeningElement(FakeElement):
    """A control whose click opens `popup` in a new tab."""

    def __init__(self, session, popup):
        super().__init__("apply")
        self.session = session
        self.popup = popup

    def _record(self, method):
        result = super()._record(method)
        self.session.tabs.append(self.popup)
        return result


class NullDiagnostics:
    def __init__(self):
        self.captured = []

    def capture(self, page, tag, message=None):
        self.captured.append(tag)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_flow(sleeps):
    def build(page, session=None, credentials=None, answer=None):
        attempt = ApplyAttempt(candidate=Candidate(url=page.url, company="Acme"), page=page, pages=[page])
        return ApplyFlow(
            session or FlowSession(page),
            attempt,
            FlowSettings(**FAST),
            credentials=credentials,
            answer=answer,
            diagnostics=NullDiagnostics(),
            sleep=sleeps.append,
        )
    return build


# ---------------------------------------------------------------- hydration

def test_page_without_mount_point_is_not_reloaded(make_flow):
    page = FlowPage(root=None)

    assert make_flow(page)._hydrate() is FlowState.APPLY_ENTRY
    assert page.reloads == 0


def test_empty_root_is_reloaded_with_growing_backoff(make_flow, sleeps):
    page = FlowPage(root=False, populate_on_reload=2)

    assert make_flow(page)._hydrate() is FlowState.APPLY_ENTRY
    assert page.reloads == 2
    assert sleeps == [1.2, 2.4]


def test_bootstrap_injection_after_reloads(make_flow):
    page = FlowPage(url=WORKDAY_URL, root=False)

    assert make_flow(page)._hydrate() is FlowState.APPLY_ENTRY
    assert page.reloads == 2
    assert page.bootstrapped


def test_root_that_never_hydrates_is_unavailable(make_flow):
    page = FlowPage(root=False)
    flow = make_flow(page)

    assert flow._hydrate() is FlowState.DONE
    assert flow.outcome.status is ApplyStatus.UNAVAILABLE
    assert flow.outcome.leave_open
    assert flow.diagnostics.captured == ["root-empty"]


# ---------------------------------------------------------- modal choices

def test_modal_choice_prefers_autofill(make_flow):
    page = FlowPage()
    manual = page.main_frame.add("shadow", element_info(text="Apply Manually"))
    last = page.main_frame.add("shadow", element_info(text="Use My Last Application"))
    autofill = page.main_frame.add("shadow", element_info(text="Autofill with Resume"))
    flow = make_flow(page)

    assert flow._choose_modal_option() is FlowState.ACCOUNT_GATE
    assert flow.attempt.next_step == "modal:autofill"
    assert autofill.calls == ["native"]
    assert manual.calls == [] and last.calls == []


def test_modal_choice_order_below_autofill(make_flow):
    page = FlowPage()
    generic = page.main_frame.add("shadow", element_info(text="Continue"))
    manual = page.main_frame.add("shadow", element_info(text="Apply Manually"))
    flow = make_flow(page)

    flow._choose_modal_option()

    assert flow.attempt.next_step == "modal:manual"
    assert manual.calls == ["native"]
    assert generic.calls == []


def test_no_modal_moves_on(make_flow):
    flow = make_flow(FlowPage())

    assert flow._choose_modal_option() is FlowState.ACCOUNT_GATE
    assert flow.attempt.next_step is None


# ---------------------------------------------------------- new-tab adoption

def test_apply_click_adopts_new_tab(make_flow):
    page = FlowPage()
    popup = FlowPage(url="https://jobs.example.com/apply/form")
    session = FlowSession(page)
    button = OpeningElement(session, popup)
    page.main_frame.add("shadow", element_info(text="Apply Now"), button)
    flow = make_flow(page, session=session)

    assert flow._enter_apply() is FlowState.MODAL_CHOICE
    assert flow.page is popup
    assert flow.locator.page is popup
    assert flow.attempt.pages == [page, popup]
    assert flow.attempt.next_step == "apply:shadow-text"
    assert popup.fronted


def test_apply_click_without_new_tab_stays_put(make_flow):
    page = FlowPage()
    button = page.main_frame.add("shadow", element_info(text="Apply Now"))
    flow = make_flow(page)

    assert flow._enter_apply() is FlowState.MODAL_CHOICE
    assert flow.page is page
    assert button.calls == ["native"]


# ---------------------------------------------------------- account gate

@pytest.fixture
def gate():
    gate = MagicMock()
    gate.detect_create_account.return_value = True
    gate.detect_login_required.return_value = False
    return gate


def gated_flow(make_flow, gate, credentials=CREDENTIALS):
    flow = make_flow(FlowPage(), credentials=credentials)
    flow.gate = gate
    return flow


def test_account_without_credentials_needs_account(make_flow, gate):
    flow = gated_flow(make_flow, gate, credentials=None)

    assert flow._pass_account_gate() is FlowState.DONE
    assert flow.outcome.status is ApplyStatus.NEEDS_ACCOUNT
    gate.create_account.assert_not_called()


def test_unverified_email_stops_with_verify_email(make_flow, gate):
    gate.create_account.return_value = "verify-email"
    gate.wait_for_verification.return_value = False
    flow = gated_flow(make_flow, gate)

    assert flow._pass_account_gate() is FlowState.DONE
    assert flow.outcome.status is ApplyStatus.VERIFY_EMAIL
    assert flow.outcome.leave_open
    assert flow.diagnostics.captured == ["verify-email"]
    gate.sign_in.assert_not_called()


def test_verified_email_signs_in_and_continues(make_flow, gate):
    gate.create_account.return_value = "verify-email"
    gate.wait_for_verification.return_value = True
    flow = gated_flow(make_flow, gate)

    assert flow._pass_account_gate() is FlowState.QUESTION_FILL
    gate.sign_in.assert_called_once_with(CREDENTIALS)
    assert flow.attempt.next_step == "account:verify-email"


@pytest.mark.parametrize("hint", ["sign-in", "unknown"])
def test_other_hints_sign_in_without_waiting(make_flow, gate, hint):
    gate.create_account.return_value = hint
    flow = gated_flow(make_flow, gate)

    assert flow._pass_account_gate() is FlowState.QUESTION_FILL
    gate.wait_for_verification.assert_not_called()
    gate.sign_in.assert_called_once_with(CREDENTIALS)
    assert flow.attempt.next_step == f"account:{hint}"


def test_login_without_credentials_is_left_for_the_human(make_flow, gate):
    gate.detect_create_account.return_value = False
    gate.detect_login_required.return_value = True
    flow = gated_flow(make_flow, gate, credentials=None)

    assert flow._pass_account_gate() is FlowState.DONE
    assert flow.outcome.status is ApplyStatus.LOGIN_REQUIRED
    assert flow.outcome.detail == "sign-in required"
    assert flow.diagnostics.captured == ["login_required"]
    gate.sign_in.assert_not_called()


def test_failed_sign_in_is_login_required(make_flow, gate):
    gate.detect_create_account.return_value = False
    gate.detect_login_required.return_value = True
    gate.still_asks_for_login.return_value = True
    flow = gated_flow(make_flow, gate)

    assert flow._pass_account_gate() is FlowState.DONE
    assert flow.outcome.detail == "sign-in did not succeed"
    gate.sign_in.assert_called_once_with(CREDENTIALS)
