"""
Tests for the run loop: ledger gating, single writes, error isolation, reconnect.
"""
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import FakePage
from jobapply.utils.answers import AnswerBook
from jobapply.utils.config import FlowSettings
from jobapply.utils.ledger_json import JsonLedger
from jobapply.utils.models import ApplyStatus, Candidate, Outcome
from jobapply.utils.runner import ApplyRunner


class FakeSession:
    def __init__(self, reconnect_ok=True):
        self.tabs = []
        self.connected = True
        self.reconnect_ok = reconnect_ok
        self.reconnects = 0

    def new_tab(self):
        page = FakePage(url="about:blank")
        self.tabs.append(page)
        return page

    def is_connected(self):
        return self.connected

    def reconnect(self):
        self.reconnects += 1
        self.connected = self.reconnect_ok
        return self.reconnect_ok


class ScriptedFlows:
    """Flow factory returning scripted outcomes (or raising) per URL, in call order."""

    def __init__(self, script):
        self.script = {url: list(steps) for url, steps in script.items()}
        self.calls = []

    def __call__(self, session, attempt, settings, credentials, answer, diagnostics, sleep):
        self.calls.append((attempt.candidate.url, answer))
        step = self.script[attempt.candidate.url].pop(0)

        class _Flow:
            def run(self):
                if isinstance(step, BaseException):
                    raise step
                if callable(step):
                    return step(attempt)
                attempt.leave_open = step.leave_open
                return step

        return _Flow()


class NullDiagnostics:
    def __init__(self):
        self.captured = []

    def capture(self, page, tag, message=None):
        self.captured.append(tag)


@pytest.fixture
def ledger(tmp_path):
    return JsonLedger(str(tmp_path / "applied.json"))


@pytest.fixture
def settings():
    return FlowSettings(pacing_min=3.0, pacing_max=5.0, max_per_run=10)


def candidates(*urls):
    return [Candidate(url=url, company="Acme") for url in urls]


def make_runner(session, ledger, settings, flows, sleeps=None, answers=None):
    sleeps = [] if sleeps is None else sleeps
    return ApplyRunner(
        session=session,
        ledger=ledger,
        settings=settings,
        answers=answers,
        diagnostics=NullDiagnostics(),
        flow_factory=flows,
        sleep=sleeps.append,
        rng=lambda: 0.5,
    )


def test_ledgered_urls_are_skipped(ledger, settings):
    ledger.set("https://a.example.com/1", ApplyStatus.SUBMITTED)
    flows = ScriptedFlows({"https://b.example.com/2": [Outcome(ApplyStatus.SUBMITTED)]})
    session = FakeSession()

    summary = make_runner(session, ledger, settings, flows).run(
        candidates("https://a.example.com/1", "https://b.example.com/2")
    )

    assert [url for url, _ in flows.calls] == ["https://b.example.com/2"]
    assert len(session.tabs) == 1
    assert summary["processed"] == 1


def test_each_url_is_written_once(ledger, settings):
    flows = ScriptedFlows({
        "https://a.example.com/1": [Outcome(ApplyStatus.SUBMITTED, "signal=text-phrase")],
        "https://b.example.com/2": [Outcome(ApplyStatus.CAPTCHA, leave_open=True)],
    })

    with patch.object(ledger, "set", wraps=ledger.set) as spy:
        summary = make_runner(FakeSession(), ledger, settings, flows).run(
            candidates("https://a.example.com/1", "https://b.example.com/2", "https://a.example.com/1")
        )

    assert [c.args[0] for c in spy.call_args_list] == ["https://a.example.com/1", "https://b.example.com/2"]
    assert summary["counts"] == {"submitted": 1, "captcha": 1}


def test_error_is_recorded_and_run_continues(ledger, settings):
    flows = ScriptedFlows({
        "https://a.example.com/1": [RuntimeError("selector exploded")],
        "https://b.example.com/2": [Outcome(ApplyStatus.SUBMITTED)],
    })
    runner = make_runner(FakeSession(), ledger, settings, flows)

    summary = runner.run(candidates("https://a.example.com/1", "https://b.example.com/2"))

    assert ledger.get("https://a.example.com/1").status is ApplyStatus.ERROR
    assert ledger.get("https://a.example.com/1").detail == "selector exploded"
    assert ledger.get("https://b.example.com/2").status is ApplyStatus.SUBMITTED
    assert runner.diagnostics.captured == ["error"]
    assert summary["processed"] == 2


def test_tabs_close_unless_left_open(ledger, settings):
    flows = ScriptedFlows({
        "https://a.example.com/1": [Outcome(ApplyStatus.SUBMITTED)],
        "https://b.example.com/2": [Outcome(ApplyStatus.LOGIN_REQUIRED, leave_open=True)],
    })
    session = FakeSession()

    make_runner(session, ledger, settings, flows).run(
        candidates("https://a.example.com/1", "https://b.example.com/2")
    )

    assert session.tabs[0].closed
    assert not session.tabs[1].closed


def test_tabs_opened_by_the_flow_are_closed_too(ledger, settings):
    popup = FakePage(url="https://jobs.example.com/apply")

    def adopt_popup(attempt):
        attempt.switch_to(popup)
        return Outcome(ApplyStatus.SUBMITTED)

    session = FakeSession()
    flows = ScriptedFlows({"https://a.example.com/1": [adopt_popup]})

    make_runner(session, ledger, settings, flows).run(candidates("https://a.example.com/1"))

    assert session.tabs[0].closed
    assert popup.closed


def test_connection_loss_reconnects_and_retries_once(ledger, settings):
    flows = ScriptedFlows({
        "https://a.example.com/1": [
            RuntimeError("Target page, context or browser has been closed"),
            Outcome(ApplyStatus.SUBMITTED),
        ],
    })
    session = FakeSession(reconnect_ok=True)
    runner = make_runner(session, ledger, settings, flows)

    runner.run(candidates("https://a.example.com/1"))

    assert session.reconnects == 1
    assert len(flows.calls) == 2
    assert ledger.get("https://a.example.com/1").status is ApplyStatus.SUBMITTED
    assert runner.diagnostics.captured == []


def test_failed_reconnect_records_error(ledger, settings):
    flows = ScriptedFlows({
        "https://a.example.com/1": [RuntimeError("Browser has been closed")],
    })
    session = FakeSession(reconnect_ok=False)

    make_runner(session, ledger, settings, flows).run(candidates("https://a.example.com/1"))

    entry = ledger.get("https://a.example.com/1")
    assert session.reconnects == 1
    assert entry.status is ApplyStatus.ERROR
    assert entry.detail.startswith("browser connection lost")


def test_second_connection_loss_is_not_retried(ledger, settings):
    lost = "Target page, context or browser has been closed"
    flows = ScriptedFlows({"https://a.example.com/1": [RuntimeError(lost), RuntimeError(lost)]})
    session = FakeSession(reconnect_ok=True)

    make_runner(session, ledger, settings, flows).run(candidates("https://a.example.com/1"))

    assert session.reconnects == 1
    assert ledger.get("https://a.example.com/1").status is ApplyStatus.ERROR


def test_max_per_run_and_pacing(ledger, settings):
    urls = [f"https://a.example.com/{i}" for i in range(4)]
    flows = ScriptedFlows({url: [Outcome(ApplyStatus.SUBMITTED)] for url in urls})
    sleeps = []

    summary = make_runner(FakeSession(), ledger, settings, flows, sleeps=sleeps).run(candidates(*urls), max_per_run=3)

    assert summary["processed"] == 3
    assert not ledger.has(urls[3])
    assert sleeps == [4.0, 4.0]


def test_only_url_limits_the_run(ledger, settings):
    flows = ScriptedFlows({"https://b.example.com/2": [Outcome(ApplyStatus.ATTEMPTED, leave_open=True)]})

    summary = make_runner(FakeSession(), ledger, settings, flows).run(
        candidates("https://a.example.com/1", "https://b.example.com/2"), only_url="https://b.example.com/2"
    )

    assert [r["url"] for r in summary["results"]] == ["https://b.example.com/2"]


def test_answers_are_passed_to_the_flow(ledger, settings):
    flows = ScriptedFlows({"https://a.example.com/1": [Outcome(ApplyStatus.SUBMITTED)]})
    answers = AnswerBook(default="Why {company}: tooling.")

    make_runner(FakeSession(), ledger, settings, flows, answers=answers).run(candidates("https://a.example.com/1"))

    assert flows.calls == [("https://a.example.com/1", "Why Acme: tooling.")]
