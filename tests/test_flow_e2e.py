"""
End-to-end apply flow in headless Chromium against routed fixture pages.

Postings are served for boards.greenhouse.io through `context.route`, so no
network access is needed. Skipped when no Chromium build is available.
"""
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from jobapply.utils.answers import AnswerBook
from jobapply.utils.config import FlowSettings
from jobapply.utils.diagnostics import DiagnosticsSink
from jobapply.utils.ledger_json import JsonLedger
from jobapply.utils.models import ApplyStatus, Candidate
from jobapply.utils.runner import ApplyRunner
from jobapply.utils.session import BrowserSession

DESCRIPTION = (
    "<h1>Software Engineering Intern</h1>"
    "<p>Acme is hiring summer interns in New York City to build developer tooling "
    "and the infrastructure behind our platform.</p>"
)

FORM_PAGE = f"""
<html><head><title>SWE Intern - Acme</title></head><body>
{DESCRIPTION}
<button id="apply" onclick="document.getElementById('form').style.display = 'block'">Apply Now</button>
<form id="form" style="display:none"
      onsubmit="event.preventDefault(); document.body.innerHTML = '<h2>Thank you for applying</h2>';">
  <div>
    <label for="why">Why Acme?</label>
    <textarea id="why" name="why"></textarea>
  </div>
  <button type="submit">Submit application</button>
</form>
</body></html>
"""

UNAVAILABLE_LANDING = f"""
<html><body>
{DESCRIPTION}
<a href="/acme/jobs/456/apply">Apply Now</a>
</body></html>
"""

UNAVAILABLE_TARGET = "<html><body><p>Service is unavailable</p></body></html>"

ACCOUNT_PAGE = f"""
<html><body>
{DESCRIPTION}
<button onclick="document.getElementById('gate').style.display = 'block'">Apply</button>
<section id="gate" style="display:none">
  <h2>Create Account</h2>
  <input type="email" name="email">
  <input type="password" name="password">
  <input type="password" name="verifyPassword">
</section>
</body></html>
"""

CAPTCHA_PAGE = f"""
<html><body>
{DESCRIPTION}
<div class="g-recaptcha" style="width:300px;height:80px"></div>
<button>Apply Now</button>
</body></html>
"""

PAGES = {
    "/acme/jobs/123": FORM_PAGE,
    "/acme/jobs/456": UNAVAILABLE_LANDING,
    "/acme/jobs/456/apply": UNAVAILABLE_TARGET,
    "/acme/jobs/789": ACCOUNT_PAGE,
    "/acme/jobs/999": CAPTCHA_PAGE,
}


@pytest.fixture
def routed_context(browser_context):
    def handle(route):
        path = route.request.url.split("boards.greenhouse.io", 1)[1].split("?")[0]
        body = PAGES.get(path)
        if body is None:
            route.fulfill(status=404, content_type="text/html", body="<html><body>Not found</body></html>")
        else:
            route.fulfill(status=200, content_type="text/html", body=body)

    browser_context.route("https://boards.greenhouse.io/**", handle)
    return browser_context


@pytest.fixture
def diagnostics_dir(tmp_path):
    return tmp_path / "diagnostics"


@pytest.fixture
def run_one(routed_context, tmp_path, diagnostics_dir):
    ledger = JsonLedger(str(tmp_path / "applied.json"))

    def run(url, allow_submit=False):
        settings = FlowSettings(
            navigation_timeout=15,
            locate_timeout=3,
            strategy_timeout=1,
            locate_poll=0.2,
            root_wait=0.5,
            reload_retries=0,
            unavailable_reload_delay=0,
            new_tab_wait=0.3,
            modal_wait=1,
            field_wait=1,
            submission_wait=4,
            submission_poll=0.5,
            pacing_min=0,
            pacing_max=0,
            allow_submit=allow_submit,
            diagnostics_dir=str(diagnostics_dir),
        )
        runner = ApplyRunner(
            session=BrowserSession.from_context(routed_context, navigation_timeout=15),
            ledger=ledger,
            settings=settings,
            answers=AnswerBook(default="I want to build developer tools at {company}."),
            diagnostics=DiagnosticsSink(str(diagnostics_dir)),
        )
        runner.run([Candidate(url=url, company="Acme", title="SWE Intern")])
        return ledger.get(url)

    return run


def test_form_is_filled_and_submitted(run_one, routed_context):
    entry = run_one("https://boards.greenhouse.io/acme/jobs/123", allow_submit=True)

    assert entry.status is ApplyStatus.SUBMITTED
    assert entry.detail == "signal=text-phrase; answer=why-company"
    assert routed_context.pages == []


def test_unavailable_target_stays_open_with_diagnostics(run_one, routed_context, diagnostics_dir):
    entry = run_one("https://boards.greenhouse.io/acme/jobs/456")

    assert entry.status is ApplyStatus.UNAVAILABLE
    assert len(routed_context.pages) == 1
    assert routed_context.pages[0].url.endswith("/acme/jobs/456/apply")
    assert list(diagnostics_dir.glob("*-unavailable.png"))
    assert list(diagnostics_dir.glob("*-unavailable.html"))


def test_account_gate_without_credentials(run_one, routed_context, diagnostics_dir):
    entry = run_one("https://boards.greenhouse.io/acme/jobs/789")

    assert entry.status is ApplyStatus.NEEDS_ACCOUNT
    assert len(routed_context.pages) == 1
    assert list(diagnostics_dir.glob("*-create-account-no-creds.png"))


def test_captcha_stops_the_flow(run_one, routed_context):
    entry = run_one("https://boards.greenhouse.io/acme/jobs/999")

    assert entry.status is ApplyStatus.CAPTCHA
    assert entry.detail == "captcha at hydrating"
    assert len(routed_context.pages) == 1


def test_unsubmitted_form_is_left_for_the_human(run_one, routed_context, diagnostics_dir):
    entry = run_one("https://boards.greenhouse.io/acme/jobs/123")

    assert entry.status is ApplyStatus.ATTEMPTED
    assert entry.detail.endswith("answer=why-company")
    assert routed_context.pages[0].input_value("#why") == "I want to build developer tools at Acme."
    assert list(diagnostics_dir.glob("*-no-submit.png"))
