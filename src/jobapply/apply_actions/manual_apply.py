from sema4ai.actions import ActionError, Response, action
import dotenv
import time
from datetime import datetime

from playwright.sync_api import Error as PlaywrightError

from ..utils.candidates import load_candidate_list
from ..utils.config import FlowSettings
from ..utils.ledger import LedgerError, open_ledger
from ..utils.models import ApplyStatus
from ..utils.robolog import setup_logging, log, cleanup_logging
from ..utils.robolog_screenshots import (
    log_section_start, log_section_end,
    log_success, log_warning, log_error,
    log_metric
)
from ..utils.session import BrowserAttachError, BrowserSession

dotenv.load_dotenv()


def _wait_for_close(page, timeout: float, poll: float = 2.0) -> bool:
    """True once the human closes the tab, False if `timeout` passes first."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if page.is_closed():
            return True
        time.sleep(poll)
    return page.is_closed()


@action
def open_for_manual_apply(
    list_path: str,
    count: int = 5,
    wait_minutes: float = 30.0
) -> Response:
    """Open unprocessed postings one at a time for a human to complete.

    Each posting is recorded as "opened" when its tab opens and as
    "manual-submitted" once the human closes the tab. Postings already in the
    ledger are skipped.

    Args:
        list_path: Path to the candidate list
        count: How many postings to open (default: 5)
        wait_minutes: How long to wait for each tab to be closed (default: 30)

    Returns:
        Response with the per-posting statuses
    """
    run_id = f"manual_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    setup_logging(
        output_dir=f"./output/{run_id}",
        enable_html_report=True,
        log_level="info"
    )

    session = None
    ledger = None
    try:
        log_section_start(f"Manual apply: {list_path}", "🖐️")
        settings = FlowSettings.from_env()

        try:
            candidates = load_candidate_list(list_path)
            ledger = open_ledger()
        except (OSError, LedgerError) as e:
            raise ActionError(str(e)) from e

        pending = [c for c in candidates if not ledger.has(c.url)][:count]
        log.info(f"{len(pending)} posting(s) to open")

        session = BrowserSession(endpoint=settings.cdp_endpoint, navigation_timeout=settings.navigation_timeout)
        try:
            session.connect()
        except BrowserAttachError as e:
            log_error("Cannot attach to browser", details=str(e))
            raise ActionError(str(e)) from e

        results = []
        for candidate in pending:
            try:
                page = session.new_tab()
                page.goto(candidate.url, wait_until="domcontentloaded")
                page.bring_to_front()
                ledger.set(candidate.url, ApplyStatus.OPENED, f"{candidate.company} | {candidate.title}")
                log.info(f"Opened {candidate.url}; close the tab when the application is done")

                if _wait_for_close(page, wait_minutes * 60):
                    ledger.set(candidate.url, ApplyStatus.MANUAL_SUBMITTED)
                    results.append({"url": candidate.url, "status": ApplyStatus.MANUAL_SUBMITTED.value})
                    log_success(f"Marked manual-submitted: {candidate.url}")
                else:
                    results.append({"url": candidate.url, "status": ApplyStatus.OPENED.value})
                    log_warning(f"Tab still open after {wait_minutes:.0f} minutes", details=candidate.url)
            except PlaywrightError as e:
                ledger.set(candidate.url, ApplyStatus.ERROR, str(e))
                results.append({"url": candidate.url, "status": ApplyStatus.ERROR.value, "detail": str(e)})
                log_error(f"Could not open {candidate.url}", details=str(e))

        log_metric("Opened", len(results), "postings", "🖐️")
        log_section_end("Manual apply")
        return Response(result={
            "success": True,
            "run_id": run_id,
            "results": results,
            "log_file": f"./output/{run_id}/log.html"
        })

    finally:
        if session is not None:
            session.close()
        if ledger is not None:
            ledger.close()
        cleanup_logging()
