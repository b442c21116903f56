from sema4ai.actions import ActionError, Response, action
import dotenv
from datetime import datetime
from typing import List, Optional

from ..utils.answers import AnswerBook
from ..utils.candidates import load_candidate_list, parse_company_from_url
from ..utils.config import FlowSettings, get_answers_path, load_credentials
from ..utils.diagnostics import DiagnosticsSink
from ..utils.ledger import LedgerError, open_ledger
from ..utils.models import Candidate
from ..utils.robolog import setup_logging, log, cleanup_logging, hide_sensitive_value
from ..utils.robolog_screenshots import (
    log_section_start, log_section_end,
    log_success, log_warning, log_error,
    log_metric, embed_html_table
)
from ..utils.runner import ApplyRunner
from ..utils.session import BrowserAttachError, BrowserSession

dotenv.load_dotenv()


def _run_candidates(
    candidates: List[Candidate],
    run_id: str,
    max_per_run: Optional[int] = None,
    only_url: Optional[str] = None,
    allow_submit: Optional[bool] = None,
) -> dict:
    """Attach to the browser and run the flow over `candidates`."""
    settings = FlowSettings.from_env()
    overrides = {}
    if max_per_run is not None:
        overrides["max_per_run"] = max_per_run
    if allow_submit is not None:
        overrides["allow_submit"] = allow_submit
    if overrides:
        settings = settings.model_copy(update=overrides)
    log.info(f"Max per run: {settings.max_per_run}")
    log.info(f"Submit mode: {'ENABLED' if settings.allow_submit else 'HUMAN SUBMITS'}")

    credentials = load_credentials()
    if credentials:
        hide_sensitive_value(credentials.email)
        hide_sensitive_value(credentials.password)
        log.info("Portal credentials configured")
    else:
        log_warning("No portal credentials configured", details="Account and sign-in gates will be left for manual completion")

    try:
        ledger = open_ledger()
    except LedgerError as e:
        raise ActionError(str(e)) from e

    session = BrowserSession(
        endpoint=settings.cdp_endpoint,
        relaunch_profile_dir=settings.relaunch_profile_dir,
        navigation_timeout=settings.navigation_timeout,
    )
    try:
        session.connect()
    except BrowserAttachError as e:
        log_error("Cannot attach to browser", details=str(e))
        raise ActionError(str(e)) from e

    try:
        runner = ApplyRunner(
            session=session,
            ledger=ledger,
            settings=settings,
            credentials=credentials,
            answers=AnswerBook.load(get_answers_path()),
            diagnostics=DiagnosticsSink(settings.diagnostics_dir),
        )
        summary = runner.run(candidates, only_url=only_url)
    finally:
        session.close()
        ledger.close()

    for status, count in summary["counts"].items():
        log_metric(status, count, "jobs")
    embed_html_table(f"Run {run_id}", summary["results"])
    return summary


@action
def run_auto_apply(
    list_path: str,
    max_per_run: Optional[int] = None,
    only_url: str = "",
    allow_submit: Optional[bool] = None
) -> Response:
    """Work through a candidate list in the attached browser, recording every outcome in the ledger.

    Candidates already in the ledger are skipped. Blocked or unconfirmed
    applications are left open in their tab for manual follow-up.

    Args:
        list_path: Path to the candidate list ("- <url> | <company> | <title> | <location>" lines)
        max_per_run: Maximum number of candidates to process in this run (default: MAX_PER_RUN, else 10)
        only_url: Process only this URL from the list (debugging)
        allow_submit: Click the final submit control instead of waiting for a human (default: JOBAPPLY_ALLOW_SUBMIT, else False)

    Returns:
        Response with per-status counts and per-candidate results
    """
    run_id = f"apply_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    setup_logging(
        output_dir=f"./output/{run_id}",
        enable_html_report=True,
        log_level="info"
    )

    try:
        log_section_start(f"Auto apply: {list_path}", "📝")

        try:
            candidates = load_candidate_list(list_path)
        except OSError as e:
            raise ActionError(f"Cannot read candidate list {list_path}: {e}") from e
        log.info(f"Loaded {len(candidates)} candidates from {list_path}")

        summary = _run_candidates(
            candidates,
            run_id,
            max_per_run=max_per_run,
            only_url=only_url or None,
            allow_submit=allow_submit,
        )
        log_success(f"Processed {summary['processed']} candidate(s)")
        log_section_end("Auto apply")

        return Response(result={
            "success": True,
            "run_id": run_id,
            "list_path": list_path,
            **summary,
            "log_file": f"./output/{run_id}/log.html"
        })

    except ActionError:
        raise
    except Exception as e:
        log_error("Run failed with unexpected error", details=str(e))
        log.exception()
        return Response(result={
            "success": False,
            "error": str(e),
            "run_id": run_id,
            "log_file": f"./output/{run_id}/log.html"
        })

    finally:
        cleanup_logging()


@action
def apply_to_single_url(
    url: str,
    company: str = "",
    title: str = "",
    allow_submit: Optional[bool] = None
) -> Response:
    """Run one application attempt for a posting URL outside of any list.

    The ledger still gates the attempt: a URL that already has an entry is
    not reopened.

    Args:
        url: Posting URL
        company: Company name (used to match "Why <company>?" questions)
        title: Job title
        allow_submit: Click the final submit control instead of waiting for a human (default: JOBAPPLY_ALLOW_SUBMIT)

    Returns:
        Response with the recorded status
    """
    run_id = f"apply_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    setup_logging(
        output_dir=f"./output/{run_id}",
        enable_html_report=True,
        log_level="info"
    )

    try:
        log_section_start(f"Single application: {url}", "📝")
        candidate = Candidate(url=url, company=company or parse_company_from_url(url), title=title)
        summary = _run_candidates([candidate], run_id, max_per_run=1, allow_submit=allow_submit)
        log_section_end("Single application")

        result = summary["results"][0] if summary["results"] else None
        return Response(result={
            "success": result is not None,
            "url": url,
            "status": result["status"] if result else "skipped",
            "detail": result["detail"] if result else "already in ledger",
            "log_file": f"./output/{run_id}/log.html"
        })

    except ActionError:
        raise
    except Exception as e:
        log_error("Application failed with unexpected error", details=str(e))
        log.exception()
        return Response(result={
            "success": False,
            "error": str(e),
            "url": url,
            "log_file": f"./output/{run_id}/log.html"
        })

    finally:
        cleanup_logging()
