from sema4ai.actions import ActionError, Response, action
import dotenv
from datetime import datetime

from ..utils.config import FlowSettings, load_credentials
from ..utils.robolog import setup_logging, log, cleanup_logging
from ..utils.robolog_screenshots import (
    log_section_start, log_section_end,
    log_success, log_warning, log_error
)
from ..utils.session import BrowserAttachError, BrowserSession

dotenv.load_dotenv()


@action(is_consequential=False)
def check_browser_connection() -> Response:
    """Attach to the running browser over its debugging endpoint and list its open tabs.

    Start Chrome with --remote-debugging-port=9222 (or set JOBAPPLY_CDP_ENDPOINT)
    before running any apply action.

    Returns:
        Response with the endpoint, browser version, open tab URLs and whether
        portal credentials are configured.
    """
    run_id = f"browser_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    setup_logging(
        output_dir=f"./output/{run_id}",
        enable_html_report=True,
        log_level="info"
    )

    session = None
    try:
        log_section_start("Browser connection", "🔌")
        settings = FlowSettings.from_env()
        session = BrowserSession(endpoint=settings.cdp_endpoint)
        try:
            session.connect()
        except BrowserAttachError as e:
            log_error("Cannot attach to browser", details=str(e))
            raise ActionError(str(e)) from e

        tabs = [page.url for page in session.pages()]
        version = session.context.browser.version if session.context.browser else "unknown"
        log_success(f"Attached to browser {version}", details=f"{len(tabs)} open tab(s)")

        has_credentials = load_credentials() is not None
        if not has_credentials:
            log_warning("No portal credentials configured (ATS_EMAIL / ATS_PASSWORD)")

        log_section_end("Browser connection")
        return Response(result={
            "success": True,
            "endpoint": settings.cdp_endpoint,
            "browser_version": version,
            "open_tabs": tabs,
            "credentials_configured": has_credentials,
        })

    finally:
        if session is not None:
            session.close()
        cleanup_logging()
