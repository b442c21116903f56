from sema4ai.actions import ActionError, Response, action

from ..utils.candidates import list_urls, load_candidate_list
from ..utils.ledger import LedgerError, open_ledger, summarize
from ..utils.models import ApplyStatus


@action(is_consequential=False)
def ledger_summary(list_path: str = "") -> Response:
    """
    Count ledger entries by status, optionally only for the URLs in a candidate list.

    Args:
        list_path: Optional candidate list; when given, also reports how many of its URLs are still unprocessed

    Returns:
        Response with status counts
    """
    try:
        ledger = open_ledger()
        entries = ledger.load_all()
        ledger.close()
    except LedgerError as e:
        raise ActionError(str(e)) from e

    result = {"total_entries": len(entries)}
    if list_path:
        try:
            urls = list_urls(load_candidate_list(list_path))
        except OSError as e:
            raise ActionError(f"Cannot read candidate list {list_path}: {e}") from e
        result["list_total"] = len(urls)
        result["list_unprocessed"] = sum(1 for u in urls if u not in entries)
        result["counts"] = summarize(entries, urls)
    else:
        result["counts"] = summarize(entries)

    print(f"[ACTION] Ledger summary: {result['counts']}")
    return Response(result=result)


@action(is_consequential=False)
def query_ledger(status: str = "", limit: int = 50) -> Response:
    """
    List ledger entries, newest first, optionally filtered by status.

    Args:
        status: One of opened, manual-submitted, submitted, attempted, error, unavailable, captcha, login_required, needs_account, verify_email (empty for all)
        limit: Maximum number of entries to return (default: 50)

    Returns:
        Response with matching entries
    """
    if status:
        try:
            wanted = ApplyStatus(status)
        except ValueError:
            return Response(result={
                "success": False,
                "error": f"Unknown status '{status}'. Valid: {', '.join(s.value for s in ApplyStatus)}",
            })
    else:
        wanted = None

    try:
        ledger = open_ledger()
        entries = list(ledger.load_all().values())
        ledger.close()
    except LedgerError as e:
        raise ActionError(str(e)) from e

    if wanted is not None:
        entries = [e for e in entries if e.status == wanted]
    entries.sort(key=lambda e: e.timestamp, reverse=True)
    rows = [e.model_dump(mode="json") for e in entries[:limit]]

    return Response(result={
        "success": True,
        "status": status or None,
        "row_count": len(rows),
        "rows": rows,
    })
