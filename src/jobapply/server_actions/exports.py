from sema4ai.actions import ActionError, action
import pandas as pd
import json
from datetime import datetime
from pathlib import Path

from ..utils.ledger import LedgerError, open_ledger


@action
def export_ledger(format: str = "csv", output_dir: str = "./output/exports") -> str:
    """Export the ledger to a CSV or JSON file.

    Args:
        format: Output format - "csv" or "json" (default: "csv")
        output_dir: Directory the export is written to (default: ./output/exports)

    Returns:
        Message with the export path and row count
    """
    try:
        ledger = open_ledger()
        entries = ledger.load_all()
        ledger.close()
    except LedgerError as e:
        raise ActionError(str(e)) from e

    if not entries:
        return "❌ Ledger is empty, nothing to export"

    rows = [e.model_dump(mode="json") for e in entries.values()]
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    if format.lower() == "json":
        path = target_dir / f"ledger_{timestamp}.json"
        path.write_text(json.dumps(rows, indent=2), encoding="utf-8")
    else:
        path = target_dir / f"ledger_{timestamp}.csv"
        df = pd.DataFrame(rows, columns=["url", "timestamp", "status", "detail"])
        df.to_csv(path, index=False)

    print(f"[Export] Wrote {len(rows)} entries to {path}")
    return f"✅ Exported {len(rows)} ledger entries\n\nFile: {path}\nFormat: {format.upper()}"
