# Server Actions - browser check, ledger inspection and exports
from .browser import check_browser_connection
from .ledger import ledger_summary, query_ledger
from .exports import export_ledger

__all__ = [
    'check_browser_connection',
    'ledger_summary',
    'query_ledger',
    'export_ledger',
]
