# Apply Actions - automated and manual application runs
from .apply import run_auto_apply, apply_to_single_url
from .manual_apply import open_for_manual_apply

__all__ = [
    'run_auto_apply',
    'apply_to_single_url',
    'open_for_manual_apply',
]
