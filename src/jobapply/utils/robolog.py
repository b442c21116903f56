"""Logging setup on top of robocorp-log.

Each action run gets its own output directory holding the .robolog files and a
standalone log.html report. Credential values are registered for redaction
before any page interaction happens.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from robocorp import log


_LOGGING_INITIALIZED = False
# Output level chosen at setup, used by the console helpers to avoid
# printing a message twice.
_OUTPUT_LOG_LEVEL: str = "info"

_LEVEL_ORDER = {
    "debug": 10,
    "info": 20,
    "warn": 30,
    "critical": 40,
    "none": 999,
}

SENSITIVE_NAMES = [
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "credential",
    "credentials",
    "cookie",
    "session_id",
    "ats_password",
    "workday_password",
    "workday_pass",
]


def setup_logging(
    output_dir: Optional[str] = None,
    max_file_size: str = "5MB",
    max_files: int = 10,
    log_level: str = "info",
    output_log_level: str = "info",
    enable_html_report: bool = True
) -> None:
    """
    Initialize robocorp-log for one action run.

    Args:
        output_dir: Directory for log files (default: $ROBOCORP_LOG_OUTPUT_DIR or ./output)
        max_file_size: Max size per .robolog file
        max_files: Max number of .robolog files to keep
        log_level: Minimum level recorded in log.html (debug|info|warn|critical)
        output_log_level: Minimum level echoed to the console
        enable_html_report: Whether to generate log.html
    """
    global _LOGGING_INITIALIZED, _OUTPUT_LOG_LEVEL

    if _LOGGING_INITIALIZED:
        log.info("[Robolog] Logging already initialized, skipping setup")
        return

    if output_dir is None:
        output_dir = os.getenv("ROBOCORP_LOG_OUTPUT_DIR", "./output")
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    normalized_log_level = log_level.lower() if log_level.lower() in _LEVEL_ORDER else "info"
    normalized_output_level = output_log_level.lower() if output_log_level.lower() in _LEVEL_ORDER else "info"

    log.setup_log(
        max_value_repr_size="200k",
        log_level=normalized_log_level,  # type: ignore[arg-type]
        output_log_level=normalized_output_level,  # type: ignore[arg-type]
        output_stream={
            'debug': 'stdout',
            'info': 'stdout',
            'warn': 'stderr',
            'critical': 'stderr'
        }
    )

    log_html_path = output_path / "log.html" if enable_html_report else None
    log.add_log_output(
        output_dir=str(output_path),
        max_file_size=max_file_size,
        max_files=max_files,
        log_html=str(log_html_path) if log_html_path else None,
        log_html_style="standalone",
        min_messages_per_file=50
    )

    _configure_sensitive_data_protection()
    _OUTPUT_LOG_LEVEL = normalized_output_level
    _LOGGING_INITIALIZED = True

    log.info("=" * 80)
    log.info("[Robolog] Job application runner")
    log.info(f"[Robolog] Session started: {datetime.now().isoformat()}")
    log.info(f"[Robolog] Log directory: {output_path.absolute()}")
    if log_html_path:
        log.info(f"[Robolog] HTML report: {log_html_path.absolute()}")
    log.info("=" * 80)


def _configure_sensitive_data_protection() -> None:
    """Register variable names whose values robocorp-log must redact."""
    for name in SENSITIVE_NAMES:
        log.add_sensitive_variable_name(name)

    config = log.hide_strings_config()
    config.dont_hide_strings_smaller_or_equal_to = 3
    for word in ('None', 'True', 'False', 'null', 'undefined'):
        config.dont_hide_strings.add(word)

    log.debug("[Robolog] Sensitive data protection configured")


def hide_sensitive_value(value: Optional[str]) -> None:
    """Redact a runtime value (e.g. the portal password) from all later output."""
    if value:
        log.hide_from_output(value)


def should_print_to_console(message_level: str) -> bool:
    """
    True if robocorp-log itself will echo a message at `message_level` to the
    console under the configured output level.
    """
    lvl = (message_level or "").lower()
    if lvl == "error":
        lvl = "critical"
    if lvl == "warning":
        lvl = "warn"

    configured_rank = _LEVEL_ORDER.get((_OUTPUT_LOG_LEVEL or "info").lower(), 20)
    return configured_rank <= _LEVEL_ORDER.get(lvl, 20)


def cleanup_logging() -> None:
    """Flush and close log outputs so log.html is written."""
    global _LOGGING_INITIALIZED

    log.info("=" * 80)
    log.info(f"[Robolog] Session ended: {datetime.now().isoformat()}")
    log.info("=" * 80)
    log.close_log_outputs()
    _LOGGING_INITIALIZED = False


class suppress_sensitive_logging:
    """Context manager that stops robocorp-log from recording variables."""

    def __enter__(self):
        self._ctx = log.suppress_variables()
        return self._ctx.__enter__()

    def __exit__(self, *args):
        return self._ctx.__exit__(*args)


__all__ = [
    'log',
    'setup_logging',
    'cleanup_logging',
    'hide_sensitive_value',
    'should_print_to_console',
    'suppress_sensitive_logging',
]
