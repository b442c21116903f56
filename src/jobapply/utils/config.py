"""Environment-driven settings and credentials.

Every timeout and retry count used by the apply flow is a default here, not a
contract: override through the environment (or a `.env` file) without code
changes.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import dotenv
from pydantic import BaseModel, Field
from robocorp import log

dotenv.load_dotenv()


def _env_number(name: str, default, cast):
    value = os.getenv(name)
    if value in (None, ""):
        return default
    try:
        return cast(value)
    except ValueError:
        log.warn(f"[Config] Ignoring {name}={value!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    return _env_number(name, default, float)


def _env_int(name: str, default: int) -> int:
    return _env_number(name, default, int)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class FlowSettings(BaseModel):
    """Tunables for one run. All durations are in seconds."""

    cdp_endpoint: str = Field(default="http://127.0.0.1:9222", description="Remote debugging endpoint of the running browser")
    relaunch_profile_dir: str = Field(default="./output/browser-profile", description="Profile used if the browser has to be relaunched")
    navigation_timeout: float = 120.0

    locate_timeout: float = Field(default=10.0, description="Total deadline for one locate() call")
    strategy_timeout: float = Field(default=2.5, description="Time allowed for a single locator strategy")
    locate_poll: float = 0.5

    root_wait: float = 10.0
    reload_retries: int = 2
    reload_backoff: float = 1.2
    reload_root_wait: float = 7.0
    unavailable_reload_delay: float = 1.2

    new_tab_wait: float = 5.0
    modal_wait: float = 8.0
    field_wait: float = 2.5

    submission_wait: float = 180.0
    submission_poll: float = 2.5
    verification_wait: float = 180.0
    verification_poll: float = 7.0

    pacing_min: float = 3.0
    pacing_max: float = 5.0
    max_per_run: int = 10
    allow_submit: bool = Field(default=False, description="Click the final submit control instead of waiting for the human")

    diagnostics_dir: str = "./diagnostics"

    @classmethod
    def from_env(cls) -> "FlowSettings":
        """Read overrides from JOBAPPLY_* environment variables."""
        return cls(
            cdp_endpoint=os.getenv("JOBAPPLY_CDP_ENDPOINT", "http://127.0.0.1:9222"),
            relaunch_profile_dir=os.getenv("JOBAPPLY_PROFILE_DIR", "./output/browser-profile"),
            locate_timeout=_env_float("JOBAPPLY_LOCATE_TIMEOUT", 10.0),
            strategy_timeout=_env_float("JOBAPPLY_STRATEGY_TIMEOUT", 2.5),
            root_wait=_env_float("JOBAPPLY_ROOT_WAIT", 10.0),
            reload_retries=_env_int("JOBAPPLY_RELOAD_RETRIES", 2),
            reload_backoff=_env_float("JOBAPPLY_RELOAD_BACKOFF", 1.2),
            reload_root_wait=_env_float("JOBAPPLY_RELOAD_ROOT_WAIT", 7.0),
            new_tab_wait=_env_float("JOBAPPLY_NEW_TAB_WAIT", 5.0),
            modal_wait=_env_float("JOBAPPLY_MODAL_WAIT", 8.0),
            submission_wait=_env_float("JOBAPPLY_SUBMISSION_WAIT", 180.0),
            submission_poll=_env_float("JOBAPPLY_SUBMISSION_POLL", 2.5),
            verification_wait=_env_float("JOBAPPLY_VERIFICATION_WAIT", 180.0),
            verification_poll=_env_float("JOBAPPLY_VERIFICATION_POLL", 7.0),
            pacing_min=_env_float("JOBAPPLY_PACING_MIN", 3.0),
            pacing_max=_env_float("JOBAPPLY_PACING_MAX", 5.0),
            max_per_run=_env_int("MAX_PER_RUN", 10),
            allow_submit=_env_bool("JOBAPPLY_ALLOW_SUBMIT", False),
            diagnostics_dir=os.getenv("JOBAPPLY_DIAGNOSTICS_DIR", "./diagnostics"),
        )


class Credentials(BaseModel):
    """Account used for sign-in and account creation on applicant portals."""

    email: str
    password: str


def load_credentials() -> Optional[Credentials]:
    """Return configured credentials, or None when the run must stay manual."""
    email = os.getenv("ATS_EMAIL") or os.getenv("WORKDAY_EMAIL") or os.getenv("WORKDAY_USER")
    password = os.getenv("ATS_PASSWORD") or os.getenv("WORKDAY_PASSWORD") or os.getenv("WORKDAY_PASS")
    if not email or not password:
        return None
    return Credentials(email=email, password=password)


def get_ledger_path() -> str:
    """Path of the JSON ledger file."""
    return os.getenv("LEDGER_PATH") or str(Path.cwd() / "applied.json")


def get_answers_path() -> Optional[str]:
    return os.getenv("ANSWERS_PATH") or None
