"""Pydantic models shared by the apply flow, the ledger and the actions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ApplyStatus(str, Enum):
    OPENED = "opened"
    MANUAL_SUBMITTED = "manual-submitted"
    SUBMITTED = "submitted"
    ATTEMPTED = "attempted"
    ERROR = "error"
    UNAVAILABLE = "unavailable"
    CAPTCHA = "captcha"
    LOGIN_REQUIRED = "login_required"
    NEEDS_ACCOUNT = "needs_account"
    VERIFY_EMAIL = "verify_email"


# Outcomes after which a human has to finish the application in the open tab.
BLOCKED_STATUSES = frozenset({
    ApplyStatus.CAPTCHA,
    ApplyStatus.LOGIN_REQUIRED,
    ApplyStatus.NEEDS_ACCOUNT,
    ApplyStatus.VERIFY_EMAIL,
    ApplyStatus.UNAVAILABLE,
})


class Candidate(BaseModel):
    """A job posting eligible for an application attempt."""

    model_config = {"frozen": True}

    url: str = Field(description="Posting URL, unique key in the ledger")
    company: str = Field(default="", description="Company name")
    title: str = Field(default="", description="Job title")
    location: str = Field(default="", description="Job location")
    snippet: str = Field(default="", description="Raw list line the candidate came from")
    score: Optional[int] = Field(default=None, description="Relevance score from the list")

    @property
    def role(self) -> str:
        return self.title or "internship"


class LedgerEntry(BaseModel):
    """One URL's persisted status."""

    url: str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    status: ApplyStatus
    detail: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        """Value stored under the URL key in the ledger file."""
        record: Dict[str, Any] = {"timestamp": self.timestamp, "status": self.status.value}
        if self.detail:
            record["detail"] = self.detail
        return record

    @classmethod
    def from_record(cls, url: str, record: Dict[str, Any]) -> "LedgerEntry":
        """Build an entry from a stored value, accepting the legacy ts/error/answer keys."""
        timestamp = record.get("timestamp") or record.get("ts") or ""
        raw_status = str(record.get("status") or record.get("state") or "")
        detail = record.get("detail") or record.get("error")
        if detail is None and record.get("answer"):
            detail = f"answer={record['answer']}"
        try:
            status = ApplyStatus(raw_status)
        except ValueError:
            status = ApplyStatus.ERROR
            detail = f"unrecognized status: {raw_status}" + (f"; {detail}" if detail else "")
        return cls(url=url, timestamp=str(timestamp), status=status, detail=detail)


@dataclass
class Outcome:
    """Terminal result of one flow run."""

    status: ApplyStatus
    detail: Optional[str] = None
    leave_open: bool = False


@dataclass
class ApplyAttempt:
    """Ephemeral per-candidate state owned by the flow."""

    candidate: Candidate
    page: Any
    leave_open: bool = False
    next_step: Optional[str] = None
    answer_filled: bool = False
    pages: List[Any] = field(default_factory=list)

    def switch_to(self, page: Any) -> None:
        """Make `page` the active tab; every tab touched stays owned by the attempt."""
        if page not in self.pages:
            self.pages.append(page)
        self.page = page
