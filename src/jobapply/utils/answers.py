"""Pre-drafted narrative answers.

Answers are drafted elsewhere and handed over as a JSON document:

    {
      "default": "I'm excited about {company} because ...",
      "by_company": {"Acme": "..."},
      "by_url": {"https://boards.greenhouse.io/acme/jobs/123": "..."}
    }

`{company}` and `{role}` placeholders are filled per candidate. Any other
braces are left as written.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, Optional

from robocorp import log

from .models import Candidate

PLACEHOLDER_RE = re.compile(r"\{(company|role)\}")


class AnswerBook:
    def __init__(
        self,
        default: Optional[str] = None,
        by_company: Optional[Dict[str, str]] = None,
        by_url: Optional[Dict[str, str]] = None,
    ):
        self.default = default
        self.by_company = {k.strip().lower(): v for k, v in (by_company or {}).items()}
        self.by_url = dict(by_url or {})

    @classmethod
    def load(cls, path: Optional[str]) -> "AnswerBook":
        if not path:
            return cls()
        file = Path(path)
        if not file.exists():
            log.warn(f"[Answers] {path} not found, continuing without narrative answers")
            return cls()
        data = json.loads(file.read_text(encoding="utf-8"))
        return cls(
            default=data.get("default"),
            by_company=data.get("by_company"),
            by_url=data.get("by_url"),
        )

    def answer_for(self, candidate: Candidate) -> Optional[str]:
        template = (
            self.by_url.get(candidate.url)
            or self.by_company.get(candidate.company.strip().lower())
            or self.default
        )
        if not template:
            return None
        values = {"company": candidate.company or "your team", "role": candidate.role}
        return PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)
