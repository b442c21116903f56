"""Candidate list parsing.

List files hold one posting per line:

    - <url> | <company> | <title> | <location> [#score:<n>]

Anything not starting with the list marker is ignored.
"""
import re
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from .models import Candidate

LIST_MARKER = "- "
_SCORE_RE = re.compile(r"#score:\s*(-?\d+)", re.IGNORECASE)


def parse_candidate_line(line: str) -> Optional[Candidate]:
    """Parse one list line, returning None for non-list lines."""
    if not line.startswith(LIST_MARKER):
        return None

    body = line[len(LIST_MARKER):].strip()
    score = None
    match = _SCORE_RE.search(body)
    if match:
        score = int(match.group(1))
        body = (body[:match.start()] + body[match.end():]).strip()

    parts = [p.strip() for p in body.split("|")]
    url = parts[0] if parts else ""
    if not url.lower().startswith(("http://", "https://")):
        return None

    fields = parts[1:] + [""] * 3
    company = fields[0] or parse_company_from_url(url)
    return Candidate(
        url=url,
        company=company,
        title=fields[1],
        location=fields[2],
        snippet=line.strip(),
        score=score,
    )


def parse_candidate_list(text: str) -> List[Candidate]:
    """Parse list text, keeping the first occurrence of each URL."""
    seen = set()
    candidates = []
    for raw in text.splitlines():
        candidate = parse_candidate_line(raw.rstrip("\r"))
        if candidate is None or candidate.url in seen:
            continue
        seen.add(candidate.url)
        candidates.append(candidate)
    return candidates


def load_candidate_list(path: str) -> List[Candidate]:
    return parse_candidate_list(Path(path).read_text(encoding="utf-8"))


def list_urls(candidates: Iterable[Candidate]) -> List[str]:
    return [c.url for c in candidates]


def parse_company_from_url(url: str) -> str:
    """Best-effort company name from an ATS posting URL."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return ""
    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]

    # boards.greenhouse.io/<company>/jobs/<id>, jobs.lever.co/<company>/<id>
    if ("greenhouse.io" in host or "lever.co" in host or "ashbyhq.com" in host) and segments:
        return _titleize(segments[0])

    # <tenant>.wd5.myworkdayjobs.com/...
    if "myworkdayjobs.com" in host or "myworkday.com" in host:
        return _titleize(host.split(".")[0])

    # careers.<company>.com / jobs.<company>.com / <company>.com
    labels = [l for l in host.split(".") if l not in ("www", "careers", "jobs", "boards", "apply")]
    if len(labels) >= 2:
        return _titleize(labels[-2])
    return _titleize(labels[0]) if labels else ""


def _titleize(token: str) -> str:
    return " ".join(part.capitalize() for part in re.split(r"[-_]+", token) if part)
