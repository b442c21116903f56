"""Site-specific hints keyed by host.

Tenant literals (mount points, bootstrap assets, consent checkbox labels,
automation ids) live in this table instead of branches in the flow. A posting
URL resolves to the generic hint merged with every hint whose host pattern
matches; register more with `register_hint()`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple
from urllib.parse import urlparse

WORKDAY_BOOTSTRAP_JS = """
() => {
  if (!window.workday) return false;
  const cdn = window.workday.cdnEndpoint ? ('https://' + window.workday.cdnEndpoint) : 'https://wd5.myworkdaycdn.com';
  const clientOrigin = (window.workday.clientOrigin || cdn).replace(/\\/$/, '');
  const add = (src) => {
    const s = document.createElement('script');
    s.src = src;
    s.async = false;
    s.setAttribute('crossorigin', 'anonymous');
    document.head.appendChild(s);
  };
  add(clientOrigin + '/wday/asset/uic-shared-vendors/shared-vendors.min.js');
  add(cdn.replace(/\\/$/, '') + '/wday/asset/candidate-experience-jobs/cx-jobs.min.js');
  add(clientOrigin + '/wday/asset/client-analytics/uxInsights.min.js');
  return true;
}
"""


@dataclass(frozen=True)
class SiteHint:
    name: str
    host_pattern: Optional[Pattern[str]] = None
    mount_selectors: Tuple[str, ...] = ()
    bootstrap_scripts: Tuple[str, ...] = ()
    success_selectors: Tuple[str, ...] = ()
    consent_selectors: Tuple[str, ...] = ()
    consent_labels: Tuple[str, ...] = ()
    account_gate_selectors: Tuple[str, ...] = ()
    overlay_selectors: Tuple[str, ...] = ()
    click_order: Optional[Tuple[str, ...]] = None

    def applies_to(self, url: str) -> bool:
        if self.host_pattern is None:
            return True
        host = (urlparse(url).hostname or "").lower()
        return bool(self.host_pattern.search(host))


@dataclass
class ResolvedHints:
    """Union of all hints that apply to one URL."""

    names: List[str] = field(default_factory=list)
    mount_selectors: List[str] = field(default_factory=list)
    bootstrap_scripts: List[str] = field(default_factory=list)
    success_selectors: List[str] = field(default_factory=list)
    consent_selectors: List[str] = field(default_factory=list)
    consent_labels: List[str] = field(default_factory=list)
    account_gate_selectors: List[str] = field(default_factory=list)
    overlay_selectors: List[str] = field(default_factory=list)
    click_order: Optional[Tuple[str, ...]] = None


GENERIC = SiteHint(
    name="generic",
    mount_selectors=("#root",),
    success_selectors=(
        ".application-submitted",
        ".thanks",
        "#submissionConfirmation",
        '[data-qa="application-confirmation"]',
        ".lever-application-complete",
    ),
    account_gate_selectors=('[data-automation-id*="createAccount"]',),
)

WORKDAY = SiteHint(
    name="workday",
    host_pattern=re.compile(r"(^|\.)myworkday(jobs|site)?\.com$"),
    mount_selectors=("#root",),
    bootstrap_scripts=(WORKDAY_BOOTSTRAP_JS,),
    success_selectors=('[data-automation-id="applicationSubmittedMessage"]',),
    consent_selectors=('input[data-automation-id="createAccountCheckbox"]',),
    consent_labels=("yes, i have read and consent to the terms and conditions",),
    account_gate_selectors=(
        '[data-automation-id="createAccountSubmitButton"]',
        '[data-automation-id="createAccountLink"]',
    ),
    overlay_selectors=('[data-automation-id="click_filter"]', '[data-automation-id="click-filter"]'),
    click_order=("mouse", "native", "synthetic"),
)

GREENHOUSE = SiteHint(
    name="greenhouse",
    host_pattern=re.compile(r"(^|\.)greenhouse\.io$"),
    success_selectors=("#application_confirmation", ".application-confirmation"),
)

LEVER = SiteHint(
    name="lever",
    host_pattern=re.compile(r"(^|\.)lever\.co$"),
    success_selectors=('[data-qa="application-confirmation"]', ".lever-application-complete"),
)

_REGISTRY: List[SiteHint] = [WORKDAY, GREENHOUSE, LEVER]


def register_hint(hint: SiteHint) -> None:
    """Add a hint; later registrations win for click order."""
    _REGISTRY.append(hint)


def resolve_hints(url: str) -> ResolvedHints:
    resolved = ResolvedHints()
    for hint in [GENERIC] + [h for h in _REGISTRY if h.applies_to(url)]:
        resolved.names.append(hint.name)
        for attr in (
            "mount_selectors",
            "bootstrap_scripts",
            "success_selectors",
            "consent_selectors",
            "consent_labels",
            "account_gate_selectors",
            "overlay_selectors",
        ):
            bucket = getattr(resolved, attr)
            for value in getattr(hint, attr):
                if value not in bucket:
                    bucket.append(value)
        if hint.click_order:
            resolved.click_order = hint.click_order
    return resolved
