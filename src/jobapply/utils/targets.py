"""Semantic targets used by the apply flow."""
import re

from .locator import CHECKBOX, CLICKABLE, FILLABLE, Target

ATS_HREF_TOKENS = (
    "apply",
    "icims",
    "myworkday",
    "greenhouse",
    "lever",
    "smartrecruiters",
    "apply-online",
    "candidate-experience",
    "applyfor",
)

APPLY = Target.build(
    "apply",
    [r"apply for this job", r"\bapply now\b", r"start application", r"\bapply\b", r"apply-online", r"applyfor"],
    attribute_tokens=("apply",),
    href_tokens=ATS_HREF_TOKENS,
)

# Interstitial choices, highest priority first.
MODAL_CHOICES = (
    Target.build("autofill", [r"autofill with resume", r"autofill resume", r"\bautofill\b"], attribute_tokens=("autofill",)),
    Target.build("use-last", [r"use my last application", r"use last application", r"use my last"]),
    Target.build("manual", [r"apply manually", r"apply without resume"], attribute_tokens=("applymanually",)),
    Target.build("generic", [r"\bapply\b", r"apply now", r"\bcontinue\b"]),
)

WHY_PATTERNS = (
    r"what excites",
    r"why.*(us|company|join)",
    r"interest.*company",
    r"why.*role",
)


def why_company_target(company: str = "") -> Target:
    """The narrative 'why this company/role' field, also matching 'Why <Company>?'."""
    patterns = list(WHY_PATTERNS)
    if company:
        patterns.append(r"why\s+" + re.escape(company.strip()))
    return Target.build("why-company", patterns, kind=FILLABLE)


SUBMIT = Target.build(
    "submit",
    [r"submit application", r"submit your application", r"send application", r"^\s*submit\s*$"],
    attribute_tokens=("submit",),
)

CREATE_ACCOUNT_SUBMIT = Target.build(
    "create-account",
    [r"create account", r"create my account", r"\bregister\b"],
    attribute_tokens=("createaccountsubmitbutton", "createaccount"),
)

SIGN_IN = Target.build(
    "sign-in",
    [r"\bsign in\b", r"\blog in\b", r"\blogin\b"],
    attribute_tokens=("signin", "signinsubmitbutton"),
)

CONSENT = Target.build(
    "consent",
    [r"\bterms\b", r"consent", r"\bagree\b", r"\baccept\b", r"privacy", r"conditions"],
    kind=CHECKBOX,
)

AGREE = Target.build(
    "agree",
    [r"^\s*i agree\s*$", r"^\s*agree\s*$", r"^\s*accept\s*$", r"^\s*i accept\s*$"],
    kind=CLICKABLE,
)

VERIFICATION_CONTINUE = Target.build(
    "verification-continue",
    [r"^\s*continue\s*$", r"\bsign in\b", r"\blog in\b", r"\bproceed\b"],
)
