"""Locator engine: find a clickable or fillable element by what it says.

A `Target` describes the control by text patterns (and optionally by
class/id/automation-id tokens or href tokens). `LocatorEngine.locate()` tries
the strategies below in order until one returns a visible match or the total
deadline passes:

1. shadow-text   - light DOM plus every open shadow root of the main document
2. frames        - the same text match inside each same-origin child frame
3. structural    - top-level interactive tags by text or identifying tokens
4. anchor-href   - anchors whose href carries an ATS/apply token (apply-like targets)
5. brute-force   - any element owning matching text, climbed to its clickable ancestor

Interaction results are values, not exceptions: `click()` returns
`Clicked(method)` or `NotClicked(reason)` so callers can log which method
worked.
"""
from __future__ import annotations

import hashlib
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Pattern, Sequence, Tuple, Union
from urllib.parse import urlparse

from playwright.sync_api import Error as PlaywrightError
from robocorp import log

from .dom_scripts import (
    CHECKBOX_SELECTOR,
    CHECKED_STATE_JS,
    CLICKABLE_SELECTOR,
    COLLECT_ELEMENTS_JS,
    FILL_JS,
    FILLABLE_SELECTOR,
    NATIVE_CLICK_JS,
    READ_VALUE_JS,
    STRUCTURAL_SELECTOR,
    SYNTHETIC_CLICK_JS,
)

CLICKABLE = "clickable"
FILLABLE = "fillable"
CHECKBOX = "checkbox"

DEFAULT_CLICK_ORDER = ("native", "synthetic", "mouse")

_KIND_SELECTORS = {
    CLICKABLE: CLICKABLE_SELECTOR,
    FILLABLE: FILLABLE_SELECTOR,
    CHECKBOX: CHECKBOX_SELECTOR,
}


@dataclass(frozen=True)
class Target:
    """Semantic description of a control."""

    name: str
    patterns: Tuple[Pattern[str], ...]
    kind: str = CLICKABLE
    attribute_tokens: Tuple[str, ...] = ()
    href_tokens: Tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        name: str,
        patterns: Iterable[Union[str, Pattern[str]]],
        kind: str = CLICKABLE,
        attribute_tokens: Iterable[str] = (),
        href_tokens: Iterable[str] = (),
    ) -> "Target":
        compiled = tuple(
            p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE) for p in patterns
        )
        return cls(
            name=name,
            patterns=compiled,
            kind=kind,
            attribute_tokens=tuple(t.lower() for t in attribute_tokens),
            href_tokens=tuple(t.lower() for t in href_tokens),
        )

    def match(self, *values: str) -> Optional[str]:
        """Return the first value matching any pattern."""
        for value in values:
            if not value:
                continue
            for pattern in self.patterns:
                if pattern.search(value):
                    return value
        return None

    def match_attributes(self, *values: str) -> bool:
        haystack = " ".join(v.lower() for v in values if v)
        return bool(haystack) and any(token in haystack for token in self.attribute_tokens)


@dataclass
class ElementInfo:
    """Plain description of a DOM element as reported by the collector script."""

    tag: str = ""
    type: str = ""
    role: str = ""
    text: str = ""
    aria_label: str = ""
    placeholder: str = ""
    value: str = ""
    title: str = ""
    alt: str = ""
    href: str = ""
    id: str = ""
    name: str = ""
    cls: str = ""
    automation_id: str = ""
    label: str = ""
    editable: bool = False
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    display: str = ""
    visibility: str = ""
    opacity: str = "1"
    outer: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ElementInfo":
        known = cls.__dataclass_fields__
        return cls(**{k: ("" if v is None else v) for k, v in data.items() if k in known})

    def text_fields(self, kind: str) -> Tuple[str, ...]:
        if kind == FILLABLE:
            return (self.label, self.aria_label, self.placeholder)
        if kind == CHECKBOX:
            return (self.label, self.aria_label, self.text)
        return (self.text, self.aria_label, self.value, self.placeholder, self.title)


def is_visible(info: ElementInfo) -> bool:
    """Zero-size, display:none, visibility:hidden and opacity:0 elements are hidden."""
    if not info.width or not info.height or info.width <= 0 or info.height <= 0:
        return False
    if info.display == "none" or info.visibility in ("hidden", "collapse"):
        return False
    try:
        if float(info.opacity) == 0:
            return False
    except (TypeError, ValueError):
        pass
    return True


@dataclass
class Found:
    target: str
    strategy: str
    frame: Any
    element: Any
    info: ElementInfo
    matched_text: str = ""

    def __bool__(self) -> bool:
        return True

    @property
    def center(self) -> Tuple[float, float]:
        return (self.info.x, self.info.y)

    @property
    def href(self) -> str:
        return self.info.href

    @property
    def fingerprint(self) -> str:
        """Short content hash, stable for the same markup."""
        return hashlib.sha1(self.info.outer.encode("utf-8", "ignore")).hexdigest()[:12]


@dataclass
class NotFound:
    target: str
    tried: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Clicked:
    method: str

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class NotClicked:
    reason: str

    def __bool__(self) -> bool:
        return False


LocateResult = Union[Found, NotFound]
ClickResult = Union[Clicked, NotClicked]


def _origin(url: str) -> Tuple[str, str]:
    parsed = urlparse(url or "")
    return (parsed.scheme, parsed.netloc)


class LocatorEngine:
    """Strategy-ordered element discovery bound to one tab."""

    def __init__(
        self,
        page: Any,
        deadline: float = 10.0,
        strategy_timeout: float = 2.5,
        poll: float = 0.5,
        click_order: Sequence[str] = DEFAULT_CLICK_ORDER,
        max_nodes: int = 3000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.page = page
        self.deadline = deadline
        self.strategy_timeout = strategy_timeout
        self.poll = poll
        self.click_order = tuple(click_order)
        self.max_nodes = max_nodes
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------ locate

    def locate(self, target: Target, timeout: Optional[float] = None, single_pass: bool = False) -> LocateResult:
        """Run the strategies until a visible match is found or the deadline passes."""
        total = self.deadline if timeout is None else timeout
        start = self._clock()
        end = start + total
        tried: List[str] = []

        while True:
            for name, strategy in self._strategies(target):
                now = self._clock()
                if now >= end:
                    break
                if name not in tried:
                    tried.append(name)
                found = strategy(target, min(end, now + self.strategy_timeout))
                if found:
                    log.info(f"[Locator] {target.name}: found via {name} ({found.info.tag} '{found.matched_text[:60]}')")
                    return found
            if single_pass or self._clock() + self.poll >= end:
                break
            self._sleep(self.poll)

        elapsed = self._clock() - start
        log.info(f"[Locator] {target.name}: not found after {elapsed:.1f}s ({', '.join(tried) or 'no strategy ran'})")
        return NotFound(target=target.name, tried=tried, elapsed=elapsed)

    def _strategies(self, target: Target) -> List[Tuple[str, Callable[[Target, float], Optional[Found]]]]:
        strategies = [
            ("shadow-text", self._shadow_text),
            ("frames", self._frames),
            ("structural", self._structural),
        ]
        if target.href_tokens:
            strategies.append(("anchor-href", self._anchor_href))
        if target.kind == CLICKABLE:
            strategies.append(("brute-force", self._brute_force))
        return strategies

    def _text_predicate(self, target: Target) -> Callable[[ElementInfo], Optional[str]]:
        def predicate(info: ElementInfo) -> Optional[str]:
            if not is_visible(info):
                return None
            return target.match(*info.text_fields(target.kind))
        return predicate

    def _shadow_text(self, target: Target, until: float) -> Optional[Found]:
        return self._scan(
            self.page.main_frame, "shadow", _KIND_SELECTORS[target.kind],
            self._text_predicate(target), target, "shadow-text", until,
        )

    def _frames(self, target: Target, until: float) -> Optional[Found]:
        predicate = self._text_predicate(target)
        for frame in self.accessible_frames(include_main=False):
            if self._clock() >= until:
                break
            found = self._scan(frame, "shadow", _KIND_SELECTORS[target.kind], predicate, target, "frames", until)
            if found:
                return found
        return None

    def _structural(self, target: Target, until: float) -> Optional[Found]:
        selector = STRUCTURAL_SELECTOR if target.kind == CLICKABLE else _KIND_SELECTORS[target.kind]

        def predicate(info: ElementInfo) -> Optional[str]:
            if not is_visible(info):
                return None
            text = target.match(*info.text_fields(target.kind))
            if text:
                return text
            if target.attribute_tokens and target.match_attributes(info.id, info.cls, info.automation_id, info.name):
                return info.automation_id or info.id or info.cls
            return None

        return self._scan(self.page.main_frame, "flat", selector, predicate, target, "structural", until)

    def _anchor_href(self, target: Target, until: float) -> Optional[Found]:
        current = (self.page.url or "").split("#")[0]

        def predicate(info: ElementInfo) -> Optional[str]:
            href = info.href or ""
            if not href or href.startswith(("javascript:", "mailto:")) or href.split("#")[0] == current:
                return None
            if not is_visible(info):
                return None
            lowered = href.lower()
            if any(token in lowered for token in target.href_tokens):
                return href
            return target.match(info.text, info.aria_label, info.title)

        return self._scan(self.page.main_frame, "anchors", "a[href]", predicate, target, "anchor-href", until)

    def _brute_force(self, target: Target, until: float) -> Optional[Found]:
        def predicate(info: ElementInfo) -> Optional[str]:
            if not is_visible(info):
                return None
            return target.match(info.text)

        return self._scan(self.page.main_frame, "brute", "*", predicate, target, "brute-force", until)

    def _scan(
        self,
        frame: Any,
        mode: str,
        selector: str,
        predicate: Callable[[ElementInfo], Optional[str]],
        target: Target,
        strategy: str,
        until: float,
    ) -> Optional[Found]:
        """Collect elements in `frame` and return the first one accepted by `predicate` before `until`."""
        handle = None
        try:
            handle = frame.evaluate_handle(
                COLLECT_ELEMENTS_JS,
                {
                    "mode": mode,
                    "selector": selector,
                    "maxNodes": self.max_nodes,
                    "clickableSelector": CLICKABLE_SELECTOR,
                },
            )
            infos = handle.evaluate("(r) => r.info") or []
            for index, raw in enumerate(infos):
                if self._clock() >= until:
                    log.debug(f"[Locator] {strategy} ran out of time after {index}/{len(infos)} elements")
                    break
                info = ElementInfo.from_dict(raw)
                matched = predicate(info)
                if not matched:
                    continue
                element = handle.evaluate_handle("(r, i) => r.nodes[i]", index).as_element()
                if element is None:
                    continue
                return Found(
                    target=target.name,
                    strategy=strategy,
                    frame=frame,
                    element=element,
                    info=info,
                    matched_text=matched,
                )
        except PlaywrightError as e:
            log.debug(f"[Locator] {strategy} skipped frame {getattr(frame, 'url', '?')}: {e}")
        finally:
            if handle is not None:
                try:
                    handle.dispose()
                except PlaywrightError:
                    pass
        return None

    def accessible_frames(self, include_main: bool = True) -> List[Any]:
        """Main frame (optionally) plus attached same-origin child frames."""
        main = self.page.main_frame
        page_origin = _origin(self.page.url)
        frames = [main] if include_main else []
        for frame in self.page.frames:
            if frame is main:
                continue
            try:
                if frame.is_detached():
                    continue
            except PlaywrightError:
                continue
            url = frame.url or ""
            if url.startswith(("about:", "data:", "blob:")) or not url or _origin(url) == page_origin:
                frames.append(frame)
        return frames

    # ------------------------------------------------------------- interaction

    def click(self, found: Found, order: Optional[Sequence[str]] = None) -> ClickResult:
        """Native click, then synthetic pointer events, then a physical mouse click."""
        failures = []
        for method in order or self.click_order:
            try:
                if method == "native":
                    found.element.evaluate(NATIVE_CLICK_JS)
                elif method == "synthetic":
                    found.element.evaluate(SYNTHETIC_CLICK_JS)
                elif method == "mouse":
                    self._mouse_click(found)
                else:
                    continue
                log.info(f"[Locator] {found.target}: clicked via {method}")
                return Clicked(method)
            except PlaywrightError as e:
                failures.append(f"{method}: {e}")
        reason = "; ".join(failures) or "no click method available"
        log.warn(f"[Locator] {found.target}: not clicked ({reason})")
        return NotClicked(reason)

    def _mouse_click(self, found: Found) -> None:
        box = None
        try:
            box = found.element.bounding_box()
        except PlaywrightError:
            box = None
        if box:
            x, y = box["x"] + box["width"] / 2, box["y"] + box["height"] / 2
        else:
            x, y = found.center
        mouse = self.page.mouse
        mouse.move(x, y, steps=6)
        mouse.down()
        mouse.up()

    def activate(self, found: Found, order: Optional[Sequence[str]] = None) -> ClickResult:
        """Click; for href-discovered anchors fall back to navigating to the href."""
        result = self.click(found, order)
        if result or found.strategy != "anchor-href" or not found.href:
            return result
        log.info(f"[Locator] {found.target}: navigating to {found.href}")
        try:
            self.page.goto(found.href, referer=self.page.url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            return NotClicked(f"{result.reason}; navigate: {e}")
        return Clicked("navigate")

    def fill(self, found: Found, text: str) -> Optional[str]:
        return self.fill_element(found.element, text)

    def fill_element(self, element: Any, text: str) -> Optional[str]:
        """Set a field's value the way a framework-managed input expects it."""
        try:
            method = element.evaluate(FILL_JS, text)
            if text and (element.evaluate(READ_VALUE_JS) or "").strip():
                return method
        except PlaywrightError as e:
            log.debug(f"[Locator] In-page fill failed: {e}")
        try:
            element.fill(text)
            return "playwright-fill"
        except PlaywrightError as e:
            log.warn(f"[Locator] Could not fill field: {e}")
            return None

    def is_checked(self, found: Found) -> Optional[bool]:
        try:
            return found.element.evaluate(CHECKED_STATE_JS)
        except PlaywrightError:
            return None
