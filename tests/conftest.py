"""Shared fixtures: src/ on the path, Playwright-shaped fakes, and a headless Chromium."""
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from playwright.sync_api import Error as PlaywrightError

from jobapply.utils import dom_scripts


def element_info(**overrides) -> Dict[str, Any]:
    """A visible element description as the collector script would report it."""
    info = {
        "tag": "button",
        "text": "",
        "x": 50.0,
        "y": 20.0,
        "width": 100.0,
        "height": 30.0,
        "display": "block",
        "visibility": "visible",
        "opacity": "1",
        "outer": "<button></button>",
    }
    info.update(overrides)
    return info


class FakeElement:
    def __init__(self, name: str = "el", fail: Optional[List[str]] = None, box=None, value: str = ""):
        self.name = name
        self.fail = set(fail or [])
        self.box = box if box is not None else {"x": 10, "y": 10, "width": 80, "height": 20}
        self.value = value
        self.checked = False
        self.calls: List[str] = []

    def evaluate(self, script: str, arg=None):
        if script == dom_scripts.NATIVE_CLICK_JS:
            return self._record("native")
        if script == dom_scripts.SYNTHETIC_CLICK_JS:
            return self._record("synthetic")
        if script == dom_scripts.FILL_JS:
            self._record("fill")
            self.value = arg
            return "native-setter"
        if script == dom_scripts.READ_VALUE_JS:
            return self.value
        if script == dom_scripts.CHECKED_STATE_JS:
            return self.checked
        raise AssertionError(f"unexpected script on {self.name}")

    def _record(self, method: str):
        if method in self.fail:
            raise PlaywrightError(f"{method} failed")
        self.calls.append(method)
        return True

    def bounding_box(self):
        return self.box

    def fill(self, text: str):
        self._record("playwright-fill")
        self.value = text

    def get_attribute(self, name: str):
        return None


class _ElementRef:
    def __init__(self, element):
        self._element = element

    def as_element(self):
        return self._element


class FakeCollection:
    def __init__(self, nodes):
        self.nodes = nodes
        self.disposed = False

    def evaluate(self, script: str, arg=None):
        return [info for info, _ in self.nodes]

    def evaluate_handle(self, script: str, index: int):
        return _ElementRef(self.nodes[index][1])

    def dispose(self):
        self.disposed = True


class FakeFrame:
    """A frame whose collector results are listed per scan mode."""

    def __init__(self, url: str = "https://jobs.example.com/posting", scans=None, error: Optional[str] = None):
        self.url = url
        self.scans: Dict[str, list] = scans or {}
        self.error = error
        self.scanned: List[str] = []
        self.selectors: Dict[str, list] = {}

    def add(self, mode: str, info: Dict[str, Any], element: Optional[FakeElement] = None) -> FakeElement:
        element = element or FakeElement(info.get("text") or info.get("id") or "el")
        self.scans.setdefault(mode, []).append((info, element))
        return element

    def evaluate_handle(self, script: str, args: Dict[str, Any]):
        self.scanned.append(args["mode"])
        if self.error:
            raise PlaywrightError(self.error)
        return FakeCollection(self.scans.get(args["mode"], []))

    def is_detached(self) -> bool:
        return False

    def query_selector(self, selector: str):
        found = self.selectors.get(selector) or []
        return found[0] if found else None

    def query_selector_all(self, selector: str):
        return list(self.selectors.get(selector) or [])


class FakeMouse:
    def __init__(self):
        self.events: List[tuple] = []

    def move(self, x, y, steps=1):
        self.events.append(("move", x, y))

    def down(self):
        self.events.append(("down",))

    def up(self):
        self.events.append(("up",))


class FakePage:
    def __init__(self, url: str = "https://jobs.example.com/posting", text: str = ""):
        self.url = url
        self.text = text
        self.iframe_texts: List[str] = []
        self.selectors: Dict[str, Any] = {}
        self.main_frame = FakeFrame(url)
        self.child_frames: List[FakeFrame] = []
        self.mouse = FakeMouse()
        self.closed = False
        self.visited: List[str] = []

    @property
    def frames(self):
        return [self.main_frame] + self.child_frames

    def evaluate(self, script: str, arg=None):
        if script == dom_scripts.BODY_TEXT_JS:
            return self.text
        if script == dom_scripts.SAME_ORIGIN_FRAME_TEXT_JS:
            return self.iframe_texts
        raise AssertionError("unexpected page script")

    def query_selector(self, selector: str):
        return self.selectors.get(selector)

    def goto(self, url: str, **kwargs):
        self.visited.append(url)
        self.url = url

    def is_closed(self) -> bool:
        return self.closed

    def close(self):
        self.closed = True


@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture(scope="session")
def chromium():
    """Headless Chromium, or skip when no browser build is installed."""
    sync_api = pytest.importorskip("playwright.sync_api")
    pw = sync_api.sync_playwright().start()
    try:
        browser = pw.chromium.launch(headless=True)
    except Exception as e:
        pw.stop()
        pytest.skip(f"Chromium is not available: {e}")
    yield browser
    browser.close()
    pw.stop()


@pytest.fixture
def browser_context(chromium):
    context = chromium.new_context()
    yield context
    context.close()


@pytest.fixture
def dom_page(browser_context):
    return browser_context.new_page()
