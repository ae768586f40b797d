"""Pytest configuration and shared fixtures for testing"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from contact_scout.agent.models import Viewport
from contact_scout.browser.port import BrowserBackend, BrowserControl
from contact_scout.config import AgentSettings, BrowserSettings, ScoringSettings


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeBackend(BrowserBackend):
    """In-memory browser backend that records every call"""

    def __init__(self, viewport=None, url="https://example.com/", snapshot=None):
        self.viewport = viewport if viewport is not None else Viewport(width=375, height=812)
        self.url = url
        # DOM snapshot returned by evaluate(); a str is returned verbatim
        self.snapshot = snapshot if snapshot is not None else {"text": "", "links": [], "sections": []}
        self.calls = []
        self.typed = []
        self.screenshots_taken = 0
        self.fail_on = set()

    def _maybe_fail(self, operation: str):
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} exploded")

    async def load_url(self, url: str):
        self._maybe_fail("load_url")
        self.calls.append(("load_url", url))
        self.url = url

    async def capture_screenshot(self) -> bytes:
        self._maybe_fail("capture_screenshot")
        self.screenshots_taken += 1
        return PNG_BYTES

    async def tap(self, x: int, y: int):
        self._maybe_fail("tap")
        self.calls.append(("tap", x, y))

    async def send_text(self, text: str):
        self._maybe_fail("send_text")
        self.typed.append(text)

    async def press_enter(self):
        self._maybe_fail("press_enter")
        self.calls.append(("enter",))

    async def scroll_by(self, direction, pixels: int):
        self._maybe_fail("scroll_by")
        self.calls.append(("scroll", direction, pixels))

    async def get_current_url(self) -> str:
        self._maybe_fail("get_current_url")
        return self.url

    async def evaluate(self, script: str) -> str:
        self._maybe_fail("evaluate")
        if isinstance(self.snapshot, str):
            return self.snapshot
        return json.dumps(self.snapshot)

    async def get_viewport(self):
        self._maybe_fail("get_viewport")
        return self.viewport


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Fresh fake backend per test"""
    return FakeBackend()


@pytest.fixture
def fast_browser_settings() -> BrowserSettings:
    """Browser settings with every pacing delay zeroed"""
    return BrowserSettings(
        typing_delay=0,
        submit_delay=0,
        click_settle_delay=0,
        scroll_settle_delay=0,
    )


@pytest.fixture
def fast_agent_settings() -> AgentSettings:
    """Agent settings with no inter-step or page-load delay"""
    return AgentSettings(max_steps=10, step_delay=0, page_load_delay=0)


@pytest.fixture
def scoring_settings() -> ScoringSettings:
    return ScoringSettings()


@pytest.fixture
def browser_control(fake_backend: FakeBackend, fast_browser_settings: BrowserSettings) -> BrowserControl:
    """Browser control port over the fake backend"""
    return BrowserControl(fake_backend, fast_browser_settings, correlation_id="test")


@pytest.fixture
def test_fixture_path() -> Path:
    """Return the path to the test fixtures directory"""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def contact_page_url(test_fixture_path: Path) -> str:
    """Return the file:// URL for the contact page fixture"""
    fixture_path = test_fixture_path / "contact_page.html"
    return f"file://{fixture_path}"


# Pytest async configuration
def pytest_configure(config):
    """Configure pytest-asyncio and custom markers"""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow (can be skipped with -m 'not slow')"
    )
