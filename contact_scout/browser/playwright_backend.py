"""Playwright implementation of the browser backend.

Launches Chromium with a phone-sized viewport by default so screenshots match
the coordinate space the action prompt describes.
"""

import json
import os
from typing import Any, Optional

from loguru import logger
from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from contact_scout.agent.models import ScrollDirection, Viewport
from contact_scout.browser.port import BrowserBackend
from contact_scout.config import BrowserSettings


MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


class PlaywrightBackend(BrowserBackend):
    """Browser backend driving Chromium through Playwright"""

    def __init__(self, settings: Optional[BrowserSettings] = None, correlation_id: str = "N/A"):
        self.settings = settings or BrowserSettings()
        self.correlation_id = correlation_id
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._playwright = None

    async def start(self, headless: bool = None, user_data_dir: str = None):
        """
        Start Playwright browser.

        Args:
            headless: Override headless mode. If None, uses settings (HEADLESS env var)
            user_data_dir: Path to Chrome user data directory for persistent sessions
        """
        if headless is None:
            headless = self.settings.headless

        viewport = {"width": self.settings.viewport_width, "height": self.settings.viewport_height}
        self._playwright = await async_playwright().start()

        if user_data_dir:
            os.makedirs(user_data_dir, exist_ok=True)
            logger.info(f"[{self.correlation_id}] Launching persistent browser with profile: {user_data_dir}")
            # Persistent context is both a Browser and a Context
            self.context = await self._playwright.chromium.launch_persistent_context(
                user_data_dir=user_data_dir,
                headless=headless,
                viewport=viewport,
                user_agent=MOBILE_USER_AGENT,
                args=["--disable-blink-features=AutomationControlled"],
            )
            self.browser = None
            self.page = self.context.pages[0] if self.context.pages else await self.context.new_page()
        else:
            self.browser = await self._playwright.chromium.launch(headless=headless)
            self.context = await self.browser.new_context(viewport=viewport, user_agent=MOBILE_USER_AGENT)
            self.page = await self.context.new_page()

        mode = "headless" if headless else "headed"
        logger.info(f"[{self.correlation_id}] Browser started in {mode} mode ({viewport['width']}x{viewport['height']})")

    async def close(self):
        """Close browser"""
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
            if self._playwright:
                await self._playwright.stop()
            logger.info(f"[{self.correlation_id}] Browser closed")
        except Exception as e:
            logger.debug(f"[{self.correlation_id}] Error closing browser: {e}")
        finally:
            self.page = None
            self.context = None
            self.browser = None
            self._playwright = None

    async def __aenter__(self) -> "PlaywrightBackend":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _require_page(self) -> Page:
        if not self.page:
            raise ValueError("Browser not started")
        return self.page

    async def load_url(self, url: str):
        await self._require_page().goto(url, wait_until="domcontentloaded")

    async def capture_screenshot(self) -> bytes:
        return await self._require_page().screenshot(full_page=False)

    async def tap(self, x: int, y: int):
        await self._require_page().mouse.click(x, y)

    async def send_text(self, text: str):
        await self._require_page().keyboard.type(text)

    async def press_enter(self):
        await self._require_page().keyboard.press("Enter")

    async def scroll_by(self, direction: ScrollDirection, pixels: int):
        delta = pixels if direction == ScrollDirection.DOWN else -pixels
        await self._require_page().mouse.wheel(0, delta)

    async def get_current_url(self) -> str:
        return self._require_page().url

    async def evaluate(self, script: str) -> str:
        result: Any = await self._require_page().evaluate(script)
        if result is None:
            return ""
        if isinstance(result, str):
            return result
        return json.dumps(result)

    async def get_viewport(self) -> Optional[Viewport]:
        if not self.page:
            return None
        size = self.page.viewport_size
        if not size or not size.get("width") or not size.get("height"):
            return None
        return Viewport(width=size["width"], height=size["height"])
