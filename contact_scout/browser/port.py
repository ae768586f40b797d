"""Browser control port.

BrowserBackend is the raw external capability (Playwright, a native bridge,
a test fake). BrowserControl is the adapter the agent loop talks to: it
clamps click coordinates to the live viewport, paces typing per character,
and translates every backend error into BrowserOperationFailed.
"""

import asyncio
from abc import ABC, abstractmethod
from functools import wraps
from typing import Callable, List, Optional, Tuple

from loguru import logger

from contact_scout.agent.models import ScrollDirection, Viewport
from contact_scout.config import BrowserSettings
from contact_scout.errors import BrowserOperationFailed, InvalidCoordinates


ScreenshotCallback = Callable[[bytes], None]


class BrowserBackend(ABC):
    """Abstract browser capability set"""

    @abstractmethod
    async def load_url(self, url: str):
        pass

    @abstractmethod
    async def capture_screenshot(self) -> bytes:
        pass

    @abstractmethod
    async def tap(self, x: int, y: int):
        pass

    @abstractmethod
    async def send_text(self, text: str):
        """Send one chunk of text as key events"""
        pass

    @abstractmethod
    async def press_enter(self):
        pass

    @abstractmethod
    async def scroll_by(self, direction: ScrollDirection, pixels: int):
        pass

    @abstractmethod
    async def get_current_url(self) -> str:
        pass

    @abstractmethod
    async def evaluate(self, script: str) -> str:
        """Evaluate a snippet in the page and return its value as a string"""
        pass

    @abstractmethod
    async def get_viewport(self) -> Optional[Viewport]:
        pass


def clamp_point(x: int, y: int, viewport: Viewport) -> Tuple[int, int]:
    """Clamp a point into the viewport: 0 <= x' < width, 0 <= y' < height"""
    clamped_x = max(0, min(int(x), viewport.width - 1))
    clamped_y = max(0, min(int(y), viewport.height - 1))
    return clamped_x, clamped_y


def browser_operation(operation: str):
    """
    Wrap a port method so backend errors surface as BrowserOperationFailed.

    InvalidCoordinates and already-translated errors pass through untouched.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except (InvalidCoordinates, BrowserOperationFailed):
                raise
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[{self.correlation_id}] Browser {operation} failed: {e}")
                raise BrowserOperationFailed(operation, e) from e
        return wrapper
    return decorator


class ScreenshotRegistration:
    """Handle returned by register_screenshot_callback"""

    def __init__(self, owner: "BrowserControl", callback: ScreenshotCallback):
        self._owner = owner
        self._callback = callback

    def remove(self):
        if self._callback in self._owner._screenshot_callbacks:
            self._owner._screenshot_callbacks.remove(self._callback)


class BrowserControl:
    """Port exposed to the agent loop"""

    def __init__(
        self,
        backend: BrowserBackend,
        settings: Optional[BrowserSettings] = None,
        correlation_id: str = "N/A",
    ):
        self.backend = backend
        self.settings = settings or BrowserSettings()
        self.correlation_id = correlation_id
        self._screenshot_callbacks: List[ScreenshotCallback] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def register_screenshot_callback(self, callback: ScreenshotCallback) -> ScreenshotRegistration:
        self._screenshot_callbacks.append(callback)
        return ScreenshotRegistration(self, callback)

    @property
    def screenshot_callback_count(self) -> int:
        return len(self._screenshot_callbacks)

    def _notify_screenshot(self, screenshot: bytes):
        for callback in list(self._screenshot_callbacks):
            try:
                callback(screenshot)
            except Exception as e:
                logger.debug(f"[{self.correlation_id}] Screenshot callback error: {e}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @browser_operation("navigation")
    async def navigate(self, url: str):
        logger.info(f"[{self.correlation_id}] Navigating to: {url}")
        await self.backend.load_url(url)

    @browser_operation("screenshot")
    async def screenshot(self) -> bytes:
        screenshot = await self.backend.capture_screenshot()
        self._notify_screenshot(screenshot)
        return screenshot

    @browser_operation("viewport")
    async def viewport(self) -> Optional[Viewport]:
        return await self.backend.get_viewport()

    @browser_operation("click")
    async def click(self, x: int, y: int) -> Tuple[int, int]:
        """
        Tap at (x, y) after validating and clamping against the live viewport.

        Raises:
            InvalidCoordinates: viewport unavailable, negative coordinates, or
                a point further outside the viewport than max_click_overshoot allows

        Returns:
            The clamped point that was tapped
        """
        viewport = await self.backend.get_viewport()
        target_x, target_y = self.validate_click(x, y, viewport)
        logger.info(f"[{self.correlation_id}] Clicking at ({target_x}, {target_y})")
        await self.backend.tap(target_x, target_y)
        if self.settings.click_settle_delay:
            await asyncio.sleep(self.settings.click_settle_delay)
        return target_x, target_y

    def validate_click(self, x: int, y: int, viewport: Optional[Viewport]) -> Tuple[int, int]:
        if viewport is None:
            raise InvalidCoordinates(x, y, "viewport unavailable")
        if x < 0 or y < 0:
            raise InvalidCoordinates(x, y, "negative coordinates")
        overshoot = self.settings.max_click_overshoot
        if x > viewport.width * overshoot or y > viewport.height * overshoot:
            raise InvalidCoordinates(x, y, f"outside {viewport.width}x{viewport.height} viewport")
        return clamp_point(x, y, viewport)

    @browser_operation("type")
    async def type(self, text: str, submit: bool = False):
        """Type character by character, then optionally press Enter once"""
        logger.info(f"[{self.correlation_id}] Typing: \"{text[:50]}\"{' + Enter' if submit else ''}")
        for char in text:
            await self.backend.send_text(char)
            if self.settings.typing_delay:
                await asyncio.sleep(self.settings.typing_delay)
        if submit:
            await self.backend.press_enter()
            if self.settings.submit_delay:
                await asyncio.sleep(self.settings.submit_delay)

    @browser_operation("scroll")
    async def scroll(self, direction: ScrollDirection = ScrollDirection.DOWN):
        logger.info(f"[{self.correlation_id}] Scrolling {direction.value}")
        await self.backend.scroll_by(direction, self.settings.scroll_pixels)
        if self.settings.scroll_settle_delay:
            await asyncio.sleep(self.settings.scroll_settle_delay)

    @browser_operation("current_url")
    async def current_url(self) -> str:
        return await self.backend.get_current_url()

    @browser_operation("evaluate")
    async def evaluate(self, script: str) -> str:
        return await self.backend.evaluate(script)
