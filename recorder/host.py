"""Rendering host: a Chromium page driven through Playwright."""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from playwright.async_api import Browser, ElementHandle, Error as PlaywrightError, Page, Playwright
from playwright.async_api import async_playwright

from .errors import HostError

if TYPE_CHECKING:
    from config import RecordingConfig
    from utils.logger import SessionLogger

    from .bridge import PlaybackBridge
    from .sampler import FrameSource

_module_logger = logging.getLogger(__name__)


class RenderHost:
    """Owns the browser that renders the replay page."""

    def __init__(
        self,
        config: "RecordingConfig",
        logger: "SessionLogger | None" = None,
        on_disconnect: Callable[[], None] | None = None,
        on_page_error: Callable[[str], None] | None = None,
    ):
        """Initialize the host.

        Args:
            config: Recording configuration (headless flag, Chromium path,
                viewport, surface selector).
            logger: Optional SessionLogger for styled output.
            on_disconnect: Called if the browser goes away before close().
            on_page_error: Called with the message of each uncaught script
                error on the replay page.
        """
        self.config = config
        self.logger = logger
        self.on_disconnect = on_disconnect
        self.on_page_error = on_page_error

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None
        self._closing = False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise HostError("rendering host is not started")
        return self._page

    async def start(self) -> None:
        """Launch Chromium and open a blank page."""
        config = self.config
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=config.headless,
                executable_path=config.chrome_path,
            )
            self._browser.on("disconnected", self._handle_disconnect)
            self._page = await self._browser.new_page(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
                device_scale_factor=config.device_scale_factor,
            )
            await self._page.goto("about:blank")
        except PlaywrightError as e:
            _module_logger.error(f"Browser launch failed: {e}")
            await self.close()
            raise HostError(f"cannot launch browser: {e.message}") from e

        self._page.on("pageerror", self._handle_page_error)
        _module_logger.info(
            f"Browser started (headless={config.headless}, "
            f"viewport={config.viewport_width}x{config.viewport_height}@{config.device_scale_factor}x)"
        )

    def _handle_page_error(self, error: Any) -> None:
        _module_logger.warning(f"Replay page error: {error}")
        if self.logger:
            self.logger.warning(f"Replay page error: {error}")
        if self.on_page_error is not None:
            self.on_page_error(str(error))

    def _handle_disconnect(self, _browser: Browser) -> None:
        if self._closing:
            return
        _module_logger.error("Browser disconnected unexpectedly")
        if self.on_disconnect is not None:
            self.on_disconnect()

    async def expose(self, bridge: "PlaybackBridge") -> None:
        """Expose the bridge's playback functions on the page's window."""
        try:
            for name, function in bridge.exposed_functions().items():
                await self.page.expose_function(name, function)
        except PlaywrightError as e:
            raise HostError(f"cannot expose playback callbacks: {e.message}") from e

    async def load(self, html: str) -> None:
        """Inject the replay document.

        Raises:
            HostError: If the page cannot be set or the rrweb-player script
                did not load (offline CDN, unreadable local asset).
        """
        try:
            await self.page.set_content(html)
            player_loaded = await self.page.evaluate("typeof rrwebPlayer !== 'undefined'")
        except PlaywrightError as e:
            raise HostError(f"cannot load replay page: {e.message}") from e
        if not player_loaded:
            raise HostError("rrweb-player did not load on the replay page")

    async def surface(self) -> ElementHandle:
        """Find the element sampled for each frame."""
        selector = self.config.surface_selector
        try:
            element = await self.page.query_selector(selector)
        except PlaywrightError as e:
            raise HostError(f"cannot query replay surface {selector}: {e.message}") from e
        if element is None:
            raise HostError(f"failed to get replayer element ({selector})")
        return element

    def capturer(self, element: ElementHandle) -> "FrameSource":
        """Frame source taking PNG screenshots of ``element``."""

        async def capture() -> bytes:
            return await element.screenshot(type="png")

        return capture

    async def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call twice."""
        self._closing = True
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        self._page = None
        try:
            if browser is not None:
                await browser.close()
        except PlaywrightError as e:
            _module_logger.debug(f"Browser close failed: {e}")
        finally:
            if playwright is not None:
                await playwright.stop()
