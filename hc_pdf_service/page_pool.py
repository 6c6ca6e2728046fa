"""
Bounded pool of pre-launched browser pages.

Each slot owns a private browser context with a single page, so cookies set
for one render never leak into another. Admission is controlled by an
asyncio semaphore sized to the pool: a request waits for an idle page and
gets exclusive use of it for the duration of one lease.
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar

from .config import PdfServiceSettings
from .errors import RenderFailure

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PagePool:
    """
    Fixed-size collection of reusable pages.

    Use lease() as an async context manager, or run_on_page() for a single
    callback. A page is always returned to the pool when the lease ends,
    whether the work succeeded or raised.
    """

    def __init__(
        self,
        pages: List["Page"],
        acquire_timeout: Optional[float] = None,
        default_viewport: Optional[Dict[str, int]] = None,
        browser: Optional["Browser"] = None,
        playwright: Optional["Playwright"] = None,
    ):
        if not pages:
            raise ValueError("PagePool requires at least one page")
        self._pages = list(pages)
        self._idle = deque(self._pages)
        self._semaphore = asyncio.Semaphore(len(self._pages))
        # 0 or None waits indefinitely
        self.acquire_timeout = acquire_timeout or None
        self.default_viewport = default_viewport
        self._browser = browser
        self._playwright = playwright

    @property
    def size(self) -> int:
        return len(self._pages)

    @property
    def idle(self) -> int:
        return len(self._idle)

    @property
    def active(self) -> int:
        """Number of pages currently leased."""
        return self.size - self.idle

    async def _acquire(self) -> None:
        if self.acquire_timeout is None:
            await self._semaphore.acquire()
            return
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No idle page within {self.acquire_timeout}s ({self.size} pages busy)")
            raise RenderFailure(
                f"No browser page became available within {self.acquire_timeout}s"
            )

    async def _reset(self, page: "Page") -> None:
        """Restore per-lease state so the next lease starts clean."""
        try:
            if self.default_viewport:
                await page.set_viewport_size(self.default_viewport)
            await page.context.clear_cookies()
        except Exception as e:
            logger.warning(f"Failed to reset page before returning it to the pool: {e}")

    @asynccontextmanager
    async def lease(self) -> AsyncIterator["Page"]:
        """Exclusively lease one page; it is released on every exit path."""
        await self._acquire()
        page = self._idle.popleft()
        logger.debug(f"Page leased ({self.active}/{self.size} active)")
        try:
            yield page
        finally:
            try:
                await self._reset(page)
            finally:
                self._idle.append(page)
                self._semaphore.release()
                logger.debug(f"Page released ({self.active}/{self.size} active)")

    async def run_on_page(self, fn: Callable[["Page"], Awaitable[T]]) -> T:
        """Run fn on a leased page and return its result."""
        async with self.lease() as page:
            return await fn(page)

    async def close(self) -> None:
        """Close the browser and stop Playwright if this pool launched them."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Page pool closed")


def _context_options(settings: PdfServiceSettings) -> Dict[str, Any]:
    options: Dict[str, Any] = {"viewport": settings.default_viewport}
    if settings.user_agent:
        options["user_agent"] = settings.user_agent
    if settings.accept_language:
        options["extra_http_headers"] = {"Accept-Language": settings.accept_language}
    return options


async def launch_page_pool(settings: PdfServiceSettings) -> PagePool:
    """
    Launch Chromium and open settings.pages_num pages.

    Launch failures propagate; the service must not start without pages.
    """
    # Import here to avoid loading Playwright until the pool is needed
    from playwright.async_api import async_playwright

    logger.info(
        f"Launching Chromium with {settings.pages_num} pages "
        f"(headless={settings.headless}, args={settings.browser_launch_args_list})"
    )
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=settings.headless,
            args=settings.browser_launch_args_list,
        )
        context_options = _context_options(settings)
        pages = []
        for _ in range(settings.pages_num):
            context = await browser.new_context(**context_options)
            page = await context.new_page()
            page.set_default_timeout(settings.page_timeout_milliseconds)
            page.set_default_navigation_timeout(settings.page_timeout_milliseconds)
            if settings.emulate_media_type_screen_enabled:
                await page.emulate_media(media="screen")
            pages.append(page)
    except Exception as e:
        logger.error(f"Failed to launch page pool: {e}")
        await playwright.stop()
        raise

    logger.info(f"Page pool ready with {len(pages)} pages")
    return PagePool(
        pages,
        acquire_timeout=settings.page_acquire_timeout_milliseconds / 1000,
        default_viewport=settings.default_viewport,
        browser=browser,
        playwright=playwright,
    )
