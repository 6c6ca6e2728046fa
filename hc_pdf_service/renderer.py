"""
Render pipeline: drives one leased page from input to output bytes.

Each coroutine here runs inside a single page lease and performs its steps
strictly in order. Errors propagate to the caller, except for the cookie
banner dismissal, which is best-effort.
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from .errors import RenderFailure
from .pdf_options import PdfOptions

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

READY_SELECTOR = 'html[data-pdf-ready="true"]'

ACCEPT_COOKIES_SELECTOR = (
    "[id*=cookie] a, [class*=cookie] a, "
    "[id*=cookie] button, [class*=cookie] button, "
    "[data-cookiebanner*=accept] button"
)
ACCEPT_COOKIES_PATTERN = r"^(Alle akzeptieren|Akzeptieren|Verstanden|Zustimmen|Okay|OK)$"

# Clicks the first consent button whose trimmed text matches the pattern.
# Returns whether anything was clicked.
ACCEPT_COOKIES_SCRIPT = """([selector, pattern]) => {
    const re = new RegExp(pattern, 'i');
    const matches = Array.prototype.filter.call(
        document.querySelectorAll(selector),
        (element) => re.test((element.textContent || '').trim())
    );
    if (matches.length === 0) {
        return false;
    }
    matches[0].click();
    return true;
}"""

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


# ============================================================================
# Cookies
# ============================================================================

def parse_cookie_header(headers: Iterable[str]) -> List[Tuple[str, str]]:
    """
    Parse one or more Cookie header values into (name, value) pairs.

    Values may contain '='; only the first '=' separates name from value.
    Items without a name are dropped.

    Example:
        >>> parse_cookie_header(["a=1; token=x=y"])
        [('a', '1'), ('token', 'x=y')]
    """
    pairs = []
    for header in headers:
        for item in header.split(";"):
            name, sep, value = item.strip().partition("=")
            name = name.strip()
            if not sep or not name:
                continue
            pairs.append((name, value.strip()))
    return pairs


def build_cookies(pairs: Iterable[Tuple[str, str]], url: str) -> List[Dict[str, str]]:
    """Playwright cookie records scoped to url."""
    return [{"name": name, "value": value, "url": url} for name, value in pairs]


# ============================================================================
# Screenshot geometry
# ============================================================================

def parse_dimension(value: Optional[str]) -> Optional[int]:
    """
    Parse a width/height string the way parseInt would ("800px" -> 800).

    Returns None for absent, non-numeric or non-positive values.
    """
    if value is None:
        return None
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    number = int(match.group(1))
    return number if number > 0 else None


@dataclass(frozen=True)
class ScreenshotGeometry:
    """Either a fixed-origin clip or a full-page capture."""

    clip: Optional[Dict[str, int]] = None
    full_page: bool = True

    @property
    def viewport(self) -> Optional[Dict[str, int]]:
        """Viewport override matching the clip, if any."""
        if self.clip is None:
            return None
        return {"width": self.clip["width"], "height": self.clip["height"]}

    def to_playwright_kwargs(self) -> Dict[str, Any]:
        # Playwright only captures beyond the viewport for full_page, so a
        # clip is bounded to viewport content as long as full_page is off.
        kwargs: Dict[str, Any] = {"type": "png", "full_page": self.full_page}
        if self.clip is not None:
            kwargs["clip"] = dict(self.clip)
        return kwargs


def build_screenshot_geometry(w: Optional[str], h: Optional[str]) -> ScreenshotGeometry:
    """Clip to w x h when both are valid, otherwise capture the full page."""
    width = parse_dimension(w)
    height = parse_dimension(h)
    if width is None or height is None:
        return ScreenshotGeometry()
    return ScreenshotGeometry(
        clip={"x": 0, "y": 0, "width": width, "height": height},
        full_page=False,
    )


# ============================================================================
# Page steps
# ============================================================================

async def dismiss_cookie_banner(page: "Page") -> bool:
    """
    Try to click a cookie consent "accept" button.

    Never raises: a missing banner or a script error only gets logged.
    """
    try:
        clicked = await page.evaluate(
            ACCEPT_COOKIES_SCRIPT, [ACCEPT_COOKIES_SELECTOR, ACCEPT_COOKIES_PATTERN]
        )
    except Exception as e:
        logger.warning(f"Cookie banner dismissal failed, continuing: {e}")
        return False
    if clicked:
        logger.debug("Cookie banner dismissed")
    return bool(clicked)


def _ensure_output(data: Optional[bytes], kind: str) -> bytes:
    if not data:
        raise RenderFailure(f"Rendered {kind} is empty")
    return data


async def _apply_viewport(page: "Page", geometry: ScreenshotGeometry) -> None:
    if geometry.viewport is not None:
        await page.set_viewport_size(geometry.viewport)


async def _capture_screenshot(page: "Page", geometry: ScreenshotGeometry, settle_ms: int) -> bytes:
    # Give client-side rendering a moment before touching the DOM
    if settle_ms:
        await page.wait_for_timeout(settle_ms)
    await dismiss_cookie_banner(page)
    return _ensure_output(await page.screenshot(**geometry.to_playwright_kwargs()), "screenshot")


async def render_pdf_from_url(
    page: "Page",
    url: str,
    pdf_options: PdfOptions,
    cookies: Optional[List[Tuple[str, str]]] = None,
    wait_for_ready: bool = False,
    ready_timeout_ms: int = 30000,
) -> bytes:
    """
    Navigate to url and print it to PDF.

    Args:
        page: Leased page
        url: Page to render
        pdf_options: Resolved preset options
        cookies: (name, value) pairs set for url before navigation
        wait_for_ready: Block until html[data-pdf-ready="true"] is attached
        ready_timeout_ms: Bound of the ready wait; exceeding it fails the render

    Returns:
        Non-empty PDF bytes
    """
    if cookies:
        await page.context.add_cookies(build_cookies(cookies, url))
    await page.goto(url, wait_until="networkidle")
    if wait_for_ready:
        await page.wait_for_selector(READY_SELECTOR, state="attached", timeout=ready_timeout_ms)
    return _ensure_output(await page.pdf(**pdf_options.to_playwright_kwargs()), "PDF")


async def render_pdf_from_html(page: "Page", html: str, pdf_options: PdfOptions) -> bytes:
    """Set html as page content and print it to PDF."""
    await page.set_content(html, wait_until="domcontentloaded")
    await page.wait_for_load_state("networkidle")
    return _ensure_output(await page.pdf(**pdf_options.to_playwright_kwargs()), "PDF")


async def screenshot_from_url(
    page: "Page",
    url: str,
    geometry: ScreenshotGeometry,
    settle_ms: int = 0,
) -> bytes:
    """Navigate to url and capture a PNG."""
    await _apply_viewport(page, geometry)
    await page.goto(url, wait_until="domcontentloaded")
    await page.wait_for_load_state("networkidle")
    return await _capture_screenshot(page, geometry, settle_ms)


async def screenshot_from_html(
    page: "Page",
    html: str,
    geometry: ScreenshotGeometry,
    settle_ms: int = 0,
) -> bytes:
    """Set html as page content and capture a PNG."""
    await _apply_viewport(page, geometry)
    await page.set_content(html, wait_until="domcontentloaded")
    await page.wait_for_load_state("networkidle")
    return await _capture_screenshot(page, geometry, settle_ms)
