"""
HC PDF Service - FastAPI application.

Provides endpoints for rendering a URL or an HTML payload to PDF or PNG
using a pool of pre-launched Playwright/Chromium pages.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from . import __version__
from .auth import verify_token
from .config import PdfServiceSettings, get_settings, validate_config_on_startup
from .errors import InvalidRequest, PayloadTooLarge, PdfServiceError, RenderFailure, Unauthorized
from .page_pool import PagePool, launch_page_pool
from .pdf_options import PresetPdfOptionsLoader
from .renderer import (
    build_screenshot_geometry,
    parse_cookie_header,
    render_pdf_from_html,
    render_pdf_from_url,
    screenshot_from_html,
    screenshot_from_url,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

router = APIRouter()


# ============================================================================
# Helpers
# ============================================================================

def _binary_response(buffer: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=buffer,
        media_type=media_type,
        headers={
            "Content-Length": str(len(buffer)),
            "Content-Disposition": f'inline; filename="{filename}"',
        },
    )


def _field(data: Dict[str, Any], name: str) -> Optional[str]:
    """Read an optional string field from a parsed request body."""
    value = data.get(name)
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise InvalidRequest(f"{name} must be a string")


async def _read_body(request: Request) -> Dict[str, Any]:
    """
    Parse a form-encoded (or JSON) body into a dict.

    The size limit is checked against the bytes actually received, so
    chunked uploads without a Content-Length are bounded too.
    """
    body_limit = request.app.state.settings.body_limit
    raw = await request.body()
    if len(raw) > body_limit:
        logger.warning(f"Rejected {request.method} {request.url.path}: body of {len(raw)} bytes")
        raise PayloadTooLarge(f"request body exceeds {body_limit} bytes")

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            raise InvalidRequest("request body is not valid JSON")
        if not isinstance(data, dict):
            raise InvalidRequest("request body must be an object")
    else:
        data = dict(await request.form())
    if not data:
        raise InvalidRequest("request body is empty")
    return data


async def _render(
    request: Request,
    work: Callable[[Any], Awaitable[bytes]],
    url: Optional[str] = None,
    html: Optional[str] = None,
) -> bytes:
    """
    Run work on a leased page, converting any failure to RenderFailure.

    The page is always returned to the pool before this returns.
    """
    page_pool: Optional[PagePool] = request.app.state.page_pool
    if page_pool is None:
        raise RenderFailure("Page pool is not running", url=url, html=html)

    context = f"url={url}" if url is not None else f"html={len(html or '')} chars"
    try:
        return await page_pool.run_on_page(work)
    except RenderFailure as e:
        logger.error(f"Render failed ({context}): {e.message}")
        e.url = e.url if e.url is not None else url
        e.html = e.html if e.html is not None else html
        raise
    except Exception as e:
        message = str(e) or type(e).__name__
        logger.error(f"Render failed ({context}): {message}")
        raise RenderFailure(message, url=url, html=html) from e


# ============================================================================
# Health & Diagnostics
# ============================================================================

@router.get("/hc", response_class=PlainTextResponse)
async def health_check(request: Request) -> PlainTextResponse:
    """Liveness check. Never touches the page pool."""
    headers = {}
    build_version = request.app.state.settings.build_version
    if build_version:
        headers["X-Build-Version"] = build_version
    return PlainTextResponse("ok", headers=headers)


@router.get("/pdf_options")
async def pdf_options(request: Request) -> Dict[str, Dict[str, Any]]:
    """Return the full preset table."""
    return request.app.state.preset_loader.to_public_dict()


# ============================================================================
# PDF Endpoints
# ============================================================================

@router.get("/")
async def pdf_from_url(
    request: Request,
    url: Optional[str] = None,
    pdf_option: Optional[str] = None,
    wait_for_ready: bool = False,
) -> Response:
    """
    Render url to PDF.

    Cookies on the inbound request are forwarded to the page, and
    wait_for_ready blocks until the page marks itself ready.
    """
    if not url:
        raise InvalidRequest("url is required")

    settings: PdfServiceSettings = request.app.state.settings
    options = request.app.state.preset_loader.resolve(
        pdf_option, settings.default_preset_pdf_options_name
    )
    cookies = None
    if settings.cookie_forwarding_enabled:
        cookies = parse_cookie_header(request.headers.getlist("cookie"))
    if wait_for_ready and not settings.wait_for_ready_enabled:
        logger.debug("wait_for_ready requested but disabled by configuration")
        wait_for_ready = False

    logger.info(f"Starting PDF render (url={url}, pdf_option={pdf_option}, wait_for_ready={wait_for_ready})")
    buffer = await _render(
        request,
        lambda page: render_pdf_from_url(
            page,
            url,
            options,
            cookies=cookies,
            wait_for_ready=wait_for_ready,
            ready_timeout_ms=settings.ready_wait_timeout_milliseconds,
        ),
        url=url,
    )
    logger.info(f"PDF render completed (url={url}, {len(buffer)} bytes)")
    return _binary_response(buffer, "application/pdf", "document.pdf")


@router.post("/")
async def pdf_from_html(request: Request) -> Response:
    """Render the posted html to PDF."""
    body = await _read_body(request)
    html = _field(body, "html")
    if not html:
        raise InvalidRequest("html is required")

    settings: PdfServiceSettings = request.app.state.settings
    pdf_option = _field(body, "pdf_option")
    options = request.app.state.preset_loader.resolve(
        pdf_option, settings.default_preset_pdf_options_name
    )

    logger.info(f"Starting PDF render (html={len(html)} chars, pdf_option={pdf_option})")
    buffer = await _render(
        request,
        lambda page: render_pdf_from_html(page, html, options),
        html=html,
    )
    logger.info(f"PDF render completed (html, {len(buffer)} bytes)")
    return _binary_response(buffer, "application/pdf", "document.pdf")


# ============================================================================
# Screenshot Endpoints
# ============================================================================

@router.get("/screenshot")
async def screenshot_url(
    request: Request,
    url: Optional[str] = None,
    w: Optional[str] = None,
    h: Optional[str] = None,
) -> Response:
    """Capture url as PNG, clipped to w x h when both are given."""
    if not url:
        raise InvalidRequest("url is required")

    settings: PdfServiceSettings = request.app.state.settings
    geometry = build_screenshot_geometry(w, h)

    logger.info(f"Starting screenshot (url={url}, clip={geometry.clip})")
    buffer = await _render(
        request,
        lambda page: screenshot_from_url(
            page, url, geometry, settle_ms=settings.screenshot_settle_milliseconds
        ),
        url=url,
    )
    return _binary_response(buffer, "image/png", "screenshot.png")


@router.post("/screenshot")
async def screenshot_html(request: Request) -> Response:
    """Capture the posted html as PNG, clipped to w x h when both are given."""
    body = await _read_body(request)
    html = _field(body, "html")
    if not html:
        raise InvalidRequest("html is required")

    settings: PdfServiceSettings = request.app.state.settings
    geometry = build_screenshot_geometry(_field(body, "w"), _field(body, "h"))

    logger.info(f"Starting screenshot (html={len(html)} chars, clip={geometry.clip})")
    buffer = await _render(
        request,
        lambda page: screenshot_from_html(
            page, html, geometry, settle_ms=settings.screenshot_settle_milliseconds
        ),
        html=html,
    )
    return _binary_response(buffer, "image/png", "screenshot.png")


# ============================================================================
# Application factory
# ============================================================================

async def _handle_service_error(request: Request, exc: PdfServiceError) -> JSONResponse:
    headers = dict(NO_CACHE_HEADERS)
    if isinstance(exc, Unauthorized):
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": message}, headers=NO_CACHE_HEADERS)


def create_app(
    settings: Optional[PdfServiceSettings] = None,
    preset_loader: Optional[PresetPdfOptionsLoader] = None,
    page_pool: Optional[PagePool] = None,
) -> FastAPI:
    """
    Build the application.

    The preset table is loaded here, so a bad preset source raises
    ConfigFailure before anything is served. When no page_pool is given,
    one is launched on startup and closed on shutdown.
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    validate_config_on_startup(settings)

    if preset_loader is None:
        preset_loader = PresetPdfOptionsLoader.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_pool = app.state.page_pool is None
        if owns_pool:
            app.state.page_pool = await launch_page_pool(settings)
        logger.info(f"HC PDF Service ready (pages={app.state.page_pool.size})")
        try:
            yield
        finally:
            if owns_pool:
                await app.state.page_pool.close()
                app.state.page_pool = None

    app = FastAPI(
        title="HC PDF Service",
        version=__version__,
        description="Render URLs and HTML to PDF or PNG using pooled Chromium pages",
        dependencies=[Depends(verify_token)],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.preset_loader = preset_loader
    app.state.page_pool = page_pool
    app.state.bearer_keys = (
        {settings.bearer_auth_secret_key} if settings.bearer_auth_secret_key else set()
    )

    @app.middleware("http")
    async def limit_body_and_disable_cache(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > settings.body_limit:
            logger.warning(f"Rejected {request.method} {request.url.path}: body of {content_length} bytes")
            return JSONResponse(
                status_code=413,
                content={"error": f"request body exceeds {settings.body_limit} bytes"},
                headers=NO_CACHE_HEADERS,
            )
        response = await call_next(request)
        for name, value in NO_CACHE_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_exception_handler(PdfServiceError, _handle_service_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.include_router(router)
    return app


app = create_app()
