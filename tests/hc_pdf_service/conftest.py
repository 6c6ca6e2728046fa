"""
Pytest fixtures for HC PDF service tests.
"""

import os
from unittest.mock import AsyncMock, MagicMock

# IMPORTANT: Set environment variables BEFORE any imports from hc_pdf_service
# so the module-level app is built from a predictable configuration.
os.environ["PAGES_NUM"] = "2"
os.environ["LOG_LEVEL"] = "info"
os.environ.pop("BEARER_AUTH_SECRET_KEY", None)
os.environ.pop("PRESET_PDF_OPTIONS_FILE_PATH", None)

import pytest
from fastapi.testclient import TestClient

FAKE_PDF = b"%PDF-1.4 fake pdf content"
FAKE_PNG = b"\x89PNG\r\n\x1a\n fake png content"


def make_mock_page() -> AsyncMock:
    """AsyncMock standing in for a Playwright page."""
    page = AsyncMock()
    page.pdf = AsyncMock(return_value=FAKE_PDF)
    page.screenshot = AsyncMock(return_value=FAKE_PNG)
    page.evaluate = AsyncMock(return_value=False)
    page.context = MagicMock()
    page.context.add_cookies = AsyncMock()
    page.context.clear_cookies = AsyncMock()
    return page


@pytest.fixture
def settings():
    from hc_pdf_service.config import PdfServiceSettings
    return PdfServiceSettings(
        pages_num=2,
        screenshot_settle_milliseconds=0,
        page_acquire_timeout_milliseconds=1000,
    )


@pytest.fixture
def pages():
    return [make_mock_page(), make_mock_page()]


@pytest.fixture
def page_pool(pages, settings):
    from hc_pdf_service.page_pool import PagePool
    return PagePool(
        pages,
        acquire_timeout=1.0,
        default_viewport=settings.default_viewport,
    )


@pytest.fixture
def app(settings, page_pool):
    from hc_pdf_service.app import create_app
    return create_app(settings=settings, page_pool=page_pool)


@pytest.fixture
def client(app):
    """Create test client with a mocked page pool."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_settings():
    from hc_pdf_service.config import PdfServiceSettings
    return PdfServiceSettings(
        bearer_auth_secret_key="test-secret-key-1234",
        screenshot_settle_milliseconds=0,
    )


@pytest.fixture
def auth_client(auth_settings, page_pool):
    from hc_pdf_service.app import create_app
    with TestClient(create_app(settings=auth_settings, page_pool=page_pool)) as test_client:
        yield test_client
