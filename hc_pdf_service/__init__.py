"""
HC PDF Service - HTTP service for rendering PDFs and screenshots.

Converts a URL or an HTML payload into a PDF document or PNG screenshot
using a pool of pre-launched Playwright/Chromium pages.
"""

__version__ = "0.1.0"
