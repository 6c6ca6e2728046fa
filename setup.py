"""
Setup script for hc-pdf-service.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="hc-pdf-service",
    version="0.1.0",
    packages=find_packages(include=["hc_pdf_service", "hc_pdf_service.*"]),
    package_data={"hc_pdf_service": ["presets/*.json"]},
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "python-multipart>=0.0.9",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "playwright>=1.40",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.26",
        ],
    },
    entry_points={
        "console_scripts": [
            "hc-pdf-service=hc_pdf_service.__main__:main",
        ],
    },
)
