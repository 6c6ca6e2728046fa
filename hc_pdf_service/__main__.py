"""Run the service with uvicorn: python -m hc_pdf_service"""

import logging
import sys

import uvicorn

from .config import get_settings
from .errors import ConfigFailure

logger = logging.getLogger(__name__)


def main() -> None:
    try:
        settings = get_settings()
        from .app import app
    except ConfigFailure as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Startup failed: {e.message}")
        sys.exit(1)

    uvicorn.run(
        app,
        host=settings.server_address,
        port=settings.server_port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
