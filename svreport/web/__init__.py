"""svreport gateway: local augmentation API plus upstream proxy."""

from __future__ import annotations

from typing import Optional

from svreport.config import Settings, get_settings
from svreport.web.app import create_app


def run_web(settings: Optional[Settings] = None) -> None:
    """Start the gateway server."""
    import uvicorn

    from svreport.logging_utils import setup_logging

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_file)

    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="warning")


__all__ = ["create_app", "run_web"]
