"""FastAPI dependency injection helpers."""

from starlette.requests import Request

from svreport.config import Settings
from svreport.store import AugmentationStore


def get_store(request: Request) -> AugmentationStore:
    """Retrieve the shared ``AugmentationStore`` from the application."""
    return request.app.state.store  # type: ignore[no-any-return]


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]
