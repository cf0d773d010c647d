"""Serve the built single-page frontend in production mode."""

import logging
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse, JSONResponse

logger = logging.getLogger(__name__)


def create_spa_router(static_dir: Path) -> APIRouter:
    """Router that serves files from *static_dir* and falls back to
    ``index.html`` for client-side routes."""
    router = APIRouter(include_in_schema=False)
    root = static_dir.expanduser().resolve()

    @router.get("/{full_path:path}", response_model=None)
    async def spa(full_path: str) -> FileResponse | JSONResponse:
        if full_path == "api" or full_path.startswith("api/"):
            return JSONResponse({"error": "API route not found", "path": f"/{full_path}"}, status_code=404)

        if full_path:
            candidate = (root / full_path).resolve()
            if candidate.is_file() and root in candidate.parents:
                return FileResponse(candidate)

        index = root / "index.html"
        if not index.is_file():
            logger.error("Error serving index.html: %s not found", index)
            return JSONResponse({"error": "Failed to serve application"}, status_code=500)
        return FileResponse(index)

    return router
