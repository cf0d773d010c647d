"""API proxy router: forwards ``/api/*`` to the upstream inventory API.

Registered after the local routers, and only when an upstream URL is
configured, so only paths the local routers do not own reach it.
The caller's ``Authorization`` header is forwarded unchanged; the gateway
never injects credentials of its own.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from svreport.config import Settings
from svreport.web.dependencies import get_app_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _cors_headers(request: Request) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": request.headers.get("origin") or "*",
        "Access-Control-Allow-Credentials": "true",
    }


@router.api_route("/api/{path:path}", methods=_METHODS)
async def proxy(
    path: str,
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Proxy requests to the upstream API."""
    upstream_url = f"{settings.upstream_base_url}/api/{path}"
    if request.url.query:
        upstream_url += f"?{request.url.query}"

    fwd_headers: dict[str, str] = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    auth = request.headers.get("authorization")
    if auth:
        fwd_headers["Authorization"] = auth

    body = await request.body()
    client: httpx.AsyncClient = request.app.state.http_client

    try:
        resp = await client.request(
            method=request.method,
            url=upstream_url,
            headers=fwd_headers,
            content=body if body else None,
            timeout=settings.upstream_timeout,
        )
    except httpx.HTTPError as e:
        logger.error("Proxy error for %s %s: %s", request.method, request.url.path, e)
        return JSONResponse(
            {"error": "Proxy error occurred", "message": str(e), "url": request.url.path},
            status_code=502,
            headers=_cors_headers(request),
        )

    logger.debug("Proxied %s /api/%s -> %s", request.method, path, resp.status_code)

    ct = resp.headers.get("content-type", "")
    if ct.startswith("application/json") and resp.text.strip():
        try:
            content = resp.json()
        except ValueError:
            content = {"raw": resp.text}
    elif resp.text.strip():
        content = {"raw": resp.text}
    else:
        content = {"ok": True}

    return JSONResponse(content=content, status_code=resp.status_code, headers=_cors_headers(request))
