"""Exception types shared by the gateway, the store and the client layer."""

from __future__ import annotations

from typing import Any


class SvreportError(Exception):
    """Base exception for svreport."""


class ValidationError(SvreportError):
    """A required field is missing or malformed on a write."""


class StorageError(SvreportError):
    """The local database failed; the write was rolled back."""


class UpstreamError(SvreportError):
    """The upstream inventory API (or the gateway) failed or answered non-2xx."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        full_message = message
        if response:
            text = str(response)
            full_message = f"{message} - Response: {text[:500]}"
        super().__init__(full_message)
        self.status_code = status_code
        self.response = response


class ExportError(SvreportError):
    """An export run failed and its partial results were discarded."""
