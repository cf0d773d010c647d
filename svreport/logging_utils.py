"""Logging setup shared by the gateway and the CLI."""

import logging
import re
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)
REDACTED = "***REDACTED***"


def redact(text: str, token: Optional[str] = None) -> str:
    """Replace bearer credentials (and *token*, if given) in *text*."""
    if token and token in text:
        text = text.replace(token, REDACTED)
    return _BEARER_RE.sub(rf"\g<1>{REDACTED}", text)


class TokenRedactionFilter(logging.Filter):
    """Logging filter that hides ``Authorization`` bearer tokens."""

    def __init__(self, token: Optional[str] = None) -> None:
        super().__init__()
        self._token = token

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(str(record.msg), self._token)
        if record.args:
            args = record.args
            if isinstance(args, tuple):
                record.args = tuple(redact(a, self._token) if isinstance(a, str) else a for a in args)
            elif isinstance(args, dict):
                record.args = {
                    k: redact(v, self._token) if isinstance(v, str) else v for k, v in args.items()
                }
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    token: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """Configure root logging with RichHandler and an optional file handler."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    redaction = TokenRedactionFilter(token)

    rich_handler = RichHandler(console=console or Console(stderr=True), rich_tracebacks=True)
    rich_handler.addFilter(redaction)
    handlers: list[logging.Handler] = [rich_handler]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.addFilter(redaction)
        handlers.append(file_handler)

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )

    # Suppress httpx request logging unless debugging
    if numeric_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
