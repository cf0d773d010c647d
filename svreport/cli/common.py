"""Shared CLI helpers: logging, settings, token resolution."""

import logging
from pathlib import Path
from typing import Union

import typer
from rich.console import Console

from svreport.config import Settings, get_settings
from svreport.logging_utils import setup_logging as _setup_logging

console = Console()

# Config file search order: explicit --config, then CWD
_CONFIG_FILENAMES = [".svreport.yaml", ".svreport.yml"]


def setup_logging(verbose: bool, settings: Union[Settings, None] = None, token: Union[str, None] = None) -> None:
    """Configure logging with RichHandler."""
    level = "DEBUG" if verbose else (settings.log_level if settings else "INFO")
    _setup_logging(level, settings.log_file if settings else None, token=token, console=console)


def find_config_file() -> Union[Path, None]:
    cwd = Path.cwd()
    for name in _CONFIG_FILENAMES:
        candidate = cwd / name
        if candidate.is_file():
            return candidate
    return None


def load_settings(config_path: Union[Path, None] = None, **overrides: object) -> Settings:
    """Settings from a YAML file (explicit or found in CWD), else env/.env."""
    path = config_path or find_config_file()
    if path is not None:
        return Settings.from_yaml(path, **overrides)
    settings = get_settings()
    clean = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=clean) if clean else settings


def redact_token(token: str) -> str:
    """Redact token for display (shows first 4 and last 4 chars)."""
    if len(token) <= 8:
        return "*" * len(token)
    return token[:4] + "*" * (len(token) - 8) + token[-4:]


def resolve_token(token: Union[str, None], settings: Settings) -> str:
    """Token from --token, then ``SVREPORT_UPSTREAM_TOKEN``. Exits 2 if missing."""
    value = token or settings.upstream_token or ""
    if not value:
        console.print(
            "[red]Error: API token required. Set SVREPORT_UPSTREAM_TOKEN "
            "environment variable or use --token.[/red]"
        )
        raise typer.Exit(2)
    logging.getLogger(__name__).debug("Using token %s", redact_token(value))
    return value
