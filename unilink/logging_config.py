"""Logging setup for the API process.

Configures the root logger once from ``LOG_*`` settings. ``json`` format emits
one JSON object per line; ``text`` is the usual human-readable layout.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from .config import settings

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _build_formatter(fmt: str) -> logging.Formatter:
    if fmt == "json":
        return JsonFormatter()
    return logging.Formatter(_TEXT_FORMAT)


def setup_logging(*, force: bool = False) -> None:
    """Configure root logging handlers.

    Safe to call more than once (e.g. on every app startup in tests); handlers
    are only installed the first time unless ``force`` is set.
    """
    global _configured
    if _configured and not force:
        return

    formatter = _build_formatter(settings.logging.format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.logging.file:
        handlers.append(logging.FileHandler(settings.logging.file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(settings.logging.level.upper())

    # SQL echo is controlled by DB_ECHO, keep the engine logger quiet otherwise
    if not settings.db.echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).debug(
        f"Logging configured: level={settings.logging.level}, format={settings.logging.format}"
    )
