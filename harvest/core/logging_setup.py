"""Run log configuration.

Every line looks like ``[2025-01-31T06:00:00.123+00:00] INFO message key=value``.
Structured context is passed with ``extra={"meta": {...}}``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path


class HarvestFormatter(logging.Formatter):
    """Formats records as ``[timestamp] LEVEL message metadata``."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
            timespec="milliseconds"
        )
        line = f"[{timestamp}] {record.levelname} {record.getMessage()}"

        meta = getattr(record, "meta", None)
        if meta:
            line += " " + " ".join(f"{k}={v}" for k, v in meta.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(log_file: str | Path | None = "scraper.log", level: str = "INFO") -> None:
    """Log to the console and append to log_file (if given)."""
    formatter = HarvestFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, mode="a", encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
