"""Deterministic local persistence of harvested text artifacts.

One file per source per day: ``{output_dir}/{sanitized_name}_{YYYY-MM-DD}.txt``.
Re-running on the same day overwrites the earlier file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_name(name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9._-]`` with ``_``.

    Length is preserved, so two names that differ in any safe character
    stay distinct after sanitizing.
    """
    return _UNSAFE_CHARS.sub("_", name)


def artifact_filename(logical_name: str, timestamp: date | datetime) -> str:
    """File name for a source on the run's calendar day."""
    day = timestamp.date() if isinstance(timestamp, datetime) else timestamp
    return f"{sanitize_name(logical_name)}_{day.isoformat()}.txt"


@dataclass
class WriteResult:
    """Result of writing one artifact."""

    success: bool
    path: Path | None = None
    bytes_written: int = 0
    error_message: str | None = None


class ArtifactWriter:
    """Writes artifacts as UTF-8 text files into a single output directory."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, logical_name: str, timestamp: date | datetime) -> Path:
        return self.output_dir / artifact_filename(logical_name, timestamp)

    def write(self, logical_name: str, timestamp: date | datetime, content: str) -> WriteResult:
        """Write content to its deterministic path, replacing any existing file.

        Args:
            logical_name: Source identifier (sanitized here).
            timestamp: Run timestamp; only the date part is used.
            content: Text to persist.

        Returns:
            WriteResult with the path on success or the OS error message.
        """
        path = self.path_for(logical_name, timestamp)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            # Bytes, not text mode: no newline translation
            data = content.encode("utf-8")
            path.write_bytes(data)
        except (OSError, UnicodeEncodeError) as e:
            return WriteResult(success=False, path=path, error_message=f"{type(e).__name__}: {e}")

        return WriteResult(success=True, path=path, bytes_written=len(data))
