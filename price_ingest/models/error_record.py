from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""One line of the JSON Lines error log.

Keys are fixed: timestamp, archive, entry, line, error_type, message.
``line`` is the 1-based CSV data record number, or ``-1`` for failures that
concern the whole archive (unreadable container, no CSV entry, bad header).
"""

__all__ = [
    "ARCHIVE_LEVEL_LINE",
    "ErrorRecord",
]

ARCHIVE_LEVEL_LINE = -1


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: str  # ISO8601, 'Z' suffix
    archive: str  # uploaded file name
    entry: str  # CSV entry inside the archive, "" if not located
    line: int
    error_type: str  # UPPER_SNAKE
    message: str

    @classmethod
    def create(cls, archive: str, entry: str, line: int, error_type: str, message: str) -> ErrorRecord:
        """Build a record stamped with the current UTC time."""
        return cls(_utc_now_iso(), archive, entry, line, error_type, message)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
