from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..parsing.records import RowRejection

"""JSON Lines error log for one CLI run.

Rejected CSV rows and archive-level failures are collected while an import
runs and written in one go to ``<logs_directory>/errors-YYYYMMDD-HHMMSS.log``
(UTC, stamped on first write). Nothing is created on disk for a clean run.
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
    "log_file_name",
]


def log_file_name(moment: datetime) -> str:
    """errors-20240101-120000.log"""
    return f"errors-{moment:%Y%m%d-%H%M%S}.log"


class ErrorLogBuffer:
    def __init__(self, logs_dir: Path | str = "./logs") -> None:
        self.logs_dir = Path(logs_dir)
        self._pending: list[ErrorRecord] = []
        self._target: Path | None = None

    @property
    def file_path(self) -> Path:
        # fixed on first use so that later flushes of the same run append
        if self._target is None:
            self._target = self.logs_dir / log_file_name(datetime.now(UTC))
        return self._target

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def add_rejections(self, archive: str, entry: str, rejections: Iterable[RowRejection]) -> None:
        self._pending.extend(
            ErrorRecord.create(archive, entry, rej.line, rej.error_type, rej.message) for rej in rejections
        )

    def __len__(self) -> int:
        return len(self._pending)

    def flush(self) -> Path | None:
        """Append pending records to the log file; None when there was nothing to write."""
        if not self._pending:
            return None
        target = self.file_path
        target.parent.mkdir(parents=True, exist_ok=True)
        lines = "".join(rec.to_json_line() + "\n" for rec in self._pending)
        with target.open("a", encoding="utf-8") as fh:
            fh.write(lines)
        self._pending = []
        return target
