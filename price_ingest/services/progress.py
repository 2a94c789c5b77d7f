from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..db.batch_insert import BatchMetrics

"""Insert progress display with tqdm (TTY only).

The bar counts submitted rows and advances once per insert page. It is
written to stderr and disabled entirely when stderr is not a TTY, so CI logs
and piped output stay free of control sequences.
"""

__all__ = [
    "InsertProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stderr.isatty()


class InsertProgress:
    """Progress bar over the rows of one import transaction."""

    def __init__(self, total_rows: int, *, description: str = "Inserting prices") -> None:
        self.total_rows = total_rows
        self.description = description
        self.submitted = 0
        self.inserted = 0

        self.enabled = is_tty_enabled() and total_rows > 0
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=False,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def on_page(self, metrics: BatchMetrics) -> None:
        """Metrics callback for batch_insert."""
        self.submitted += metrics.batch_size
        self.inserted += metrics.inserted_rows
        if self.pbar is not None:
            self.pbar.update(metrics.batch_size)
            self.pbar.set_postfix(inserted=self.inserted, skipped=self.submitted - self.inserted)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> InsertProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
