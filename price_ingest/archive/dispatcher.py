from __future__ import annotations

import gzip
import logging
import tarfile
import zipfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO

"""Archive dispatcher: locate the single CSV payload inside an upload.

Two archive kinds are supported and selected by the caller:

- ``zip``: entries in stored order, first ``*.csv`` file wins.
- ``tar``: plain or gzip-compressed; gzip is detected from the magic bytes
  and unwrapped transparently, it is not a separate kind.

Only the first matching entry is used, remaining entries are ignored.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ARCHIVE_KINDS",
    "ArchiveError",
    "CorruptArchiveError",
    "CsvEntry",
    "CsvNotFoundError",
    "open_csv_stream",
]

ARCHIVE_KINDS = ("zip", "tar")
GZIP_MAGIC = b"\x1f\x8b"

# Raised by zipfile / tarfile / gzip while reading a damaged container.
_CORRUPTION_ERRORS = (
    zipfile.BadZipFile,
    tarfile.TarError,
    gzip.BadGzipFile,
    zlib.error,
    EOFError,
)

# zf.open on an encrypted entry or one with an unsupported compression method.
_ZIP_ENTRY_ERRORS = (RuntimeError, NotImplementedError)


class ArchiveError(Exception):
    """Base class for archive level failures."""


class CorruptArchiveError(ArchiveError):
    """Raised when the container cannot be opened or read."""


class CsvNotFoundError(ArchiveError):
    """Raised when the archive holds no ``.csv`` entry."""


@dataclass(frozen=True)
class CsvEntry:
    name: str  # entry name inside the archive
    stream: IO[bytes]  # positioned at the start of the CSV payload


def _is_csv_name(name: str) -> bool:
    return name.lower().endswith(".csv")


def is_gzip(source: IO[bytes]) -> bool:
    """Peek the first two bytes of a seekable source without consuming them."""
    start = source.tell()
    head = source.read(2)
    source.seek(start)
    return head == GZIP_MAGIC


@contextmanager
def _open_zip(source: IO[bytes]) -> Iterator[CsvEntry]:
    try:
        zf = zipfile.ZipFile(source)
    except (zipfile.BadZipFile, EOFError) as e:
        raise CorruptArchiveError(f"open zip: {e}") from e
    with zf:
        info = next(
            (i for i in zf.infolist() if not i.is_dir() and _is_csv_name(i.filename)),
            None,
        )
        if info is None:
            raise CsvNotFoundError("zip: no .csv file found")
        try:
            stream = zf.open(info)
        except (*_CORRUPTION_ERRORS, *_ZIP_ENTRY_ERRORS) as e:
            raise CorruptArchiveError(f"zip open csv: {e}") from e
        with stream:
            yield CsvEntry(name=info.filename, stream=stream)


@contextmanager
def _open_tar(source: IO[bytes]) -> Iterator[CsvEntry]:
    gz: gzip.GzipFile | None = None
    fileobj: IO[bytes] = source
    if is_gzip(source):
        logger.debug("tar: gzip magic detected, decompressing transparently")
        gz = gzip.GzipFile(fileobj=source, mode="rb")
        fileobj = gz
    try:
        try:
            tf = tarfile.open(fileobj=fileobj, mode="r:")
        except _CORRUPTION_ERRORS as e:
            raise CorruptArchiveError(f"open tar: {e}") from e
        with tf:
            member = _next_csv_member(tf)
            if member is None:
                raise CsvNotFoundError("tar: no .csv file found")
            stream = tf.extractfile(member)
            if stream is None:  # pragma: no cover - regular files always yield a stream
                raise CorruptArchiveError(f"tar: cannot read entry {member.name}")
            with stream:
                yield CsvEntry(name=member.name, stream=stream)
    finally:
        if gz is not None:
            gz.close()


def _next_csv_member(tf: tarfile.TarFile) -> tarfile.TarInfo | None:
    """Walk members in stream order and stop at the first CSV file."""
    while True:
        try:
            member = tf.next()
        except _CORRUPTION_ERRORS as e:
            raise CorruptArchiveError(f"tar read: {e}") from e
        if member is None:
            return None
        if member.isdir() or not member.isfile():
            continue
        if _is_csv_name(member.name):
            return member


@contextmanager
def open_csv_stream(source: IO[bytes], kind: str) -> Iterator[CsvEntry]:
    """Yield the first CSV entry of an archive as a binary stream.

    Parameters
    ----------
    source: seekable binary file object holding the whole archive
    kind: ``"zip"`` or ``"tar"`` (tar covers .tar and .tar.gz)

    Raises
    ------
    ValueError: unknown kind (caller error)
    CorruptArchiveError: container cannot be opened, or fails while the
        payload is being read inside the ``with`` block
    CsvNotFoundError: no ``.csv`` entry
    """
    if kind == "zip":
        opener = _open_zip
    elif kind == "tar":
        opener = _open_tar
    else:
        raise ValueError(f"unsupported archive type {kind!r}")

    with opener(source) as entry:
        logger.debug("archive=%s csv entry=%s", kind, entry.name)
        try:
            yield entry
        except _CORRUPTION_ERRORS as e:
            raise CorruptArchiveError(f"{kind}: failed reading {entry.name}: {e}") from e
