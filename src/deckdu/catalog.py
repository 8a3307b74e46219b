"""On-disk app catalogs and the staleness check.

The synchronized catalog starts with a unix timestamp line followed by one
``<appid> <name>`` record per line::

    1702678915
    400 Portal
    620 Portal 2

The override catalog uses the same record lines without the timestamp.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol, Sequence, Tuple

from deckdu.errors import CatalogUnavailable
from deckdu.log import get_logger

_logger = get_logger("catalog")


@dataclass(frozen=True)
class AppRecord:
    """One app id and its display name."""

    id: str
    name: str

    def to_line(self) -> str:
        return f"{self.id} {self.name}"


@dataclass(frozen=True)
class CatalogFile:
    """Timestamped set of records as stored in the cache."""

    last_update: int
    records: Tuple[AppRecord, ...] = field(default_factory=tuple)


def parse_record_line(
    line: str,
    logger: Optional[logging.Logger] = None,
) -> Optional[AppRecord]:
    """Parse ``<appid> <name>``, returning None for malformed lines."""
    log = logger or _logger
    text = line.rstrip("\r\n")
    if not text.strip():
        return None
    app_id, _, name = text.strip().partition(" ")
    name = name.strip()
    if not app_id.isdigit() or not name:
        log.debug("Skipping malformed catalog line: %r", text)
        return None
    return AppRecord(id=app_id, name=name)


def read_last_update(path: Path) -> Optional[int]:
    """Read only the timestamp line of a catalog file."""
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            first_line = handle.readline()
    except OSError:
        return None
    try:
        return int(first_line.strip())
    except ValueError:
        return None


def is_fresh(last_update: Optional[int], ttl: int, now: int) -> bool:
    """Return True if a catalog stamped at last_update is younger than ttl."""
    if last_update is None:
        return False
    return (now - last_update) < ttl


def load_catalog(
    path: Path,
    logger: Optional[logging.Logger] = None,
) -> Optional[CatalogFile]:
    """Load a full synchronized catalog, or None if it is absent or unreadable."""
    log = logger or _logger
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            header = handle.readline()
            try:
                last_update = int(header.strip())
            except ValueError:
                log.debug("Catalog %s has no timestamp line", path)
                return None
            records = tuple(_parse_lines(handle, log))
    except OSError as exc:
        log.debug("Catalog %s not loaded: %s", path, exc)
        return None
    return CatalogFile(last_update=last_update, records=records)


def load_override_catalog(
    path: Path,
    logger: Optional[logging.Logger] = None,
) -> Tuple[AppRecord, ...]:
    """Load the override catalog, treating a missing file as empty."""
    log = logger or _logger
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            return tuple(_parse_lines(handle, log))
    except OSError as exc:
        log.info("Override catalog %s unavailable, using none: %s", path, exc)
        return ()


def save_catalog(path: Path, catalog: CatalogFile) -> None:
    """Write a catalog, replacing any existing file in one step."""
    path.parent.mkdir(parents=True, exist_ok=True)
    # Temp file in the same directory keeps os.replace on one filesystem.
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".tmp.{path.name}.")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{catalog.last_update}\n")
            for record in catalog.records:
                handle.write(record.to_line() + "\n")
        os.replace(tmp_path, path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise


def _parse_lines(lines: Iterable[str], log: logging.Logger) -> Iterator[AppRecord]:
    for line in lines:
        record = parse_record_line(line, log)
        if record is not None:
            yield record


class RecordSource(Protocol):
    """Something the resolver can scan for records, in order."""

    def records(self) -> Iterator[AppRecord]: ...


class CatalogSource:
    """Streams records from a catalog file without loading it whole.

    A required source raises CatalogUnavailable when the file cannot be
    opened; an optional one logs and yields nothing.
    """

    def __init__(
        self,
        path: Path,
        *,
        has_header: bool,
        required: bool,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.path = path
        self.has_header = has_header
        self.required = required
        self.logger = logger or _logger

    def records(self) -> Iterator[AppRecord]:
        try:
            handle = self.path.open("r", encoding="utf-8", errors="replace")
        except OSError as exc:
            if self.required:
                raise CatalogUnavailable(
                    f"Cannot open catalog {self.path}: {exc}"
                ) from exc
            self.logger.info("Catalog %s unavailable, treating as empty", self.path)
            return

        with handle:
            if self.has_header:
                handle.readline()
            yield from _parse_lines(handle, self.logger)


class MemoryCatalogSource:
    """Record source over an in-memory sequence."""

    def __init__(self, records: Sequence[AppRecord] = ()) -> None:
        self._records = tuple(records)

    def records(self) -> Iterator[AppRecord]:
        return iter(self._records)
