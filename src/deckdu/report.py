"""Per-app disk usage measurement and console output."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from rich.console import Console
from rich.markup import escape

from deckdu.errors import SizeProbeError
from deckdu.log import get_logger
from deckdu.resolver import ResolvedEntry

BYTE_UNIT_BASE = 1024
SIZE_PLACEHOLDER = "??"
SIZE_WIDTH = 8
ID_WIDTH = 10
NO_APPS_LINE = "  no apps found"


class SizeProbe(Protocol):
    """Measures a directory and returns a human-readable size."""

    def size(self, path: Path) -> str: ...


class DuSizeProbe:
    """SizeProbe that shells out to ``du -sh``."""

    def __init__(self, command: Sequence[str] = ("du", "-sh")) -> None:
        self.command = list(command)

    def size(self, path: Path) -> str:
        try:
            result = subprocess.run(
                [*self.command, str(path)],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise SizeProbeError(f"Failed to run {self.command[0]}: {exc}") from exc

        if result.returncode != 0:
            raise SizeProbeError(
                f"{self.command[0]} exited with {result.returncode} for {path}"
            )
        return parse_du_output(result.stdout)


def parse_du_output(output: str) -> str:
    """Return the size column of the first ``du`` output line."""
    lines = output.strip().splitlines()
    if not lines:
        raise SizeProbeError("du produced no output")
    size = lines[0].split("\t", 1)[0].strip()
    if not size:
        raise SizeProbeError(f"Unexpected du output: {lines[0]!r}")
    return size


class NativeSizeProbe:
    """SizeProbe that walks the tree in-process, without following symlinks."""

    def size(self, path: Path) -> str:
        if not path.exists():
            raise SizeProbeError(f"{path} does not exist")
        return format_size(get_size(path))


def get_size(path: Path) -> int:
    """Calculate folder size recursively, without following symlinks."""
    total = 0
    try:
        for node in path.rglob("*"):
            try:
                if node.is_symlink():
                    total += node.lstat().st_size
                elif node.is_file():
                    total += node.stat().st_size
            except (PermissionError, OSError):
                continue
    except (PermissionError, OSError):
        pass
    return total


def format_size(size_bytes: int) -> str:
    """Format bytes to a readable string."""
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if size < BYTE_UNIT_BASE:
            return f"{size:.2f} {unit}"
        size /= BYTE_UNIT_BASE
    return f"{size:.2f} TB"


@dataclass
class EntryUsage:
    """A resolved entry with its measured size."""

    entry: ResolvedEntry
    size: str


@dataclass
class LocationReport:
    """All measured entries of one data location."""

    location: Path
    usages: List[EntryUsage]

    def to_dict(self) -> Dict[str, object]:
        return {
            "location": str(self.location),
            "apps": [
                {
                    "id": usage.entry.id,
                    "name": usage.entry.name,
                    "classification": usage.entry.classification.value,
                    "size": usage.size,
                }
                for usage in self.usages
            ],
        }


def format_entry_line(usage: EntryUsage) -> str:
    """Format one report line: size, app id, name."""
    return f"{usage.size:>{SIZE_WIDTH}} {usage.entry.id:>{ID_WIDTH}} {usage.entry.name}"


class UsageReporter:
    """Measures resolved entries and prints them grouped by location."""

    def __init__(
        self,
        console: Console,
        size_probe: SizeProbe,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.console = console
        self.size_probe = size_probe
        self.logger = logger or get_logger("report")

    def measure(
        self,
        location: Path,
        entries: Sequence[ResolvedEntry],
        order: Optional[Sequence[str]] = None,
    ) -> LocationReport:
        """Probe sizes, keeping the directory listing order when given."""
        if order is not None:
            position = {app_id: idx for idx, app_id in enumerate(order)}
            entries = sorted(
                entries, key=lambda entry: position.get(entry.id, len(position))
            )

        usages: List[EntryUsage] = []
        for entry in entries:
            try:
                size = self.size_probe.size(location / entry.id)
            except SizeProbeError as exc:
                self.logger.debug("Size probe failed for %s: %s", entry.id, exc)
                size = SIZE_PLACEHOLDER
            usages.append(EntryUsage(entry=entry, size=size))
        return LocationReport(location=location, usages=usages)

    def render(self, report: LocationReport) -> None:
        """Print a location header followed by one line per app."""
        self.console.print(
            f"[bold cyan]{escape(str(report.location))}[/bold cyan]", soft_wrap=True
        )
        lines = [format_entry_line(usage) for usage in report.usages] or [NO_APPS_LINE]
        for line in lines:
            self.console.print(line, markup=False, highlight=False, soft_wrap=True)
