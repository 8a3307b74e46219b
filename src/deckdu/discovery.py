"""Finds the Steam data directories that hold per-app folders."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Collection, List, Optional, Protocol, Sequence

from deckdu.config import CANDIDATE_DIRS, DEFAULT_RESERVED_MOUNTS
from deckdu.errors import ListingError
from deckdu.log import get_logger

STEAMAPPS_DIR = "steamapps"


class DirLister(Protocol):
    """Filesystem queries used by discovery."""

    def list_dir(self, path: Path) -> List[str]: ...

    def is_dir(self, path: Path) -> bool: ...


class OsDirLister:
    """DirLister backed by os.scandir, returning names sorted."""

    def list_dir(self, path: Path) -> List[str]:
        with os.scandir(path) as entries:
            return sorted(entry.name for entry in entries)

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()


class LocationDiscoverer:
    """Enumerates data locations on the internal volume and mounted media."""

    def __init__(
        self,
        steam_root: Path,
        media_root: Path,
        lister: DirLister,
        *,
        reserved_mounts: Collection[str] = DEFAULT_RESERVED_MOUNTS,
        candidates: Sequence[str] = CANDIDATE_DIRS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.steam_root = steam_root
        self.media_root = media_root
        self.lister = lister
        self.reserved_mounts = set(reserved_mounts)
        self.candidates = list(candidates)
        self.logger = logger or get_logger("discovery")

    def discover(self) -> List[Path]:
        """Return existing data locations, internal volume first."""
        locations = self._candidates_under(self.steam_root)

        if not self._is_dir(self.media_root):
            self.logger.debug("No mounts root at %s", self.media_root)
            return locations

        try:
            mounts = self.lister.list_dir(self.media_root)
        except OSError as exc:
            raise ListingError(f"Failed to list {self.media_root}: {exc}") from exc

        for mount in mounts:
            if mount in self.reserved_mounts:
                self.logger.debug("Skipping reserved mount %s", mount)
                continue
            steamapps = self.media_root / mount / STEAMAPPS_DIR
            if not self._is_dir(steamapps):
                continue
            locations.extend(self._candidates_under(steamapps))
        return locations

    def list_app_ids(self, location: Path) -> List[str]:
        """Return the numeric entry names of a data location, in listing order."""
        try:
            names = self.lister.list_dir(location)
        except OSError as exc:
            raise ListingError(f"Failed to list {location}: {exc}") from exc
        return [name for name in names if name.isdigit()]

    def _candidates_under(self, steamapps: Path) -> List[Path]:
        found: List[Path] = []
        for name in self.candidates:
            candidate = steamapps / name
            if self._is_dir(candidate):
                found.append(candidate)
        return found

    def _is_dir(self, path: Path) -> bool:
        # Unsearchable paths, e.g. another user's mount, count as absent.
        try:
            return self.lister.is_dir(path)
        except OSError as exc:
            self.logger.debug("Skipping unreadable path %s: %s", path, exc)
            return False
