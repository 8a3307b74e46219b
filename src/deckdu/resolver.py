"""Resolves app ids found on disk into names.

Lookup is tiered: the override catalog first, then the synchronized catalog.
Each tier is scanned in file order and the scan stops as soon as every id has
been matched, so a small override file can spare a pass over the full catalog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from deckdu.catalog import RecordSource
from deckdu.log import get_logger

# Ids of this length are generated by Steam for non-Steam shortcuts.
SHORTCUT_ID_LENGTH = 10
UNKNOWN_NAME = "UNKNOWN"
NON_STEAM_NAME = "NON-STEAM SHORTCUT"


class Classification(str, Enum):
    """How an app id was resolved."""

    OVERRIDE = "override"
    CATALOG = "catalog"
    UNKNOWN = "unknown"
    NON_STEAM = "non_steam"


@dataclass(frozen=True)
class ResolvedEntry:
    """An app id with its display name and how it was found."""

    id: str
    name: str
    classification: Classification


class IdentifierResolver:
    """Matches app ids against the override and synchronized catalogs."""

    def __init__(
        self,
        override_source: RecordSource,
        main_source: RecordSource,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.override_source = override_source
        self.main_source = main_source
        self.logger = logger or get_logger("resolver")
        self.scans = 0

    def resolve(self, ids: Iterable[str]) -> List[ResolvedEntry]:
        """Return exactly one entry per distinct input id.

        Raises CatalogUnavailable if the synchronized catalog has to be
        scanned and cannot be opened.
        """
        resolved: List[ResolvedEntry] = []
        lookup: Dict[str, None] = {}

        for app_id in dict.fromkeys(ids):
            if len(app_id) == SHORTCUT_ID_LENGTH and app_id.isdigit():
                resolved.append(
                    ResolvedEntry(app_id, NON_STEAM_NAME, Classification.NON_STEAM)
                )
            else:
                lookup[app_id] = None

        if not lookup:
            return resolved

        self._scan(self.override_source, lookup, resolved, Classification.OVERRIDE)
        if not lookup:
            return resolved

        self._scan(self.main_source, lookup, resolved, Classification.CATALOG)

        for app_id in lookup:
            self.logger.debug("No catalog entry for app id %s", app_id)
            resolved.append(ResolvedEntry(app_id, UNKNOWN_NAME, Classification.UNKNOWN))
        return resolved

    def _scan(
        self,
        source: RecordSource,
        lookup: Dict[str, None],
        resolved: List[ResolvedEntry],
        classification: Classification,
    ) -> None:
        self.scans += 1
        records = source.records()
        try:
            for record in records:
                if record.id not in lookup:
                    continue
                del lookup[record.id]
                resolved.append(ResolvedEntry(record.id, record.name, classification))
                if not lookup:
                    break
        finally:
            # Release the file handle of a partially consumed file source.
            close = getattr(records, "close", None)
            if close is not None:
                close()
