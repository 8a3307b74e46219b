"""Tests for tiered app id resolution."""

from pathlib import Path
from typing import Iterator, Sequence

import pytest

from deckdu.catalog import AppRecord, CatalogSource, MemoryCatalogSource
from deckdu.errors import CatalogUnavailable
from deckdu.resolver import (
    NON_STEAM_NAME,
    UNKNOWN_NAME,
    Classification,
    IdentifierResolver,
    ResolvedEntry,
)


class CountingSource:
    """Record source that counts how often it is scanned and read."""

    def __init__(self, records: Sequence[AppRecord] = ()) -> None:
        self._records = list(records)
        self.scans = 0
        self.reads = 0

    def records(self) -> Iterator[AppRecord]:
        self.scans += 1
        for record in self._records:
            self.reads += 1
            yield record


def _resolver(
    override: Sequence[AppRecord] = (),
    main: Sequence[AppRecord] = (),
) -> IdentifierResolver:
    return IdentifierResolver(MemoryCatalogSource(override), MemoryCatalogSource(main))


def test_resolves_from_synchronized_catalog() -> None:
    """Verify an id only in the synchronized catalog is classified catalog."""
    resolver = _resolver(main=[AppRecord("620", "Portal 2")])

    assert resolver.resolve({"620"}) == [
        ResolvedEntry("620", "Portal 2", Classification.CATALOG)
    ]


def test_override_wins_over_synchronized_catalog() -> None:
    """Verify the override catalog's name is used when both have the id."""
    resolver = _resolver(
        override=[AppRecord("620", "Portal 2 (custom)")],
        main=[AppRecord("620", "Portal 2")],
    )

    assert resolver.resolve({"620"}) == [
        ResolvedEntry("620", "Portal 2 (custom)", Classification.OVERRIDE)
    ]


def test_ten_digit_id_is_non_steam_without_scanning() -> None:
    """Verify 10-digit ids are classified by shape and no catalog is scanned."""
    override = CountingSource([AppRecord("1234567890", "Listed anyway")])
    main = CountingSource([AppRecord("1234567890", "Listed anyway")])
    resolver = IdentifierResolver(override, main)

    entries = resolver.resolve({"1234567890"})

    assert entries == [
        ResolvedEntry("1234567890", NON_STEAM_NAME, Classification.NON_STEAM)
    ]
    assert override.scans == 0
    assert main.scans == 0
    assert resolver.scans == 0


def test_ten_character_non_numeric_id_goes_through_lookup() -> None:
    """Verify only ten-digit ids skip lookup as non-Steam shortcuts."""
    resolver = _resolver(main=[AppRecord("12345abcde", "Odd Id")])

    entries = resolver.resolve(["12345abcde", "abcdefghij"])

    assert entries == [
        ResolvedEntry("12345abcde", "Odd Id", Classification.CATALOG),
        ResolvedEntry("abcdefghij", UNKNOWN_NAME, Classification.UNKNOWN),
    ]
    assert resolver.scans == 2


def test_unmatched_id_is_unknown() -> None:
    """Verify ids absent from both catalogs are classified unknown."""
    assert _resolver().resolve({"999"}) == [
        ResolvedEntry("999", UNKNOWN_NAME, Classification.UNKNOWN)
    ]


def test_override_covering_all_ids_skips_synchronized_catalog() -> None:
    """Verify the synchronized catalog is untouched when overrides suffice."""
    override = CountingSource(
        [AppRecord("1493710", "Proton Experimental"), AppRecord("228980", "Redist")]
    )
    main = CountingSource([AppRecord("620", "Portal 2")])
    resolver = IdentifierResolver(override, main)

    entries = resolver.resolve(["228980", "1493710"])

    assert {entry.classification for entry in entries} == {Classification.OVERRIDE}
    assert override.scans == 1
    assert main.scans == 0
    assert resolver.scans == 1


def test_scan_stops_once_all_ids_found() -> None:
    """Verify a scan ends at the record that resolves the last id."""
    main = CountingSource(
        [AppRecord("10", "CS"), AppRecord("20", "TFC"), AppRecord("30", "DoD")]
    )
    resolver = IdentifierResolver(MemoryCatalogSource(), main)

    resolver.resolve(["20", "10"])

    assert main.reads == 2


def test_one_entry_per_input_id() -> None:
    """Verify mixed inputs yield exactly one entry each, with no duplicates."""
    resolver = _resolver(
        override=[AppRecord("1493710", "Proton Experimental")],
        main=[AppRecord("620", "Portal 2"), AppRecord("1493710", "Proton")],
    )
    ids = ["620", "1493710", "999", "3228195162", "620"]

    entries = resolver.resolve(ids)

    assert sorted(entry.id for entry in entries) == sorted(set(ids))
    by_id = {entry.id: entry.classification for entry in entries}
    assert by_id == {
        "620": Classification.CATALOG,
        "1493710": Classification.OVERRIDE,
        "999": Classification.UNKNOWN,
        "3228195162": Classification.NON_STEAM,
    }


def test_empty_input_returns_nothing() -> None:
    """Verify no ids means no entries and no scans."""
    resolver = _resolver()

    assert resolver.resolve([]) == []
    assert resolver.scans == 0


def test_missing_synchronized_catalog_is_fatal_when_needed(tmp_path: Path) -> None:
    """Verify an unreadable synchronized catalog raises during resolution."""
    resolver = IdentifierResolver(
        CatalogSource(tmp_path / "custom", has_header=False, required=False),
        CatalogSource(tmp_path / "steam", has_header=True, required=True),
    )

    with pytest.raises(CatalogUnavailable):
        resolver.resolve(["620"])


def test_missing_override_catalog_is_not_fatal(tmp_path: Path) -> None:
    """Verify a missing override file is treated as empty."""
    catalog = tmp_path / "steam"
    catalog.write_text("1702678915\n620 Portal 2\n")
    resolver = IdentifierResolver(
        CatalogSource(tmp_path / "custom", has_header=False, required=False),
        CatalogSource(catalog, has_header=True, required=True),
    )

    assert resolver.resolve(["620"]) == [
        ResolvedEntry("620", "Portal 2", Classification.CATALOG)
    ]


def test_timestamp_line_is_never_an_app(tmp_path: Path) -> None:
    """Verify the header line cannot match an id equal to the timestamp."""
    catalog = tmp_path / "steam"
    catalog.write_text("170267891\n620 Portal 2\n")
    resolver = IdentifierResolver(
        MemoryCatalogSource(),
        CatalogSource(catalog, has_header=True, required=True),
    )

    assert resolver.resolve(["170267891"])[0].classification == Classification.UNKNOWN
