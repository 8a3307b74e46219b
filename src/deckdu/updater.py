"""Synchronizes the local catalog with the Steam app registry."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests

from deckdu.catalog import (
    AppRecord,
    CatalogFile,
    is_fresh,
    read_last_update,
    save_catalog,
)
from deckdu.errors import CacheDirError, DecodeError, FetchError, SchemaError
from deckdu.log import get_logger

REQUEST_TIMEOUT_SECONDS = 60


class Fetcher(Protocol):
    """Retrieves the body of a URL as text."""

    def fetch(self, url: str) -> str: ...


class RequestsFetcher:
    """Fetcher backed by requests."""

    def __init__(self, timeout: float = REQUEST_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    def fetch(self, url: str) -> str:
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(f"Failed to fetch {url}: {exc}") from exc
        return response.text


class CatalogUpdater:
    """Keeps the cached catalog at ``catalog_path`` fresh."""

    def __init__(
        self,
        catalog_path: Path,
        registry_url: str,
        fetcher: Fetcher,
        *,
        ttl: int,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.catalog_path = catalog_path
        self.registry_url = registry_url
        self.fetcher = fetcher
        self.ttl = ttl
        self.logger = logger or get_logger("updater")

    def needs_refresh(self, now: Optional[int] = None) -> bool:
        """Check the timestamp line against the TTL."""
        current = int(time.time()) if now is None else now
        return not is_fresh(read_last_update(self.catalog_path), self.ttl, current)

    def ensure_fresh(
        self,
        now: Optional[int] = None,
        on_stale: Optional[Callable[[], None]] = None,
    ) -> bool:
        """Refresh the catalog if stale. Returns True when a refresh ran.

        ``on_stale`` is called before fetching, so callers can tell the user
        an update is under way.
        """
        current = int(time.time()) if now is None else now
        if not self.needs_refresh(current):
            self.logger.debug("Catalog %s is up to date", self.catalog_path)
            return False
        if on_stale is not None:
            on_stale()
        self.refresh(current)
        return True

    def refresh(self, now: Optional[int] = None) -> CatalogFile:
        """Download the registry and replace the cached catalog.

        The previous catalog file stays in place unless every step up to the
        final write succeeds.
        """
        current = int(time.time()) if now is None else now
        self.logger.debug("Fetching app registry from %s", self.registry_url)
        body = self.fetcher.fetch(self.registry_url)

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise DecodeError(f"Failed to decode registry response: {exc}") from exc

        raw_apps = _extract_apps(data)
        catalog = CatalogFile(
            last_update=current,
            records=tuple(self._validate(raw_apps)),
        )
        try:
            save_catalog(self.catalog_path, catalog)
        except OSError as exc:
            raise CacheDirError(
                f"Failed to write catalog {self.catalog_path}: {exc}"
            ) from exc
        self.logger.info(
            "Catalog refreshed with %d apps at %s",
            len(catalog.records),
            self.catalog_path,
        )
        return catalog

    def _validate(self, raw_apps: List[Any]) -> List[AppRecord]:
        records: List[AppRecord] = []
        seen = set()
        for raw in raw_apps:
            if not isinstance(raw, dict) or "appid" not in raw or "name" not in raw:
                self.logger.debug("Skipping app without appid/name: %r", raw)
                continue
            if raw["appid"] is None or raw["name"] is None:
                self.logger.debug("Skipping app with null fields: %r", raw)
                continue

            app_id = str(raw["appid"]).strip()
            # Names go on a single catalog line.
            name = str(raw["name"]).replace("\r", " ").replace("\n", " ").strip()
            if not app_id or not name:
                self.logger.debug("Skipping app with empty fields: %r", raw)
                continue
            if not app_id.isdigit():
                self.logger.debug("Skipping app with non-numeric id: %r", raw)
                continue
            if app_id in seen:
                self.logger.debug("Skipping duplicate app id %s", app_id)
                continue

            seen.add(app_id)
            records.append(AppRecord(id=app_id, name=name))
        return records


def _extract_apps(data: Any) -> List[Any]:
    applist: Optional[Dict[str, Any]] = None
    if isinstance(data, dict):
        applist = data.get("applist")
    apps = applist.get("apps") if isinstance(applist, dict) else None
    if not isinstance(apps, list):
        raise SchemaError("Registry response has no applist.apps list")
    return apps
