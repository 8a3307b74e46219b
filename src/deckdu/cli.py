"""Command-line interface for deckdu."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.markup import escape

from deckdu.catalog import CatalogSource
from deckdu.config import (
    AnalyzerConfig,
    global_config_path,
    load_config_overrides,
    merge_overrides,
)
from deckdu.discovery import LocationDiscoverer, OsDirLister
from deckdu.errors import CacheDirError, DeckDuError
from deckdu.log import get_logger, setup_logging
from deckdu.report import (
    DuSizeProbe,
    LocationReport,
    NativeSizeProbe,
    SizeProbe,
    UsageReporter,
)
from deckdu.resolver import IdentifierResolver
from deckdu.updater import CatalogUpdater, RequestsFetcher

app = typer.Typer(help="Report per-app disk usage of Steam data on a Steam Deck.")
console = Console()
logger = get_logger("cli")
SCHEMA_VERSION = "1"


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"


@app.command()
def analyze(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Load config overrides from a TOML file.",
        rich_help_panel="Config",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging, including skipped catalog records.",
        rich_help_panel="Output",
    ),
    output: OutputFormat = typer.Option(
        OutputFormat.TABLE,
        "--output",
        case_sensitive=False,
        help="Output format: table or json.",
        rich_help_panel="Output",
    ),
) -> None:
    """Refresh the app catalog if needed, then report usage per app id."""
    setup_logging(verbose=verbose)
    effective_config = _build_effective_config(config_path=config, output=output)

    try:
        _init_cache_dir(effective_config.cache_dir)
        refreshed = _ensure_catalog(effective_config, output)
        reports = _collect_reports(effective_config, output)
    except DeckDuError as exc:
        logger.debug("Fatal %s error", exc.kind)
        _exit_with_error(str(exc), output)

    _emit_json(
        output,
        {
            "schema_version": SCHEMA_VERSION,
            "catalog_refreshed": refreshed,
            "locations": [report.to_dict() for report in reports],
        },
    )


def _build_effective_config(
    *,
    config_path: Optional[Path],
    output: OutputFormat,
) -> AnalyzerConfig:
    effective_config = AnalyzerConfig()
    config_sources = [global_config_path()]
    if config_path:
        if not config_path.exists():
            _exit_with_error(f"Config file {config_path} does not exist.", output)
        config_sources.append(config_path.resolve())

    for source in config_sources:
        if not source.exists():
            continue
        try:
            loaded = load_config_overrides(source)
        except ValueError as exc:
            _exit_with_error(str(exc), output)
        effective_config = merge_overrides(effective_config, loaded)
    return effective_config


def _init_cache_dir(cache_dir: Path) -> None:
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CacheDirError(
            f"Failed to create cache directory at {cache_dir}: {exc}"
        ) from exc


def _ensure_catalog(config: AnalyzerConfig, output: OutputFormat) -> bool:
    updater = CatalogUpdater(
        config.catalog_path,
        config.registry_url,
        RequestsFetcher(),
        ttl=config.update_interval,
    )
    if output == OutputFormat.TABLE:
        return updater.ensure_fresh(on_stale=_announce_update)
    return updater.ensure_fresh()


def _announce_update() -> None:
    rprint("[yellow]App catalog is outdated. Updating...[/yellow]")


def _collect_reports(
    config: AnalyzerConfig,
    output: OutputFormat,
) -> List[LocationReport]:
    discoverer = LocationDiscoverer(
        config.steam_root,
        config.media_root,
        OsDirLister(),
        reserved_mounts=config.reserved_mounts,
    )
    resolver = IdentifierResolver(
        CatalogSource(config.override_catalog, has_header=False, required=False),
        CatalogSource(config.catalog_path, has_header=True, required=True),
    )
    reporter = UsageReporter(console, _size_probe(config))

    locations = discoverer.discover()
    if not locations:
        if output == OutputFormat.TABLE:
            rprint("[bold yellow]No Steam data locations found.[/bold yellow]")
        return []

    reports: List[LocationReport] = []
    for location in locations:
        app_ids = discoverer.list_app_ids(location)
        entries = resolver.resolve(app_ids)
        report = reporter.measure(location, entries, order=app_ids)
        if output == OutputFormat.TABLE:
            reporter.render(report)
        reports.append(report)
    logger.debug("Resolver scanned catalogs %d times", resolver.scans)
    return reports


def _size_probe(config: AnalyzerConfig) -> SizeProbe:
    if config.size_probe == "native":
        return NativeSizeProbe()
    return DuSizeProbe()


def _emit_json(output: OutputFormat, payload: Dict[str, object]) -> None:
    if output == OutputFormat.JSON:
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))


def _exit_with_error(
    message: str,
    output: OutputFormat,
    exit_code: int = 1,
) -> None:
    if output == OutputFormat.JSON:
        typer.echo(
            json.dumps(
                {
                    "schema_version": SCHEMA_VERSION,
                    "error": message,
                    "exit_code": exit_code,
                },
                indent=2,
                sort_keys=True,
            )
        )
    else:
        console.print(
            f"[bold red]Error:[/bold red] {escape(message)}", soft_wrap=True
        )
    raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
