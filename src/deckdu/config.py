"""Configuration values and deckdu.toml loading."""

import importlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

try:
    tomllib = importlib.import_module("tomllib")
except ModuleNotFoundError:  # pragma: no cover - Python 3.10 fallback
    tomllib = importlib.import_module("tomli")
TOMLDecodeError = getattr(tomllib, "TOMLDecodeError", ValueError)

DEFAULT_UPDATE_INTERVAL = 60 * 60 * 24
DEFAULT_REGISTRY_URL = "https://api.steampowered.com/ISteamApps/GetAppList/v2/"
DEFAULT_MEDIA_ROOT = Path("/run/media")
DEFAULT_SIZE_PROBE = "du"
SIZE_PROBES: Set[str] = {"du", "native"}
CATALOG_FILE_NAME = "steam"

# Subdirectories of a steamapps tree that hold per-app folders named by app id.
CANDIDATE_DIRS: List[str] = ["shadercache", "compatdata", "downloading"]

DEFAULT_RESERVED_MOUNTS: Set[str] = {"deck"}


def default_cache_dir() -> Path:
    """Return the cache directory honoring XDG_CACHE_HOME."""
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    base = Path(xdg_cache) if xdg_cache else Path.home() / ".cache"
    return base / "deckdu"


def default_steam_root() -> Path:
    """Return the steamapps directory on the internal volume."""
    return Path.home() / ".steam" / "steam" / "steamapps"


def default_override_catalog() -> Path:
    """Return the override catalog shipped with the package."""
    return Path(__file__).resolve().parent / "data" / "custom_apps.txt"


@dataclass
class ConfigOverrides:
    """Partial config values loaded from a source."""

    cache_dir: Optional[Path] = None
    update_interval: Optional[int] = None
    registry_url: Optional[str] = None
    override_catalog: Optional[Path] = None
    steam_root: Optional[Path] = None
    media_root: Optional[Path] = None
    reserved_mounts: Optional[Set[str]] = None
    size_probe: Optional[str] = None


@dataclass
class AnalyzerConfig:
    """Effective configuration after merging all sources."""

    cache_dir: Path = field(default_factory=default_cache_dir)
    update_interval: int = DEFAULT_UPDATE_INTERVAL
    registry_url: str = DEFAULT_REGISTRY_URL
    override_catalog: Path = field(default_factory=default_override_catalog)
    steam_root: Path = field(default_factory=default_steam_root)
    media_root: Path = DEFAULT_MEDIA_ROOT
    reserved_mounts: Set[str] = field(
        default_factory=lambda: set(DEFAULT_RESERVED_MOUNTS)
    )
    size_probe: str = DEFAULT_SIZE_PROBE

    @property
    def catalog_path(self) -> Path:
        """Location of the synchronized catalog file."""
        return self.cache_dir / CATALOG_FILE_NAME


def global_config_path() -> Path:
    """Return global config path."""
    return Path.home() / ".config" / "deckdu" / "deckdu.toml"


def load_config_overrides(config_path: Path) -> ConfigOverrides:
    """Load config overrides from a TOML file."""
    try:
        data = tomllib.loads(config_path.read_text())
    except TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {config_path}: {exc}") from exc
    except OSError as exc:
        raise ValueError(f"Cannot read config {config_path}: {exc}") from exc

    source = data.get("deckdu", data)
    if not isinstance(source, dict):
        raise ValueError(f"Config root must be a table in {config_path}")
    return _parse_config_source(config_path, source)


def merge_overrides(
    base: AnalyzerConfig,
    overrides: ConfigOverrides,
) -> AnalyzerConfig:
    """Merge config overrides into the current effective config."""
    if overrides.cache_dir is not None:
        base.cache_dir = overrides.cache_dir
    if overrides.update_interval is not None:
        base.update_interval = overrides.update_interval
    if overrides.registry_url is not None:
        base.registry_url = overrides.registry_url
    if overrides.override_catalog is not None:
        base.override_catalog = overrides.override_catalog
    if overrides.steam_root is not None:
        base.steam_root = overrides.steam_root
    if overrides.media_root is not None:
        base.media_root = overrides.media_root
    if overrides.reserved_mounts is not None:
        base.reserved_mounts = set(overrides.reserved_mounts)
    if overrides.size_probe is not None:
        base.size_probe = overrides.size_probe
    return base


def _parse_config_source(config_path: Path, source: Dict[str, Any]) -> ConfigOverrides:
    overrides = ConfigOverrides()
    overrides.cache_dir = _coerce_path(config_path, source, "cache_dir")
    overrides.override_catalog = _coerce_path(config_path, source, "override_catalog")
    overrides.steam_root = _coerce_path(config_path, source, "steam_root")
    overrides.media_root = _coerce_path(config_path, source, "media_root")

    if "update_interval" in source:
        raw = source["update_interval"]
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            raise ValueError(
                f"update_interval must be an integer >= 0 in {config_path}"
            )
        overrides.update_interval = raw

    if "registry_url" in source:
        raw = source["registry_url"]
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError(f"registry_url must be a non-empty string in {config_path}")
        overrides.registry_url = raw.strip()

    if "reserved_mounts" in source:
        raw = source["reserved_mounts"]
        if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
            raise ValueError(f"reserved_mounts must be an array of strings in {config_path}")
        overrides.reserved_mounts = set(raw)

    if "size_probe" in source:
        raw = source["size_probe"]
        if raw not in SIZE_PROBES:
            raise ValueError(
                f"size_probe must be one of {sorted(SIZE_PROBES)} in {config_path}"
            )
        overrides.size_probe = raw

    return overrides


def _coerce_path(
    config_path: Path,
    source: Dict[str, Any],
    key: str,
) -> Optional[Path]:
    raw = source.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw:
        raise ValueError(f"{key} must be a path string in {config_path}")
    # Relative paths are resolved against the config file's directory.
    return (config_path.parent / Path(raw).expanduser()).resolve()
