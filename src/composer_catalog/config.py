"""Configuration for composer_catalog.

Settings come from an optional TOML file with a ``[catalog]`` table; the CLI
layers option and environment overrides on top.
"""

import tomllib
from dataclasses import dataclass, field, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from composer_catalog.exceptions import CatalogError

DEFAULT_CACHE_TTL_SECONDS = 12 * 60 * 60


class ConfigError(CatalogError):
    """Raised when the configuration file is invalid."""


@dataclass(frozen=True)
class Settings:
    """Runtime settings of the repository.

    Attributes:
        manifest_path: TOML manifest listing packages and releases.
        storage_path: Directory holding release archives.
        cache_path: SQLite cache file. None keeps the cache in memory.
        cache_ttl_seconds: Lifetime of a built catalog.
        charset: Charset advertised on the JSON response.
        vendor: Default vendor prefix of package names.
        base_url: Public base URL, used for derived download URLs.
        route: Path the catalog is served at.
        host: Interface the server binds to.
        port: Port the server listens on.
        api_keys: Keys accepted through HTTP Basic auth.
        public: Serve the catalog without authentication.
        omit_empty_packages: Leave out packages with no usable release.
    """

    manifest_path: Path = Path("packages.toml")
    storage_path: Path = Path("packages")
    cache_path: Optional[Path] = None
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    charset: str = "UTF-8"
    vendor: str = "private"
    base_url: str = "http://localhost:8080"
    route: str = "/packages.json"
    host: str = "127.0.0.1"
    port: int = 8080
    api_keys: tuple[str, ...] = field(default_factory=tuple)
    public: bool = False
    omit_empty_packages: bool = False

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)

    def with_overrides(self, **overrides: Any) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(
            self, **{k: v for k, v in overrides.items() if v is not None}
        )


_PATH_FIELDS = {"manifest_path", "storage_path", "cache_path"}


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from a TOML file.

    Relative paths in the file are resolved against the file's directory.

    Args:
        path: Configuration file. If None, defaults are returned.

    Returns:
        Loaded Settings.

    Raises:
        ConfigError: If the file is missing, not valid TOML, or has
            unknown keys.
    """
    if path is None:
        return Settings()

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    table = data.get("catalog", {})
    known = {f.name for f in fields(Settings)}
    unknown = set(table) - known
    if unknown:
        raise ConfigError(
            f"Unknown settings in {path}: {', '.join(sorted(unknown))}"
        )

    values: dict[str, Any] = {}
    for key, value in table.items():
        if key in _PATH_FIELDS:
            value = Path(value)
            if not value.is_absolute():
                value = path.parent / value
        elif key == "api_keys":
            value = tuple(value)
        values[key] = value

    return Settings(**values)
