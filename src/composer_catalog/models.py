"""Core data models for composer_catalog.

This module defines the package and release records read from the registry,
and the catalog records derived from them for the Composer repository
endpoint.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

# Dependency declared by every release so Composer installs it to the right place
DEFAULT_REQUIRE = {"composer/installers": "^1.0"}


@dataclass(frozen=True)
class Release:
    """Immutable record of one stored release of a package.

    Attributes:
        slug: Slug of the package the release belongs to (e.g., "widget").
        version: Version string as published (e.g., "1.2.0"), not normalized.
        download_url: URL Composer downloads the archive from.
    """

    slug: str
    version: str
    download_url: str

    @property
    def archive_name(self) -> str:
        """Return the file name of the release archive.

        Returns:
            Name like "widget-1.2.0.zip".
        """
        return f"{self.slug}-{self.version}.zip"


@dataclass
class Package:
    """A package known to the registry together with its releases.

    Attributes:
        name: Composer package name (e.g., "acme/widget").
        slug: Package slug used for storage paths (e.g., "widget").
        type: Composer package type (e.g., "wordpress-plugin", "library").
        author: Author display name.
        author_uri: Author homepage URL.
        homepage: Package homepage URL.
        description: Short package description.
        releases: Releases in creation order.
    """

    name: str
    slug: str
    type: str = "library"
    author: str = ""
    author_uri: str = ""
    homepage: str = ""
    description: str = ""
    releases: list[Release] = field(default_factory=list)

    def has_releases(self) -> bool:
        """Return True if the package has at least one release."""
        return bool(self.releases)


@dataclass(frozen=True)
class CatalogEntry:
    """Wire record for one (package, release) pair in packages.json.

    Attributes:
        name: Composer package name.
        version: Raw release version.
        version_normalized: Version in Composer's normalized form.
        dist_url: Download URL of the release archive.
        shasum: Hex-encoded SHA-1 of the release archive.
        type: Composer package type.
        author: Author display name.
        author_homepage: Sanitized author homepage URL.
        description: Package description.
        homepage: Package homepage URL.
    """

    name: str
    version: str
    version_normalized: str
    dist_url: str
    shasum: str
    type: str
    author: str
    author_homepage: str
    description: str
    homepage: str

    def to_dict(self) -> dict[str, Any]:
        """Return the entry as the mapping served to Composer."""
        return {
            "name": self.name,
            "version": self.version,
            "version_normalized": self.version_normalized,
            "dist": {
                "type": "zip",
                "url": self.dist_url,
                "shasum": self.shasum,
            },
            "require": dict(DEFAULT_REQUIRE),
            "type": self.type,
            "authors": {
                "name": self.author,
                "homepage": self.author_homepage,
            },
            "description": self.description,
            "homepage": self.homepage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogEntry":
        """Rebuild an entry from its wire mapping.

        Args:
            data: Mapping produced by to_dict().

        Returns:
            The equivalent CatalogEntry.

        Raises:
            KeyError: If a required field is missing.
        """
        return cls(
            name=data["name"],
            version=data["version"],
            version_normalized=data["version_normalized"],
            dist_url=data["dist"]["url"],
            shasum=data["dist"]["shasum"],
            type=data["type"],
            author=data["authors"]["name"],
            author_homepage=data["authors"]["homepage"],
            description=data["description"],
            homepage=data["homepage"],
        )


@dataclass(frozen=True)
class ReleaseOutcome:
    """Result of preparing a single release for the catalog.

    Exactly one of entry and error is set.

    Attributes:
        release: The release that was prepared.
        entry: The catalog entry when preparation succeeded.
        error: The error that caused the release to be skipped.
    """

    release: Release
    entry: Optional[CatalogEntry] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.entry is not None


@dataclass
class Catalog:
    """The assembled package catalog.

    Attributes:
        packages: Mapping of package name to a mapping of version to entry.
        built_at: Timestamp when the catalog was assembled.
    """

    packages: dict[str, dict[str, CatalogEntry]] = field(default_factory=dict)
    built_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def release_count(self) -> int:
        """Return the total number of entries across all packages."""
        return sum(len(versions) for versions in self.packages.values())

    def to_dict(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Return the catalog as the "packages" mapping of packages.json."""
        return {
            name: {version: entry.to_dict() for version, entry in versions.items()}
            for name, versions in self.packages.items()
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, dict[str, dict[str, Any]]],
        built_at: Optional[datetime] = None,
    ) -> "Catalog":
        """Rebuild a catalog from its "packages" mapping.

        Args:
            data: Mapping produced by to_dict().
            built_at: Original build timestamp, if known.

        Returns:
            The equivalent Catalog.
        """
        packages = {
            name: {
                version: CatalogEntry.from_dict(entry)
                for version, entry in versions.items()
            }
            for name, versions in data.items()
        }
        if built_at is None:
            return cls(packages=packages)
        return cls(packages=packages, built_at=built_at)


@dataclass
class CacheEntry:
    """A value held by a cache store.

    Attributes:
        key: Cache key.
        value: Serialized value.
        stored_at: Timestamp when the value was stored.
        expires_at: Timestamp when the value stops being valid.
    """

    key: str
    value: str
    stored_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Return True if the entry is no longer valid at the given time."""
        return now >= self.expires_at
