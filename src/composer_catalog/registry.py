"""Package registries.

A registry lists the packages served by the repository and their releases.
The manifest registry reads them from a TOML file of the form::

    vendor = "acme"

    [[packages]]
    slug = "widget"
    type = "wordpress-plugin"
    author = "Acme"

    [[packages.releases]]
    version = "1.2.0"
    url = "https://cdn.test/widget-1.2.0.zip"
"""

import logging
import tomllib
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional

from composer_catalog.exceptions import RegistryError
from composer_catalog.models import Package, Release

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_URL = "{base_url}/dist/{slug}/{version}"


class PackageRegistry(ABC):
    """Abstract base class for package registries."""

    @abstractmethod
    def list_packages(self) -> Sequence[Package]:
        """Return every known package in registry order.

        Returns:
            Packages, each with its releases in creation order.

        Raises:
            RegistryError: If the registry cannot be read.
        """
        ...


class StaticRegistry(PackageRegistry):
    """Registry over a fixed, in-memory list of packages."""

    def __init__(self, packages: Sequence[Package]) -> None:
        self._packages = list(packages)

    def list_packages(self) -> Sequence[Package]:
        return list(self._packages)


class ManifestRegistry(PackageRegistry):
    """Registry that loads packages from a TOML manifest.

    The manifest is re-read on every call, so edits show up on the next
    catalog build without a restart.

    Attributes:
        manifest_path: Path to the manifest file.
        vendor: Vendor prefix for packages that do not set a full name.
        base_url: Base URL used to derive download URLs of releases
            without an explicit url.
    """

    def __init__(
        self,
        manifest_path: Path,
        vendor: str = "private",
        base_url: str = "http://localhost:8080",
    ) -> None:
        """Initialize the registry.

        Args:
            manifest_path: Path to the TOML manifest.
            vendor: Default vendor prefix for package names.
            base_url: Base URL for derived download URLs.
        """
        self.manifest_path = manifest_path
        self.vendor = vendor
        self.base_url = base_url.rstrip("/")

    def list_packages(self) -> Sequence[Package]:
        """Load all packages from the manifest.

        Returns:
            Packages in manifest order.

        Raises:
            RegistryError: If the manifest is missing, unreadable, or invalid.
        """
        if not self.manifest_path.exists():
            raise RegistryError(f"Package manifest not found: {self.manifest_path}")

        try:
            with open(self.manifest_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise RegistryError(f"Invalid TOML in {self.manifest_path}: {e}") from e
        except OSError as e:
            raise RegistryError(f"Cannot read {self.manifest_path}: {e}") from e

        vendor = data.get("vendor", self.vendor)
        packages = [
            self._parse_package(pkg, vendor) for pkg in data.get("packages", [])
        ]
        logger.debug(
            "Loaded %d packages from %s", len(packages), self.manifest_path
        )
        return packages

    def _parse_package(self, pkg: dict[str, Any], vendor: str) -> Package:
        """Build a Package from one [[packages]] table."""
        slug = pkg.get("slug")
        if not slug:
            raise RegistryError(
                f"Package missing required field 'slug' in {self.manifest_path}"
            )

        releases: list[Release] = []
        seen: set[str] = set()
        for rel in pkg.get("releases", []):
            release = self._parse_release(rel, slug)
            if release.version in seen:
                raise RegistryError(
                    f"Duplicate version {release.version} for '{slug}' "
                    f"in {self.manifest_path}"
                )
            seen.add(release.version)
            releases.append(release)

        return Package(
            name=pkg.get("name") or f"{vendor}/{slug}",
            slug=slug,
            type=pkg.get("type", "library"),
            author=pkg.get("author", ""),
            author_uri=pkg.get("author_uri", ""),
            homepage=pkg.get("homepage", ""),
            description=pkg.get("description", ""),
            releases=releases,
        )

    def _parse_release(self, rel: dict[str, Any], slug: str) -> Release:
        """Build a Release from one [[packages.releases]] table."""
        version: Optional[Any] = rel.get("version")
        if version is None or version == "":
            raise RegistryError(
                f"Release of '{slug}' missing required field 'version' "
                f"in {self.manifest_path}"
            )
        # TOML allows bare numbers; versions are always strings
        version = str(version)

        url = rel.get("url") or DEFAULT_DOWNLOAD_URL.format(
            base_url=self.base_url, slug=slug, version=version
        )
        return Release(slug=slug, version=version, download_url=url)
