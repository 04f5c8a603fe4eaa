"""Catalog builder assembling packages.json content from the registry.

For every package with releases, each release is prepared independently:
its archive is checksummed and its version normalized. A release that fails
either step is skipped without affecting its siblings or other packages.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Optional
from urllib.parse import urlparse

from composer_catalog.artifacts import ReleaseChecksumProvider
from composer_catalog.exceptions import ArtifactNotFound, InvalidVersionFormat
from composer_catalog.models import (
    Catalog,
    CatalogEntry,
    Package,
    Release,
    ReleaseOutcome,
)
from composer_catalog.versions import VersionParser

logger = logging.getLogger(__name__)

CHECKSUM_ALGORITHM = "sha1"


def sanitize_url(url: Optional[str]) -> str:
    """Return the URL if it is an absolute http(s) URL, else an empty string.

    Args:
        url: URL to check.

    Returns:
        The stripped URL, or "" when it is empty or uses another scheme.
    """
    if not url:
        return ""

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return ""

    return url


class CatalogBuilder:
    """Builds the package catalog from registry packages.

    Attributes:
        checksums: Provider computing archive digests.
        version_parser: Parser normalizing release versions.
        omit_empty_packages: If True, packages whose releases were all
            skipped are left out of the catalog instead of being kept with
            an empty version map.
    """

    def __init__(
        self,
        checksums: ReleaseChecksumProvider,
        version_parser: Optional[VersionParser] = None,
        omit_empty_packages: bool = False,
    ) -> None:
        """Initialize the builder.

        Args:
            checksums: Provider computing archive digests.
            version_parser: Optional custom parser. Defaults to VersionParser().
            omit_empty_packages: Drop packages left without any entry.
        """
        self.checksums = checksums
        self.version_parser = version_parser or VersionParser()
        self.omit_empty_packages = omit_empty_packages

    async def build(self, packages: Sequence[Package]) -> Catalog:
        """Assemble the catalog for the given packages.

        Args:
            packages: Packages in registry order.

        Returns:
            Catalog keyed by package name, then release version.
        """
        catalog = Catalog()

        for package in packages:
            if not package.has_releases():
                continue

            outcomes = await self.prepare_package(package)
            versions = {
                outcome.release.version: outcome.entry
                for outcome in outcomes
                if outcome.entry is not None
            }

            if not versions and self.omit_empty_packages:
                logger.warning(
                    "Leaving %s out of the catalog: no usable releases",
                    package.name,
                )
                continue

            catalog.packages[package.name] = versions

        logger.info(
            "Built catalog with %d packages and %d releases",
            len(catalog.packages),
            catalog.release_count,
        )
        return catalog

    async def prepare_package(self, package: Package) -> list[ReleaseOutcome]:
        """Prepare every release of a package concurrently.

        Args:
            package: Package whose releases are prepared.

        Returns:
            One outcome per release, in release order.
        """
        tasks = [self.prepare_release(package, release) for release in package.releases]
        return list(await asyncio.gather(*tasks))

    async def prepare_release(
        self, package: Package, release: Release
    ) -> ReleaseOutcome:
        """Prepare the catalog entry for one release.

        Missing archives and unparseable versions produce a failed outcome;
        any other error propagates.

        Args:
            package: Package the release belongs to.
            release: Release to prepare.

        Returns:
            ReleaseOutcome holding either the entry or the error.
        """
        try:
            version_normalized = self.version_parser.normalize(release.version)
            shasum = await asyncio.to_thread(
                self.checksums.checksum, CHECKSUM_ALGORITHM, release
            )
        except (ArtifactNotFound, InvalidVersionFormat) as e:
            logger.warning(
                "Skipping %s %s: %s", package.name, release.version, e
            )
            return ReleaseOutcome(release=release, error=e)

        entry = CatalogEntry(
            name=package.name,
            version=release.version,
            version_normalized=version_normalized,
            dist_url=release.download_url,
            shasum=shasum,
            type=package.type,
            author=package.author,
            author_homepage=sanitize_url(package.author_uri),
            description=package.description,
            homepage=package.homepage,
        )
        return ReleaseOutcome(release=release, entry=entry)
