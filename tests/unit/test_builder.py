"""Unit tests for CatalogBuilder.

Covers the per-release skip rules: packages without releases are omitted,
and a missing archive or invalid version drops only that release.
"""

import json
from unittest.mock import MagicMock

import pytest

from composer_catalog.artifacts import ReleaseChecksumProvider
from composer_catalog.builder import CatalogBuilder, sanitize_url
from composer_catalog.exceptions import ArtifactNotFound
from composer_catalog.models import Package, Release
from composer_catalog.versions import VersionParser


@pytest.fixture
def builder(checksums: ReleaseChecksumProvider) -> CatalogBuilder:
    """Return a CatalogBuilder over the test artifact store."""
    return CatalogBuilder(checksums)


class TestBuild:
    """Test catalog assembly."""

    @pytest.mark.asyncio
    async def test_single_release_scenario(
        self,
        builder: CatalogBuilder,
        put_archive,
        release_120: Release,
    ) -> None:
        """Test the acme/widget 1.2.0 example produces the expected entry."""
        package = Package(
            name="acme/widget",
            slug="widget",
            type="wordpress-plugin",
            author="Acme",
            author_uri="https://acme.test",
            homepage="https://acme.test",
            description="A widget.",
            releases=[release_120],
        )
        shasum = put_archive(release_120)

        catalog = await builder.build([package])

        assert catalog.to_dict() == {
            "acme/widget": {
                "1.2.0": {
                    "name": "acme/widget",
                    "version": "1.2.0",
                    "version_normalized": "1.2.0.0",
                    "dist": {
                        "type": "zip",
                        "url": "https://cdn.test/widget-1.2.0.zip",
                        "shasum": shasum,
                    },
                    "require": {"composer/installers": "^1.0"},
                    "type": "wordpress-plugin",
                    "authors": {"name": "Acme", "homepage": "https://acme.test"},
                    "description": "A widget.",
                    "homepage": "https://acme.test",
                }
            }
        }

    @pytest.mark.asyncio
    async def test_missing_artifact_skips_only_that_release(
        self,
        builder: CatalogBuilder,
        put_archive,
        widget_package: Package,
        release_120: Release,
    ) -> None:
        """Test a release without an archive is dropped, siblings kept."""
        put_archive(release_120)

        catalog = await builder.build([widget_package])

        assert list(catalog.packages["acme/widget"]) == ["1.2.0"]

    @pytest.mark.asyncio
    async def test_package_without_releases_is_omitted(
        self,
        builder: CatalogBuilder,
        put_archive,
        widget_package: Package,
        empty_package: Package,
        release_120: Release,
        release_200: Release,
    ) -> None:
        """Test packages with zero releases get no key at all."""
        put_archive(release_120)
        put_archive(release_200)

        catalog = await builder.build([empty_package, widget_package])

        assert "acme/empty" not in catalog.packages
        assert list(catalog.packages["acme/widget"]) == ["1.2.0", "2.0.0"]

    @pytest.mark.asyncio
    async def test_invalid_version_skips_only_that_release(
        self,
        builder: CatalogBuilder,
        put_archive,
        widget_package: Package,
        release_120: Release,
    ) -> None:
        """Test a release with an unparseable version is dropped."""
        bad = Release(slug="widget", version="banana", download_url="https://cdn.test/b.zip")
        widget_package.releases.append(bad)
        put_archive(release_120)
        put_archive(bad)

        catalog = await builder.build([widget_package])

        assert list(catalog.packages["acme/widget"]) == ["1.2.0"]

    @pytest.mark.asyncio
    async def test_all_releases_failing_keeps_empty_package(
        self,
        builder: CatalogBuilder,
        widget_package: Package,
    ) -> None:
        """Test a package whose releases all fail stays with an empty map."""
        catalog = await builder.build([widget_package])

        assert catalog.packages == {"acme/widget": {}}
        assert json.loads(json.dumps(catalog.to_dict())) == {"acme/widget": {}}

    @pytest.mark.asyncio
    async def test_omit_empty_packages(
        self,
        checksums: ReleaseChecksumProvider,
        widget_package: Package,
    ) -> None:
        """Test omit_empty_packages drops packages left without entries."""
        builder = CatalogBuilder(checksums, omit_empty_packages=True)

        catalog = await builder.build([widget_package])

        assert catalog.packages == {}

    @pytest.mark.asyncio
    async def test_build_is_idempotent(
        self,
        builder: CatalogBuilder,
        put_archive,
        widget_package: Package,
        release_120: Release,
        release_200: Release,
    ) -> None:
        """Test two builds over the same registry state are identical."""
        put_archive(release_120, b"one")
        put_archive(release_200, b"two")

        first = await builder.build([widget_package])
        second = await builder.build([widget_package])

        assert json.dumps(first.to_dict(), sort_keys=True) == json.dumps(
            second.to_dict(), sort_keys=True
        )

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(
        self, widget_package: Package
    ) -> None:
        """Test errors other than missing archives abort the build."""
        checksums = MagicMock(spec=ReleaseChecksumProvider)
        checksums.checksum.side_effect = PermissionError("denied")
        builder = CatalogBuilder(checksums)

        with pytest.raises(PermissionError):
            await builder.build([widget_package])

    @pytest.mark.asyncio
    async def test_requests_sha1(
        self, widget_package: Package, release_120: Release, release_200: Release
    ) -> None:
        """Test the builder asks the provider for sha1 digests."""
        checksums = MagicMock(spec=ReleaseChecksumProvider)
        checksums.checksum.return_value = "deadbeef"
        builder = CatalogBuilder(checksums, version_parser=VersionParser())

        catalog = await builder.build([widget_package])

        checksums.checksum.assert_any_call("sha1", release_120)
        checksums.checksum.assert_any_call("sha1", release_200)
        assert catalog.packages["acme/widget"]["2.0.0"].shasum == "deadbeef"


class TestPrepareRelease:
    """Test per-release outcomes."""

    @pytest.mark.asyncio
    async def test_failed_outcome_carries_error(
        self,
        builder: CatalogBuilder,
        widget_package: Package,
        release_200: Release,
    ) -> None:
        """Test a missing archive yields a failed outcome, not an exception."""
        outcome = await builder.prepare_release(widget_package, release_200)

        assert not outcome.ok
        assert outcome.entry is None
        assert isinstance(outcome.error, ArtifactNotFound)

    @pytest.mark.asyncio
    async def test_outcomes_follow_release_order(
        self,
        builder: CatalogBuilder,
        put_archive,
        widget_package: Package,
        release_200: Release,
    ) -> None:
        """Test prepare_package returns outcomes in release order."""
        put_archive(release_200)

        outcomes = await builder.prepare_package(widget_package)

        assert [o.release.version for o in outcomes] == ["1.2.0", "2.0.0"]
        assert [o.ok for o in outcomes] == [False, True]


class TestSanitizeUrl:
    """Test author homepage sanitizing."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://acme.test", "https://acme.test"),
            ("  http://acme.test/about ", "http://acme.test/about"),
            ("javascript:alert(1)", ""),
            ("ftp://acme.test", ""),
            ("acme.test", ""),
            ("", ""),
            (None, ""),
        ],
    )
    def test_sanitize_url(self, url, expected: str) -> None:
        """Test only absolute http(s) URLs survive."""
        assert sanitize_url(url) == expected
