"""Pytest configuration and fixtures."""

import hashlib
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from composer_catalog.artifacts import LocalArtifactStore, ReleaseChecksumProvider
from composer_catalog.models import Package, Release


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def write_archive(root: Path, release: Release, content: bytes) -> str:
    """Store an archive for a release and return its SHA-1."""
    path = root / release.slug / release.archive_name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return hashlib.sha1(content).hexdigest()


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock starting at a fixed instant."""
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Return an empty archive storage directory."""
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def store(storage_dir: Path) -> LocalArtifactStore:
    """Return a LocalArtifactStore over the storage directory."""
    return LocalArtifactStore(storage_dir)


@pytest.fixture
def checksums(store: LocalArtifactStore) -> ReleaseChecksumProvider:
    """Return a checksum provider reading from the test store."""
    return ReleaseChecksumProvider(store)


@pytest.fixture
def release_120() -> Release:
    """Return the 1.2.0 release of acme/widget."""
    return Release(
        slug="widget",
        version="1.2.0",
        download_url="https://cdn.test/widget-1.2.0.zip",
    )


@pytest.fixture
def release_200() -> Release:
    """Return the 2.0.0 release of acme/widget."""
    return Release(
        slug="widget",
        version="2.0.0",
        download_url="https://cdn.test/widget-2.0.0.zip",
    )


@pytest.fixture
def widget_package(release_120: Release, release_200: Release) -> Package:
    """Return the acme/widget package with two releases."""
    return Package(
        name="acme/widget",
        slug="widget",
        type="wordpress-plugin",
        author="Acme",
        author_uri="https://acme.test",
        homepage="https://acme.test/widget",
        description="A widget.",
        releases=[release_120, release_200],
    )


@pytest.fixture
def empty_package() -> Package:
    """Return a package without releases."""
    return Package(name="acme/empty", slug="empty", author="Acme")


@pytest.fixture
def put_archive(storage_dir: Path):
    """Return a helper storing an archive for a release and returning its SHA-1."""

    def _put(release: Release, content: bytes = b"PK\x03\x04 archive") -> str:
        return write_archive(storage_dir, release, content)

    return _put
