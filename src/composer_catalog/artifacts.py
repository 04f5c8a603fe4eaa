"""Release archive storage and checksums.

Artifact stores give byte-stream access to release archives. The checksum
provider hashes those streams for the catalog's dist blocks.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO

from composer_catalog.exceptions import ArtifactNotFound
from composer_catalog.models import Release

logger = logging.getLogger(__name__)

# Read archives in 64 KiB chunks so large files are never fully buffered
CHUNK_SIZE = 64 * 1024


class ArtifactStore(ABC):
    """Abstract base class for release archive storage."""

    @abstractmethod
    def exists(self, release: Release) -> bool:
        """Check whether the archive for a release is stored.

        Args:
            release: Release to look up.

        Returns:
            True if the archive is present, False otherwise.
        """
        ...

    @abstractmethod
    def open(self, release: Release) -> BinaryIO:
        """Open the archive for a release for binary reading.

        Args:
            release: Release to open.

        Returns:
            Readable binary stream. The caller closes it.

        Raises:
            ArtifactNotFound: If the archive is not stored.
        """
        ...


class LocalArtifactStore(ArtifactStore):
    """Artifact store backed by a local directory.

    Archives live at ``<root>/<slug>/<slug>-<version>.zip``.

    Attributes:
        root: Directory holding one sub-directory per package slug.
    """

    def __init__(self, root: Path) -> None:
        """Initialize the store.

        Args:
            root: Base directory of the archive tree.
        """
        self.root = root

    def path_for(self, release: Release) -> Path:
        """Return the path where a release archive is expected."""
        return self.root / release.slug / release.archive_name

    def exists(self, release: Release) -> bool:
        return self.path_for(release).is_file()

    def open(self, release: Release) -> BinaryIO:
        path = self.path_for(release)
        try:
            return open(path, "rb")
        except FileNotFoundError as e:
            raise ArtifactNotFound(release) from e


class ReleaseChecksumProvider:
    """Computes hex digests of release archives.

    Archives are streamed from the artifact store in fixed-size chunks.

    Attributes:
        store: Artifact store the archives are read from.
    """

    def __init__(self, store: ArtifactStore) -> None:
        """Initialize the provider.

        Args:
            store: Artifact store holding the release archives.
        """
        self.store = store

    def checksum(self, algorithm: str, release: Release) -> str:
        """Compute the digest of a release archive.

        Args:
            algorithm: hashlib algorithm name (e.g., "sha1", "sha256").
            release: Release whose archive is hashed.

        Returns:
            Hex-encoded digest.

        Raises:
            ValueError: If the algorithm is not supported.
            ArtifactNotFound: If the archive is not stored.
        """
        try:
            digest = hashlib.new(algorithm)
        except ValueError as e:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}") from e

        if not self.store.exists(release):
            raise ArtifactNotFound(release)

        with self.store.open(release) as stream:
            while chunk := stream.read(CHUNK_SIZE):
                digest.update(chunk)

        logger.debug(
            "Computed %s for %s %s", algorithm, release.slug, release.version
        )
        return digest.hexdigest()
