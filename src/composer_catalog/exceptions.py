"""Exceptions raised while assembling and serving the package catalog."""

from composer_catalog.models import Release


class CatalogError(Exception):
    """Base class for composer_catalog errors."""


class ArtifactNotFound(CatalogError):
    """Raised when a release archive is missing from the artifact store.

    Attributes:
        release: The release whose archive could not be located.
    """

    def __init__(self, release: Release) -> None:
        self.release = release
        super().__init__(
            f"Archive {release.archive_name} for {release.slug} "
            f"{release.version} not found"
        )


class InvalidVersionFormat(CatalogError, ValueError):
    """Raised when a version string cannot be normalized.

    Attributes:
        version: The offending version string.
    """

    def __init__(self, version: str, reason: str = "") -> None:
        self.version = version
        message = f"Invalid version string '{version}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class Unauthorized(CatalogError):
    """Raised when a caller lacks a required capability."""

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(f"Missing capability: {capability}")


class RegistryError(CatalogError):
    """Raised when the package registry cannot be read."""
