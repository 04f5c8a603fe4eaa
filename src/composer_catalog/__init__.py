"""Composer Catalog - Private Composer repository endpoint.

This package assembles the packages.json catalog for stored package releases
and serves it, cached and access-controlled, to Composer clients.
"""

__version__ = "0.1.0"

from composer_catalog.models import (
    CacheEntry,
    Catalog,
    CatalogEntry,
    Package,
    Release,
    ReleaseOutcome,
)

__all__ = [
    "__version__",
    "CacheEntry",
    "Catalog",
    "CatalogEntry",
    "Package",
    "Release",
    "ReleaseOutcome",
]
