"""The packages.json endpoint.

Handles a catalog request independently of any web framework: a request
descriptor carrying the caller's authorizer goes in, a response descriptor
with status, headers and body comes out.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field

from composer_catalog.auth import VIEW_PACKAGES, Authorizer
from composer_catalog.builder import CatalogBuilder
from composer_catalog.cache import CatalogCache
from composer_catalog.exceptions import Unauthorized
from composer_catalog.models import Catalog
from composer_catalog.registry import PackageRegistry

logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = "Sorry, you are not allowed to view this resource."

NO_CACHE_HEADERS = {
    "Expires": "Wed, 11 Jan 1984 05:00:00 GMT",
    "Cache-Control": "no-cache, must-revalidate, max-age=0",
}


@dataclass(frozen=True)
class CatalogRequest:
    """A request for the catalog.

    Attributes:
        authorizer: Capability checks for the calling user.
    """

    authorizer: Authorizer


@dataclass
class CatalogResponse:
    """A complete response to send back to the client.

    Attributes:
        status: HTTP status code.
        headers: Response headers.
        body: Response body text.
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


class PackagesEndpoint:
    """Serves the Composer packages.json document.

    Attributes:
        registry: Source of packages.
        builder: Builder assembling the catalog.
        cache: Cache the catalog is served from.
        charset: Charset advertised in the Content-Type header.
    """

    def __init__(
        self,
        registry: PackageRegistry,
        builder: CatalogBuilder,
        cache: CatalogCache,
        charset: str = "UTF-8",
    ) -> None:
        self.registry = registry
        self.builder = builder
        self.cache = cache
        self.charset = charset

    async def handle(self, request: CatalogRequest) -> CatalogResponse:
        """Handle a request to the packages.json endpoint.

        Callers without the view_packages capability get a 403 before any
        catalog work happens.

        Args:
            request: The incoming request.

        Returns:
            The response to send.
        """
        try:
            request.authorizer.require(VIEW_PACKAGES)
        except Unauthorized as e:
            logger.info("Denied packages.json request: %s", e)
            return self.forbidden()

        catalog = await self.get_catalog()
        return CatalogResponse(
            status=200,
            headers={"Content-Type": f"application/json; charset={self.charset}"},
            body=json.dumps({"packages": catalog.to_dict()}),
        )

    async def get_catalog(self) -> Catalog:
        """Return the cached catalog, building it from the registry if stale."""
        return await self.cache.get_or_build(self._build)

    async def _build(self) -> Catalog:
        packages = await asyncio.to_thread(self.registry.list_packages)
        return await self.builder.build(packages)

    @staticmethod
    def forbidden() -> CatalogResponse:
        """Return the response for callers lacking access."""
        return CatalogResponse(
            status=403,
            headers={
                **NO_CACHE_HEADERS,
                "Content-Type": "text/plain; charset=utf-8",
            },
            body=FORBIDDEN_MESSAGE,
        )
