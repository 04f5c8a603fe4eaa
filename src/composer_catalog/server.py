"""aiohttp server exposing the repository over HTTP.

Routes:
    GET <route> (default /packages.json): the Composer catalog.
    GET /dist/{slug}/{version}: a release archive.
"""

import logging
import sqlite3
from typing import Optional

from aiohttp import web

from composer_catalog.artifacts import (
    ArtifactStore,
    LocalArtifactStore,
    ReleaseChecksumProvider,
)
from composer_catalog.auth import (
    DOWNLOAD_PACKAGES,
    AllowAllAuthorizer,
    ApiKeyAuthorizer,
    Authorizer,
    DenyAllAuthorizer,
    parse_basic_auth,
)
from composer_catalog.builder import CatalogBuilder
from composer_catalog.cache import (
    CacheStore,
    CatalogCache,
    MemoryCacheStore,
    SqliteCacheStore,
)
from composer_catalog.config import Settings
from composer_catalog.endpoint import CatalogRequest, CatalogResponse, PackagesEndpoint
from composer_catalog.exceptions import ArtifactNotFound, RegistryError
from composer_catalog.models import Release
from composer_catalog.registry import ManifestRegistry

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
ENDPOINT_KEY = web.AppKey("endpoint", PackagesEndpoint)
ARTIFACTS_KEY = web.AppKey("artifacts", ArtifactStore)

# Slugs and versions become path components of the archive store
_SAFE_SEGMENT = r"[A-Za-z0-9][A-Za-z0-9._+-]*"


def build_cache_store(settings: Settings) -> CacheStore:
    """Return the cache store selected by the settings."""
    if settings.cache_path is not None:
        settings.cache_path.parent.mkdir(parents=True, exist_ok=True)
        return SqliteCacheStore(db_path=settings.cache_path)
    return MemoryCacheStore()


def build_endpoint(
    settings: Settings, store: Optional[ArtifactStore] = None
) -> PackagesEndpoint:
    """Wire the registry, builder and cache described by the settings.

    Args:
        settings: Runtime settings.
        store: Optional artifact store. Defaults to a LocalArtifactStore
            over settings.storage_path.

    Returns:
        A ready PackagesEndpoint.
    """
    store = store or LocalArtifactStore(settings.storage_path)
    registry = ManifestRegistry(
        settings.manifest_path,
        vendor=settings.vendor,
        base_url=settings.base_url,
    )
    builder = CatalogBuilder(
        ReleaseChecksumProvider(store),
        omit_empty_packages=settings.omit_empty_packages,
    )
    cache = CatalogCache(build_cache_store(settings), ttl=settings.cache_ttl)
    return PackagesEndpoint(registry, builder, cache, charset=settings.charset)


def authorizer_for(request: web.Request, settings: Settings) -> Authorizer:
    """Build the authorizer for the caller of a request."""
    if settings.public:
        return AllowAllAuthorizer()

    api_key = parse_basic_auth(request.headers.get("Authorization"))
    if api_key is None:
        return DenyAllAuthorizer()

    return ApiKeyAuthorizer(settings.api_keys, api_key)


def to_web_response(response: CatalogResponse) -> web.Response:
    """Convert an endpoint response into an aiohttp response."""
    return web.Response(
        status=response.status,
        headers=response.headers,
        body=response.body.encode("utf-8"),
    )


async def handle_packages(request: web.Request) -> web.Response:
    """Serve packages.json."""
    settings = request.app[SETTINGS_KEY]
    endpoint = request.app[ENDPOINT_KEY]

    try:
        response = await endpoint.handle(
            CatalogRequest(authorizer=authorizer_for(request, settings))
        )
    except (RegistryError, OSError, sqlite3.Error):
        logger.exception("Failed to serve packages.json")
        raise web.HTTPInternalServerError(text="Unable to build the package catalog.")

    return to_web_response(response)


async def handle_download(request: web.Request) -> web.StreamResponse:
    """Serve a release archive."""
    settings = request.app[SETTINGS_KEY]
    store = request.app[ARTIFACTS_KEY]

    if not authorizer_for(request, settings).can(DOWNLOAD_PACKAGES):
        return to_web_response(PackagesEndpoint.forbidden())

    release = Release(
        slug=request.match_info["slug"],
        version=request.match_info["version"],
        download_url=str(request.url),
    )
    try:
        stream = store.open(release)
    except ArtifactNotFound:
        raise web.HTTPNotFound(text="Release not found.")

    logger.debug("Serving %s", release.archive_name)
    return web.Response(
        body=stream,
        content_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{release.archive_name}"'
        },
    )


def create_app(
    settings: Settings,
    endpoint: Optional[PackagesEndpoint] = None,
    store: Optional[ArtifactStore] = None,
) -> web.Application:
    """Create the aiohttp application.

    Args:
        settings: Runtime settings.
        endpoint: Optional pre-built endpoint. Defaults to build_endpoint().
        store: Optional artifact store shared by the builder and downloads.

    Returns:
        The configured application.
    """
    store = store or LocalArtifactStore(settings.storage_path)
    app = web.Application()
    app[SETTINGS_KEY] = settings
    app[ARTIFACTS_KEY] = store
    app[ENDPOINT_KEY] = endpoint or build_endpoint(settings, store)

    app.router.add_get(settings.route, handle_packages)
    app.router.add_get(
        f"/dist/{{slug:{_SAFE_SEGMENT}}}/{{version:{_SAFE_SEGMENT}}}",
        handle_download,
    )
    return app
