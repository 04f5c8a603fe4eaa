"""Command-line interface for composer_catalog.

Provides the entry point for serving the private Composer repository and
for building, reporting on and caching its package catalog.
"""

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Annotated, Optional

import typer
from aiohttp import web
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from composer_catalog.cache import CatalogCache
from composer_catalog.config import ConfigError, Settings, load_settings
from composer_catalog.exceptions import CatalogError
from composer_catalog.models import Catalog
from composer_catalog.reporters import MarkdownReporter
from composer_catalog.server import build_cache_store, build_endpoint, create_app

app = typer.Typer(
    name="composer-catalog",
    help="Private Composer repository serving packages.json for stored releases.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger("composer_catalog")

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        envvar="COMPOSER_CATALOG_CONFIG",
        help="Path to a TOML configuration file",
        exists=True,
        readable=True,
    ),
]
ManifestOption = Annotated[
    Optional[Path],
    typer.Option(
        "--manifest",
        "-m",
        envvar="COMPOSER_CATALOG_MANIFEST",
        help="Path to the package manifest (packages.toml)",
    ),
]
StorageOption = Annotated[
    Optional[Path],
    typer.Option(
        "--storage",
        envvar="COMPOSER_CATALOG_STORAGE",
        help="Directory holding release archives",
    ),
]
CachePathOption = Annotated[
    Optional[Path],
    typer.Option(
        "--cache-path",
        envvar="COMPOSER_CATALOG_CACHE_PATH",
        help="SQLite file for the catalog cache (in-memory if omitted)",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option(
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
]


def _setup_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("composer_catalog").setLevel(level)


def _load_settings(config: Optional[Path], **overrides) -> Settings:
    """Load settings from the config file and apply CLI overrides."""
    try:
        settings = load_settings(config)
    except ConfigError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    return settings.with_overrides(**overrides)


async def _build_catalog(settings: Settings, use_cache: bool = True) -> Catalog:
    """Build the catalog described by the settings.

    Args:
        settings: Runtime settings.
        use_cache: Serve from, and populate, the configured cache.

    Returns:
        The assembled catalog.

    Raises:
        CatalogError: If the registry cannot be read.
    """
    endpoint = build_endpoint(settings)
    if use_cache:
        return await endpoint.get_catalog()

    packages = endpoint.registry.list_packages()
    return await endpoint.builder.build(packages)


def _run_build(settings: Settings, use_cache: bool) -> Catalog:
    """Build the catalog behind a progress spinner, exiting on errors."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task("Building package catalog...", total=None)
        try:
            catalog = asyncio.run(_build_catalog(settings, use_cache=use_cache))
        except (CatalogError, OSError, sqlite3.Error) as e:
            err_console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=1)
        progress.update(task, completed=True)

    return catalog


@app.command()
def serve(
    config: ConfigOption = None,
    manifest: ManifestOption = None,
    storage: StorageOption = None,
    cache_path: CachePathOption = None,
    host: Annotated[
        Optional[str],
        typer.Option("--host", envvar="COMPOSER_CATALOG_HOST", help="Bind address"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", envvar="COMPOSER_CATALOG_PORT", help="Port"),
    ] = None,
    api_key: Annotated[
        Optional[list[str]],
        typer.Option(
            "--api-key",
            envvar="COMPOSER_CATALOG_API_KEYS",
            help="API key accepted via HTTP Basic auth (repeatable)",
        ),
    ] = None,
    public: Annotated[
        Optional[bool],
        typer.Option(
            "--public/--private",
            help="Serve packages without authentication",
        ),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Serve packages.json and release archives over HTTP."""
    _setup_logging(verbose)
    settings = _load_settings(
        config,
        manifest_path=manifest,
        storage_path=storage,
        cache_path=cache_path,
        host=host,
        port=port,
        api_keys=tuple(api_key) if api_key else None,
        public=public,
    )

    if not settings.public and not settings.api_keys:
        err_console.print(
            "[yellow]Warning:[/yellow] no API keys configured, "
            "every request will be denied"
        )

    console.print(
        f"Serving [bold]{settings.route}[/bold] on "
        f"http://{settings.host}:{settings.port}"
    )
    web.run_app(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        print=None,
    )


@app.command()
def build(
    config: ConfigOption = None,
    manifest: ManifestOption = None,
    storage: StorageOption = None,
    cache_path: CachePathOption = None,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Write packages.json here instead of stdout",
        ),
    ] = None,
    use_cache: Annotated[
        bool,
        typer.Option(
            "--cache/--no-cache",
            help="Reuse and refresh the configured catalog cache",
        ),
    ] = True,
    verbose: VerboseOption = False,
) -> None:
    """Build the package catalog once and emit packages.json."""
    _setup_logging(verbose)
    settings = _load_settings(
        config,
        manifest_path=manifest,
        storage_path=storage,
        cache_path=cache_path,
    )

    catalog = _run_build(settings, use_cache)
    document = json.dumps({"packages": catalog.to_dict()}, indent=4)

    if output is None:
        typer.echo(document)
        return

    output.write_text(document + "\n", encoding="utf-8")
    console.print(
        f"[green]Generated:[/green] {output} "
        f"({len(catalog.packages)} packages, {catalog.release_count} releases)"
    )


@app.command()
def report(
    config: ConfigOption = None,
    manifest: ManifestOption = None,
    storage: StorageOption = None,
    cache_path: CachePathOption = None,
    output: Annotated[
        Path,
        typer.Option(
            "--output",
            "-o",
            help="Output file path",
        ),
    ] = Path("packages.md"),
    template: Annotated[
        Optional[Path],
        typer.Option(
            "--template",
            "-t",
            help="Custom Jinja2 template file",
            exists=True,
            readable=True,
        ),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Write a Markdown summary of the packages the repository serves."""
    _setup_logging(verbose)
    settings = _load_settings(
        config,
        manifest_path=manifest,
        storage_path=storage,
        cache_path=cache_path,
    )

    catalog = _run_build(settings, use_cache=True)

    if template:
        reporter = MarkdownReporter(template_path=template)
    else:
        reporter = MarkdownReporter()

    try:
        reporter.write(catalog, output)
    except OSError as e:
        err_console.print(f"[red]Error writing output:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]Generated:[/green] {output}")


@app.command()
def cache(
    action: Annotated[
        str,
        typer.Argument(help="Cache action: 'show' or 'clear'"),
    ],
    config: ConfigOption = None,
    cache_path: CachePathOption = None,
) -> None:
    """Manage the catalog cache.

    Actions:
        show  - Display cache location, entry count, and catalog age
        clear - Invalidate the cached catalog
    """
    settings = _load_settings(config, cache_path=cache_path)
    if settings.cache_path is None:
        err_console.print(
            "[yellow]No cache path configured; the in-memory cache "
            "lives only inside the server process[/yellow]"
        )
        raise typer.Exit(code=1)

    catalog_cache = CatalogCache(build_cache_store(settings), ttl=settings.cache_ttl)

    if action == "show":
        info = catalog_cache.store.info()
        console.print(f"[bold]Cache Location:[/bold] {info['path']}")
        console.print(f"[bold]Entries:[/bold] {info['count']}")
        console.print(f"[bold]Size:[/bold] {info['size_bytes'] / 1024:.1f} KB")

        cached = catalog_cache.peek()
        if cached is None:
            console.print("[bold]Catalog:[/bold] not cached")
        else:
            console.print(
                f"[bold]Catalog:[/bold] {len(cached.packages)} packages, "
                f"built {cached.built_at:%Y-%m-%d %H:%M:%S} UTC"
            )

    elif action == "clear":
        catalog_cache.clear()
        console.print("[green]Catalog cache cleared[/green]")

    else:
        err_console.print(f"[red]Unknown action:[/red] {action}")
        err_console.print("Valid actions: show, clear")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
