import json

import pytest
from typer.testing import CliRunner

from composer_catalog.cli import app

runner = CliRunner()

MANIFEST = """
vendor = "acme"

[[packages]]
slug = "widget"
description = "A widget."

[[packages.releases]]
version = "1.2.0"
url = "https://cdn.test/widget-1.2.0.zip"
"""


@pytest.fixture
def repo_args(tmp_path):
    """Write a manifest and one archive, returning the matching CLI options."""
    manifest = tmp_path / "packages.toml"
    manifest.write_text(MANIFEST)

    storage = tmp_path / "archives"
    archive = storage / "widget" / "widget-1.2.0.zip"
    archive.parent.mkdir(parents=True)
    archive.write_bytes(b"PK\x03\x04 widget")

    return ["--manifest", str(manifest), "--storage", str(storage)]


def test_build_to_stdout(repo_args):
    """Test the build command prints packages.json."""
    result = runner.invoke(app, ["build", *repo_args, "--no-cache"])

    assert result.exit_code == 0
    packages = json.loads(result.stdout)["packages"]
    entry = packages["acme/widget"]["1.2.0"]
    assert entry["version_normalized"] == "1.2.0.0"
    assert entry["dist"]["url"] == "https://cdn.test/widget-1.2.0.zip"
    assert entry["description"] == "A widget."


def test_build_to_file(tmp_path, repo_args):
    """Test the build command writes packages.json to --output."""
    output_file = tmp_path / "packages.json"

    result = runner.invoke(app, ["build", *repo_args, "--output", str(output_file)])

    assert result.exit_code == 0
    assert "Generated:" in result.stdout
    assert list(json.loads(output_file.read_text())["packages"]) == ["acme/widget"]


def test_build_with_missing_manifest(tmp_path):
    """Test an unreadable manifest exits with an error."""
    result = runner.invoke(
        app, ["build", "--manifest", str(tmp_path / "missing.toml"), "--no-cache"]
    )

    assert result.exit_code == 1
    assert "not found" in result.output


def test_build_with_unreadable_archive(mocker, repo_args):
    """Test I/O errors during the build are reported instead of a traceback."""
    mocker.patch(
        "composer_catalog.cli._build_catalog",
        side_effect=PermissionError("Permission denied"),
    )

    result = runner.invoke(app, ["build", *repo_args, "--no-cache"])

    assert result.exit_code == 1
    assert "Permission denied" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_invalid_config(tmp_path, repo_args):
    """Test a malformed config file exits with an error."""
    config = tmp_path / "catalog.toml"
    config.write_text("[catalog\n")

    result = runner.invoke(app, ["build", "--config", str(config), *repo_args])

    assert result.exit_code == 1
    assert "Invalid TOML" in result.output


def test_report_command(tmp_path, repo_args):
    """Test the report command writes a Markdown summary."""
    output_file = tmp_path / "packages.md"

    result = runner.invoke(app, ["report", *repo_args, "--output", str(output_file)])

    assert result.exit_code == 0
    assert "Generated:" in result.stdout
    content = output_file.read_text()
    assert "## acme/widget" in content
    assert "A widget." in content


def test_cache_show_and_clear(tmp_path, repo_args):
    """Test the cache command inspects and clears a persistent cache."""
    cache_args = ["--cache-path", str(tmp_path / "cache" / "catalog.db")]

    build = runner.invoke(app, ["build", *repo_args, *cache_args])
    assert build.exit_code == 0

    shown = runner.invoke(app, ["cache", "show", *cache_args])
    assert shown.exit_code == 0
    assert "Entries: 1" in shown.stdout
    assert "Catalog: 1 packages" in shown.stdout

    cleared = runner.invoke(app, ["cache", "clear", *cache_args])
    assert cleared.exit_code == 0
    assert "Catalog cache cleared" in cleared.stdout

    shown = runner.invoke(app, ["cache", "show", *cache_args])
    assert "Catalog: not cached" in shown.stdout


def test_cache_without_path():
    """Test the cache command needs a persistent cache path."""
    result = runner.invoke(app, ["cache", "show"])

    assert result.exit_code == 1
    assert "No cache path configured" in result.output


def test_cache_unknown_action(tmp_path):
    result = runner.invoke(
        app, ["cache", "purge", "--cache-path", str(tmp_path / "catalog.db")]
    )

    assert result.exit_code == 1
    assert "Unknown action" in result.output


def test_serve_command(mocker, repo_args):
    """Test the serve command starts the aiohttp application."""
    run_app = mocker.patch("composer_catalog.cli.web.run_app")

    result = runner.invoke(
        app, ["serve", *repo_args, "--port", "9001", "--api-key", "secret"]
    )

    assert result.exit_code == 0
    run_app.assert_called_once()
    assert run_app.call_args.kwargs["port"] == 9001
    assert "Warning" not in result.output


def test_serve_warns_without_keys(mocker, repo_args):
    """Test a private server without API keys warns that it denies everyone."""
    mocker.patch("composer_catalog.cli.web.run_app")

    result = runner.invoke(app, ["serve", *repo_args])

    assert result.exit_code == 0
    assert "no API keys configured" in result.output
