"""Markdown reporter summarizing the packages a repository serves.

This module provides a reporter that renders the catalog as a Markdown
document using Jinja2 templates.
"""

from datetime import datetime
from importlib.resources import files
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, Template

from composer_catalog.models import Catalog
from composer_catalog.reporters.base import BaseReporter


class MarkdownReporter(BaseReporter):
    """Reporter that renders the catalog as Markdown.

    Packages are listed by name with their releases, normalized versions
    and checksums.

    Attributes:
        template: The Jinja2 template to use for rendering.
    """

    def __init__(self, template_path: Optional[Path] = None) -> None:
        """Initialize the Markdown reporter.

        Args:
            template_path: Optional path to a custom Jinja2 template.
                If not provided, uses the default bundled template.
        """
        if template_path:
            env = Environment(
                loader=FileSystemLoader(template_path.parent),
                autoescape=True,
                trim_blocks=True,
                lstrip_blocks=True,
            )
            self.template = env.get_template(template_path.name)
        else:
            self.template = self._load_default_template()

    def _load_default_template(self) -> Template:
        """Load the bundled packages.md.j2 template."""
        template_content = (
            files("composer_catalog.templates")
            .joinpath("packages.md.j2")
            .read_text(encoding="utf-8")
        )
        env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
        return env.from_string(template_content)

    def render(self, catalog: Catalog) -> str:
        """Render the catalog to Markdown.

        Args:
            catalog: The assembled catalog.

        Returns:
            Rendered Markdown document as a string.
        """
        packages = [
            (name, list(versions.values()))
            for name, versions in sorted(
                catalog.packages.items(), key=lambda item: item[0].lower()
            )
        ]
        return self.template.render(
            packages=packages,
            release_count=catalog.release_count,
            built_at=catalog.built_at,
            generated_at=datetime.now(),
        )

    @property
    def format_name(self) -> str:
        return "markdown"

    @property
    def default_extension(self) -> str:
        return ".md"
