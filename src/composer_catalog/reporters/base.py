"""Base interface for catalog reporters.

Reporters generate human-readable summaries (Markdown, HTML, ...) of an
assembled catalog.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from composer_catalog.models import Catalog


class BaseReporter(ABC):
    """Abstract base class for catalog reporters."""

    @abstractmethod
    def render(self, catalog: Catalog) -> str:
        """Render a catalog to formatted output.

        Args:
            catalog: The assembled catalog.

        Returns:
            Rendered output as a string.
        """
        ...

    def write(self, catalog: Catalog, output_path: Path) -> None:
        """Render and write output to a file.

        Args:
            catalog: The assembled catalog.
            output_path: Path to write the output file.
        """
        content = self.render(catalog)
        output_path.write_text(content, encoding="utf-8")

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Return the output format name, like "markdown"."""
        ...

    @property
    @abstractmethod
    def default_extension(self) -> str:
        """Return the default file extension, like ".md"."""
        ...
