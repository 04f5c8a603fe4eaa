"""Reporters rendering human-readable summaries of the catalog."""

from composer_catalog.reporters.base import BaseReporter
from composer_catalog.reporters.markdown import MarkdownReporter

__all__ = ["BaseReporter", "MarkdownReporter"]
