"""Agile board workflow engine: issues and specs as Markdown files."""

__version__ = "0.1.0"
