"""Command-line interface for the agile board."""
