"""Command-line entry points for search evaluation and setup checks."""
