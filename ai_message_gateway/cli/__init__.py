"""Command-line interface for AI Message Gateway."""
