"""Configuration loading for AI Message Gateway."""
