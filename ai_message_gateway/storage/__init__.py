"""Durable storage for AI Message Gateway."""
