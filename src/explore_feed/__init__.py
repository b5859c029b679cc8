"""Explore feed retrieval and engagement tracking service."""

__version__ = "0.1.0"
