# src/explore_feed/services/__init__.py
"""Business logic services for the explore feed."""
