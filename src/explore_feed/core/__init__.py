"""Core configuration for the explore feed service."""
