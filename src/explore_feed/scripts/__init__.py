"""Operational scripts for the explore feed service."""
