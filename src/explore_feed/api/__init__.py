"""HTTP API for the explore feed service."""
