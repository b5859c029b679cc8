"""Logging setup for the explore feed service."""

from __future__ import annotations

import logging

from explore_feed.core.settings import Settings, settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: Settings | None = None) -> None:
    """Configure root logging from settings.

    ``DEBUG`` forces debug output regardless of ``LOG_LEVEL``.
    """
    config = config or settings
    level = logging.DEBUG if config.debug else logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
