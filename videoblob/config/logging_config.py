"""Logging setup shared by hosts that embed the gateway."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging with the project format.

    Falls back to the configured ``log_level`` when no level is given.
    Unknown level names fall back to INFO.
    """
    if level is None:
        from .settings import get_settings
        level = get_settings().log_level

    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format=LOG_FORMAT, level=numeric_level)
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(
        max(numeric_level, logging.WARNING)
    )
