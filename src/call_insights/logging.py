from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_LEVEL_ENV = "CALL_INSIGHTS_LOG_LEVEL"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging; an explicit level beats CALL_INSIGHTS_LOG_LEVEL."""
    resolved = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
