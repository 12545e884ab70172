"""Process-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; this only installs the
root handler and level once per process (API server or Celery worker).
"""

import logging

from casual_lease.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    # Only add a handler if nothing else (uvicorn, celery, pytest) installed one
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
