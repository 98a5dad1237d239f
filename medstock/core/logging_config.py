"""
Process-wide logging setup.

Modules only ever call ``logging.getLogger(__name__)``; this installs the
single stream handler they all share.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once. Safe to call repeatedly."""
    global _configured

    root = logging.getLogger()
    root.setLevel(level.upper())

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # SQL echo is far too chatty at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
