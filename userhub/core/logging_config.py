"""
Logging setup.

Configures the root logger once at startup; modules log via
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging

from userhub.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if not any(getattr(h, "_userhub", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._userhub = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # SQL echo is controlled by the engine, keep the SQLAlchemy logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DEBUG else logging.WARNING
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def token_hint(token: str | None) -> str:
    """Short, log-safe prefix of a session token."""
    if not token:
        return "<none>"
    return f"{token[:8]}... (len={len(token)})"
