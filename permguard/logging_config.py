from __future__ import annotations

import logging

AUDIT_LOGGER_NAME = "permguard.audit"


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this repo.

    Notes:
    - Plain stdlib logging; uvicorn (or the host app) owns handlers.
    - This only sets levels for our package. Child loggers (permguard.*) inherit.
    - The audit logger stays at INFO or below so decisions are never dropped by
      a quieter application level.
    - Set ``PERMGUARD_LOG_LEVEL=DEBUG`` (or INFO/WARNING/ERROR) to control verbosity.
    """

    normalized = level.upper()
    package_logger = logging.getLogger("permguard")
    package_logger.setLevel(normalized)
    package_logger.propagate = True

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    if audit_logger.getEffectiveLevel() > logging.INFO:
        audit_logger.setLevel(logging.INFO)
