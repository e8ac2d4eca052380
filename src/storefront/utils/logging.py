"""Logging helpers for the Storefront domain.

The storefront runs inside whatever process embeds it, so it only quiets
chatty libraries and hands out structlog loggers. Processors and renderers
are configured by the host (see ``ordering.utils.logging.configure_logging``).
"""

import logging

import structlog

# Suppress noisy library loggers
logging.getLogger("protean").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
