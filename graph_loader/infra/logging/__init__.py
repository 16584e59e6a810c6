"""Logging infrastructure.

Basic usage:
    import logging

    from graph_loader.infra.logging import set_log_context, setup_logging

    setup_logging()
    logger = logging.getLogger(__name__)

    set_log_context(session_id="abc-123")
    logger.info("Resolving query")  # Automatically includes session_id
"""

from graph_loader.infra.logging.config import configure_logging, setup_logging
from graph_loader.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from graph_loader.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "set_log_context",
    "setup_logging",
]
