"""
Component logging helpers.

Every module logs through a small tuple of level functions bound to a
component name, so call sites stay short:

Usage:
    from shared.log import create_logger
    log_trace, log_debug, log_info, log_warn, log_error = create_logger("Engine")
    log_info("Drain pass finished")  # -> logger "kinex_sync.engine", INFO

The functions write to stdlib ``logging`` loggers under the ``kinex_sync``
namespace. Nothing is configured here; applications call
``shared.logging_config.configure_logging`` (or their own setup).
"""

import logging

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ROOT_LOGGER_NAME = "kinex_sync"


def get_logger(component: str = "") -> logging.Logger:
    """Return the stdlib logger used for *component*."""
    if not component:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component.lower()}")


def create_logger(component: str = ""):
    """Create log functions for a component.

    Args:
        component: Component name suffix. If provided, records go to
                   "kinex_sync.<component>", otherwise "kinex_sync".

    Returns:
        Tuple of (log_trace, log_debug, log_info, log_warn, log_error) functions.
    """
    logger = get_logger(component)

    def log_trace(msg): logger.log(TRACE, msg)
    def log_debug(msg): logger.debug(msg)
    def log_info(msg): logger.info(msg)
    def log_warn(msg): logger.warning(msg)
    def log_error(msg): logger.error(msg)

    return log_trace, log_debug, log_info, log_warn, log_error
