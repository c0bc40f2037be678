"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across order transitions, stock ledger
writes and stock reductions.

Usage:
    from bakery_ops.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="reduce_stock_for_order",
        outcome="success",
        order_id=12,
        ingredient_count=4,
    )
"""

import logging
from typing import Any, Optional

LOGGER_PREFIX = "bakery_ops.services"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named 'bakery_ops.services.<module>'

    Example:
        >>> get_service_logger("bakery_ops.services.stock_ledger").name
        'bakery_ops.services.stock_ledger'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The message is "<operation>: <outcome>"; the context is attached via
    'extra' so handlers can emit it as structured fields.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "complete_order", "apply_delta")
        outcome: Outcome description (e.g., "success", "missing_recipe")
        level: Log level (default: INFO)
        **context: Additional context fields (order_id, ingredient_id, error...)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)


def configure_logging(level: Optional[int] = None) -> None:
    """
    Configure root logging for command-line use.

    Args:
        level: Logging level; defaults to the configured BAKERY_OPS_LOG_LEVEL
    """
    if level is None:
        from bakery_ops.utils.config import get_config

        level = get_config().log_level

    logging.basicConfig(level=level, format=LOG_FORMAT)
