"""
Enumerations for orders and stock tracking.

This module contains enums used across the order and stock models:
- OrderStatus: Lifecycle state of an order
- StockChangeType: Reason recorded on every stock history entry
- ReductionState: Derived stock state of an order
"""

from enum import Enum


class OrderStatus(str, Enum):
    """
    Order lifecycle status.

    Values:
        PENDING: Order placed, not yet scheduled
        PROCESSING: Production scheduled (start/end dates set)
        COMPLETED: Production finished; completed_at is set
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


class StockChangeType(str, Enum):
    """
    Classification of a stock history entry.

    Values:
        REDUCTION: Ingredients consumed by an order (requires order_id)
        REVERSION: Ingredients returned when an order's reduction is undone
            (requires order_id)
        MANUAL: Stock counted or corrected by hand
    """

    REDUCTION = "reduction"
    REVERSION = "reversion"
    MANUAL = "manual"


class ReductionState(str, Enum):
    """
    Stock reduction state of an order, derived from stock history.

    Values:
        REDUCED: Latest order entry is a reduction
        REVERTED: Latest order entry is a reversion
        NONE: No reduction or reversion has been recorded
    """

    REDUCED = "reduced"
    REVERTED = "reverted"
    NONE = "none"
