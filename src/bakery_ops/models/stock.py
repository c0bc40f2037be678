"""
Stock models for ingredient stock tracking.

This module contains:
- StockLevel: Current quantity per ingredient
- StockHistory: Append-only record of every stock change
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    event,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import StockChangeType
from bakery_ops.utils.datetime_utils import utc_now


class StockLevel(BaseModel):
    """
    Current stock of one ingredient.

    Created lazily on the first write for an ingredient and never deleted.
    Only the stock ledger service writes this table.

    Attributes:
        ingredient_id: Ingredient (unique, one level per ingredient)
        quantity: Current quantity in the ingredient's unit (>= 0)
        min_stock: Optional low-stock threshold
        version_id: Optimistic concurrency counter
    """

    __tablename__ = "stock_levels"

    ingredient_id = Column(
        Integer,
        ForeignKey("ingredients.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    quantity = Column(Float, nullable=False, default=0.0)
    min_stock = Column(Float, nullable=True)
    version_id = Column(Integer, nullable=False)

    ingredient = relationship("Ingredient", back_populates="stock_level")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_level_quantity_non_negative"),
        CheckConstraint(
            "min_stock IS NULL OR min_stock >= 0", name="ck_stock_level_min_stock_non_negative"
        ),
    )

    @property
    def is_low(self) -> bool:
        """True when a threshold is set and quantity is at or below it."""
        return self.min_stock is not None and self.quantity <= self.min_stock

    def __repr__(self) -> str:
        return f"StockLevel(ingredient_id={self.ingredient_id}, quantity={self.quantity})"


class StockHistory(BaseModel):
    """
    Immutable record of one stock change.

    Order-linked entries (reduction, reversion) are the system of record for
    whether an order's stock has been reduced; see
    stock_ledger.get_reduction_state().

    Note: order_id is NOT a foreign key so that history survives deletion
    of the order it refers to.

    Attributes:
        ingredient_id: Ingredient whose stock changed
        previous_quantity: Quantity before the change
        new_quantity: Quantity after the change
        change_amount: Applied signed delta (new_quantity - previous_quantity)
        requested_amount: Signed delta as requested; differs from
            change_amount when a reduction was clamped at zero
        change_type: StockChangeType
        order_id: Order that caused the change (required unless MANUAL)
        timestamp: When the change was recorded
    """

    __tablename__ = "stock_history"

    ingredient_id = Column(
        Integer, ForeignKey("ingredients.id", ondelete="RESTRICT"), nullable=False
    )
    previous_quantity = Column(Float, nullable=False)
    new_quantity = Column(Float, nullable=False)
    change_amount = Column(Float, nullable=False)
    requested_amount = Column(Float, nullable=False)
    change_type = Column(SQLEnum(StockChangeType), nullable=False)
    order_id = Column(Integer, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utc_now)

    ingredient = relationship("Ingredient")

    __table_args__ = (
        Index("idx_stock_history_ingredient", "ingredient_id"),
        Index("idx_stock_history_order", "order_id"),
        Index("idx_stock_history_timestamp", "timestamp"),
        CheckConstraint("new_quantity >= 0", name="ck_stock_history_new_non_negative"),
        CheckConstraint(
            "change_type = 'MANUAL' OR order_id IS NOT NULL",
            name="ck_stock_history_order_required",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"StockHistory(id={self.id}, ingredient_id={self.ingredient_id}, "
            f"change={self.change_amount}, type='{self.change_type.value}', "
            f"order_id={self.order_id})"
        )


class ImmutableHistoryError(Exception):
    """Raised when code attempts to modify or delete a stock history entry."""


@event.listens_for(StockHistory, "before_update")
def _refuse_history_update(mapper, connection, target):
    raise ImmutableHistoryError(f"Stock history entry {target.id} is immutable")


@event.listens_for(StockHistory, "before_delete")
def _refuse_history_delete(mapper, connection, target):
    raise ImmutableHistoryError(f"Stock history entry {target.id} cannot be deleted")
