"""
Order models for customer and branch orders.

This module contains:
- Order: An order placed by a branch, with lifecycle status
- OrderLineItem: Ordered and produced quantities for one product
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import OrderStatus


class Order(BaseModel):
    """
    Order model.

    Attributes:
        order_number: Human-readable number, BRANCHCODE-YYMMDD-SEQ
        branch_id: Branch that placed the order
        ordered_by: Person who placed the order
        order_date: When the order was placed
        delivery_date: Requested delivery date
        po_number: Optional purchase order number
        notes: Optional notes
        batch_number: Optional production batch number
        status: OrderStatus (pending, processing, completed)
        production_start_date / production_end_date: Set when scheduled
        completed_at: Set if and only if status is COMPLETED
        stock_reduced: Mirror of the ledger-derived reduction state. The
            stock history is authoritative; this flag is informational.
        version_id: Optimistic concurrency counter, bumped on every update

    Relationships:
        products: OrderLineItem rows in order, owned by the order
    """

    __tablename__ = "orders"

    order_number = Column(String(50), nullable=True, index=True)
    branch_id = Column(String(50), nullable=False)
    ordered_by = Column(String(100), nullable=False)
    order_date = Column(DateTime, nullable=False)
    delivery_date = Column(DateTime, nullable=True)
    po_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    batch_number = Column(String(100), nullable=True)

    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    production_start_date = Column(DateTime, nullable=True)
    production_end_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    stock_reduced = Column(Boolean, nullable=False, default=False)

    version_id = Column(Integer, nullable=False)

    products = relationship(
        "OrderLineItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineItem.position",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_order_branch", "branch_id"),
        Index("idx_order_status", "status"),
        Index("idx_order_order_date", "order_date"),
        Index("idx_order_completed_at", "completed_at"),
        CheckConstraint(
            "(status = 'COMPLETED' AND completed_at IS NOT NULL) "
            "OR (status != 'COMPLETED' AND completed_at IS NULL)",
            name="ck_order_completed_at_matches_status",
        ),
    )

    def line_item_for(self, product_id: int):
        """Return the line item for a product, or None."""
        for item in self.products:
            if item.product_id == product_id:
                return item
        return None

    def __repr__(self) -> str:
        status = self.status.value if self.status is not None else None
        return f"Order(id={self.id}, number='{self.order_number}', status='{status}')"

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert order to dictionary.

        Line items are always included since they are part of the order.
        """
        result = super().to_dict(include_relationships=False)
        result["products"] = [item.to_dict() for item in self.products]
        return result


class OrderLineItem(BaseModel):
    """
    One product line of an order.

    Attributes:
        order_id: Owning order
        position: Position of the line within the order
        product_id: Product ordered
        quantity: Ordered amount (> 0)
        produced_quantity: Amount actually produced (>= 0)
        stock_quantity: Amount put to stock rather than delivered (>= 0)
        reject_quantity: Amount rejected in quality control (>= 0)
        reject_notes: Optional reason for rejects
    """

    __tablename__ = "order_line_items"

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(Integer, nullable=False)
    produced_quantity = Column(Integer, nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    reject_quantity = Column(Integer, nullable=False, default=0)
    reject_notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="products")
    product = relationship("Product")

    __table_args__ = (
        Index("idx_order_line_item_order", "order_id"),
        Index("idx_order_line_item_product", "product_id"),
        UniqueConstraint("order_id", "product_id", name="uq_order_line_item_product"),
        CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),
        CheckConstraint(
            "produced_quantity >= 0", name="ck_line_item_produced_non_negative"
        ),
        CheckConstraint("stock_quantity >= 0", name="ck_line_item_stock_non_negative"),
        CheckConstraint("reject_quantity >= 0", name="ck_line_item_reject_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"OrderLineItem(order_id={self.order_id}, product_id={self.product_id}, "
            f"quantity={self.quantity}, produced={self.produced_quantity})"
        )
