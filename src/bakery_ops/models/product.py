"""
Product model for items the bakery sells and produces.
"""

from sqlalchemy import CheckConstraint, Column, Float, Index, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel
from bakery_ops.utils.constants import DEFAULT_PRODUCT_UNIT


class Product(BaseModel):
    """
    Product model representing a sellable item (e.g., "Croissant").

    Attributes:
        name: Display name, used in order documents and error messages
        unit: Unit the product is ordered in (default "pcs")
        price: Optional selling price per unit
        description: Optional free text
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    unit = Column(String(50), nullable=False, default=DEFAULT_PRODUCT_UNIT)
    price = Column(Float, nullable=True)
    description = Column(Text, nullable=True)

    recipe = relationship("Recipe", back_populates="product", uselist=False)

    __table_args__ = (
        Index("idx_product_name", "name"),
        CheckConstraint("price IS NULL OR price >= 0", name="ck_product_price_non_negative"),
    )
