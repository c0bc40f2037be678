"""
Ingredient model for the raw materials consumed by recipes.
"""

from sqlalchemy import CheckConstraint, Column, Float, Index, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Ingredient(BaseModel):
    """
    Ingredient catalog entry.

    Attributes:
        name: Ingredient name (e.g., "Dark Chocolate 70%")
        unit: Unit stock and recipe amounts are expressed in (e.g., "g")
        package_size: Quantity of `unit` in one purchased package
        price: Price of one package

    Relationships:
        stock_level: Current StockLevel (None until first stock write)
    """

    __tablename__ = "ingredients"

    name = Column(String(200), nullable=False)
    unit = Column(String(50), nullable=False)
    package_size = Column(Float, nullable=False, default=1.0)
    price = Column(Float, nullable=False, default=0.0)

    stock_level = relationship("StockLevel", back_populates="ingredient", uselist=False)

    __table_args__ = (
        Index("idx_ingredient_name", "name"),
        CheckConstraint("package_size > 0", name="ck_ingredient_package_size_positive"),
        CheckConstraint("price >= 0", name="ck_ingredient_price_non_negative"),
    )

    @property
    def unit_price(self) -> float:
        """Price of one `unit` of this ingredient (price / package_size)."""
        if not self.package_size:
            return 0.0
        return self.price / self.package_size
