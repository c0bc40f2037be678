"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import OrderStatus, ReductionState, StockChangeType
from .product import Product
from .ingredient import Ingredient
from .recipe import Recipe, RecipeIngredient
from .order import Order, OrderLineItem
from .stock import ImmutableHistoryError, StockHistory, StockLevel

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "OrderStatus",
    "ReductionState",
    "StockChangeType",
    # Catalog
    "Product",
    "Ingredient",
    "Recipe",
    "RecipeIngredient",
    # Orders
    "Order",
    "OrderLineItem",
    # Stock
    "StockLevel",
    "StockHistory",
    "ImmutableHistoryError",
]
