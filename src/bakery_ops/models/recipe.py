"""
Recipe models for product recipes.

This module contains:
- Recipe: One recipe per product, with its yield
- RecipeIngredient: Ingredient amounts per recipe yield
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Recipe(BaseModel):
    """
    Recipe model: how to produce `yield_quantity` units of a product.

    Attributes:
        product_id: Product this recipe produces (unique, one recipe per product)
        name: Recipe name
        yield_quantity: Units produced by one run of the recipe (> 0)
        yield_unit: Unit of yield (e.g., "pcs")
        notes: Additional notes

    Relationships:
        ingredients: RecipeIngredient rows, regular and shell
    """

    __tablename__ = "recipes"

    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    name = Column(String(200), nullable=False)
    yield_quantity = Column(Float, nullable=False)
    yield_unit = Column(String(50), nullable=False, default="pcs")
    notes = Column(Text, nullable=True)

    product = relationship("Product", back_populates="recipe")
    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.id",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("product_id", name="uq_recipe_product"),
        Index("idx_recipe_product", "product_id"),
        CheckConstraint("yield_quantity > 0", name="ck_recipe_yield_positive"),
    )

    @property
    def regular_ingredients(self):
        """Ingredients that are not shell ingredients."""
        return [item for item in self.ingredients if not item.is_shell]

    @property
    def shell_ingredients(self):
        """Shell ingredients (coatings, moulded shells)."""
        return [item for item in self.ingredients if item.is_shell]

    def __repr__(self) -> str:
        return f"Recipe(id={self.id}, product_id={self.product_id}, name='{self.name}')"


class RecipeIngredient(BaseModel):
    """
    Amount of one ingredient used for a recipe's full yield.

    Attributes:
        recipe_id: Owning recipe
        ingredient_id: Ingredient consumed
        amount: Quantity in the ingredient's unit per recipe yield (> 0)
        is_shell: True for shell ingredients, consumed like regular ones
    """

    __tablename__ = "recipe_ingredients"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    # Not a foreign key: an ingredient can leave the catalog while recipes
    # still name it. Stock operations report those as missing ingredients.
    ingredient_id = Column(Integer, nullable=False)
    amount = Column(Float, nullable=False)
    is_shell = Column(Boolean, nullable=False, default=False)

    recipe = relationship("Recipe", back_populates="ingredients")

    __table_args__ = (
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
        Index("idx_recipe_ingredient_ingredient", "ingredient_id"),
        CheckConstraint("amount > 0", name="ck_recipe_ingredient_amount_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"RecipeIngredient(recipe_id={self.recipe_id}, "
            f"ingredient_id={self.ingredient_id}, amount={self.amount})"
        )
