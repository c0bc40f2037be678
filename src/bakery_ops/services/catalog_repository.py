"""
Catalog repository: products, ingredients, recipes and raw stock records.

This module is the persistence boundary for the catalog side of the
application. It provides:
- Product, ingredient and recipe creation and lookup
- One-recipe-per-product enforcement at write time
- Raw StockLevel reads/writes and StockHistory appends, used exclusively
  by the stock ledger service

All functions accept an optional session; when omitted they run in their
own session_scope() transaction.
"""

from contextlib import nullcontext
from typing import Any, Dict, List, Optional

from bakery_ops.models import (
    Ingredient,
    Product,
    Recipe,
    RecipeIngredient,
    StockChangeType,
    StockHistory,
    StockLevel,
)
from bakery_ops.utils.constants import DEFAULT_PRODUCT_UNIT
from bakery_ops.utils.validators import (
    validate_non_negative_number,
    validate_positive_number,
    validate_required_string,
)
from .database import session_scope
from .exceptions import (
    DuplicateRecipe,
    IngredientNotFound,
    ProductNotFound,
    ValidationError,
)


def _scope(session):
    return nullcontext(session) if session is not None else session_scope()


# =============================================================================
# Products
# =============================================================================


def create_product(data: Dict[str, Any], *, session=None) -> Product:
    """
    Create a product.

    Args:
        data: Dictionary with name (required), unit, price, description
        session: Optional database session

    Returns:
        Created Product

    Raises:
        ValidationError: If name is missing or price is negative
    """
    errors = []
    is_valid, error = validate_required_string(data.get("name"), "Name")
    if not is_valid:
        errors.append(error)
    if data.get("price") is not None:
        is_valid, error = validate_non_negative_number(data["price"], "Price")
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    with _scope(session) as session:
        product = Product(
            name=data["name"].strip(),
            unit=data.get("unit") or DEFAULT_PRODUCT_UNIT,
            price=data.get("price"),
            description=data.get("description"),
        )
        session.add(product)
        session.flush()
        return product


def get_product(product_id: int, *, session=None) -> Product:
    """
    Get a product by ID.

    Raises:
        ProductNotFound: If the product doesn't exist
    """
    with _scope(session) as session:
        product = session.get(Product, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product


def list_products(*, session=None) -> List[Product]:
    """List all products ordered by name."""
    with _scope(session) as session:
        return session.query(Product).order_by(Product.name).all()


def get_product_names(product_ids, *, session=None) -> Dict[int, str]:
    """Map product IDs to names; unknown IDs are omitted."""
    ids = list(product_ids)
    if not ids:
        return {}
    with _scope(session) as session:
        rows = session.query(Product.id, Product.name).filter(Product.id.in_(ids)).all()
        return {row.id: row.name for row in rows}


# =============================================================================
# Ingredients
# =============================================================================


def create_ingredient(data: Dict[str, Any], *, session=None) -> Ingredient:
    """
    Create an ingredient.

    Args:
        data: Dictionary with name and unit (required), package_size (> 0,
              default 1) and price (>= 0, default 0)
        session: Optional database session

    Returns:
        Created Ingredient

    Raises:
        ValidationError: If required fields are missing or numbers invalid
    """
    errors = []
    for field, label in (("name", "Name"), ("unit", "Unit")):
        is_valid, error = validate_required_string(data.get(field), label)
        if not is_valid:
            errors.append(error)
    package_size = data.get("package_size", 1.0)
    is_valid, error = validate_positive_number(package_size, "Package size")
    if not is_valid:
        errors.append(error)
    price = data.get("price", 0.0)
    is_valid, error = validate_non_negative_number(price, "Price")
    if not is_valid:
        errors.append(error)
    if errors:
        raise ValidationError(errors)

    with _scope(session) as session:
        ingredient = Ingredient(
            name=data["name"].strip(),
            unit=data["unit"].strip(),
            package_size=float(package_size),
            price=float(price),
        )
        session.add(ingredient)
        session.flush()
        return ingredient


def get_ingredient(ingredient_id: int, *, session=None) -> Ingredient:
    """
    Get an ingredient by ID.

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
    """
    with _scope(session) as session:
        ingredient = session.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise IngredientNotFound(ingredient_id)
        return ingredient


def list_ingredients(*, session=None) -> List[Ingredient]:
    """List all catalog ingredients ordered by name."""
    with _scope(session) as session:
        return session.query(Ingredient).order_by(Ingredient.name).all()


def get_ingredients_by_id(ingredient_ids, *, session=None) -> Dict[int, Ingredient]:
    """Map the given IDs to Ingredient objects; unknown IDs are omitted."""
    ids = list(ingredient_ids)
    if not ids:
        return {}
    with _scope(session) as session:
        rows = session.query(Ingredient).filter(Ingredient.id.in_(ids)).all()
        return {ingredient.id: ingredient for ingredient in rows}


# =============================================================================
# Recipes
# =============================================================================


def create_recipe(data: Dict[str, Any], *, session=None) -> Recipe:
    """
    Create the recipe for a product.

    Args:
        data: Dictionary with:
            - product_id (required)
            - name (defaults to the product name)
            - yield_quantity (> 0)
            - yield_unit (default "pcs")
            - ingredients: list of {ingredient_id, amount, is_shell}
            - notes
        session: Optional database session

    Returns:
        Created Recipe

    Raises:
        ProductNotFound: If the product doesn't exist
        DuplicateRecipe: If the product already has a recipe
        IngredientNotFound: If a referenced ingredient doesn't exist
        ValidationError: If yield or an amount is not positive
    """
    errors = []
    is_valid, error = validate_positive_number(data.get("yield_quantity"), "Yield")
    if not is_valid:
        errors.append(error)
    for item in data.get("ingredients") or []:
        is_valid, error = validate_positive_number(
            item.get("amount"), f"Amount for ingredient {item.get('ingredient_id')}"
        )
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    with _scope(session) as session:
        product = session.get(Product, data.get("product_id"))
        if product is None:
            raise ProductNotFound(data.get("product_id"))

        existing = session.query(Recipe).filter_by(product_id=product.id).first()
        if existing is not None:
            raise DuplicateRecipe(product.id, product.name)

        recipe = Recipe(
            product_id=product.id,
            name=data.get("name") or product.name,
            yield_quantity=float(data["yield_quantity"]),
            yield_unit=data.get("yield_unit") or "pcs",
            notes=data.get("notes"),
        )
        for item in data.get("ingredients") or []:
            if session.get(Ingredient, item["ingredient_id"]) is None:
                raise IngredientNotFound(item["ingredient_id"])
            recipe.ingredients.append(
                RecipeIngredient(
                    ingredient_id=item["ingredient_id"],
                    amount=float(item["amount"]),
                    is_shell=bool(item.get("is_shell", False)),
                )
            )
        session.add(recipe)
        session.flush()
        return recipe


def list_recipes(*, session=None) -> List[Recipe]:
    """List all recipes with their ingredients loaded, oldest first."""
    with _scope(session) as session:
        return session.query(Recipe).order_by(Recipe.id).all()


def get_recipe_for_product(product_id: int, *, session=None) -> Optional[Recipe]:
    """Return the product's recipe, or None."""
    with _scope(session) as session:
        return session.query(Recipe).filter_by(product_id=product_id).order_by(Recipe.id).first()


# =============================================================================
# Raw stock records (written only through the stock ledger)
# =============================================================================


def get_stock_level(ingredient_id: int, *, session=None) -> Optional[StockLevel]:
    """Return the StockLevel row for an ingredient, or None if never written."""
    with _scope(session) as session:
        return session.query(StockLevel).filter_by(ingredient_id=ingredient_id).first()


def list_stock_levels(*, session=None) -> List[StockLevel]:
    """Return every StockLevel row."""
    with _scope(session) as session:
        return session.query(StockLevel).order_by(StockLevel.ingredient_id).all()


def set_stock_level(
    ingredient_id: int,
    quantity: float,
    min_stock: Optional[float] = None,
    *,
    session=None,
) -> StockLevel:
    """
    Write an ingredient's stock quantity, creating the row on first write.

    The quantity is clamped to zero. min_stock is only changed when given.

    Returns:
        The StockLevel row
    """
    with _scope(session) as session:
        level = session.query(StockLevel).filter_by(ingredient_id=ingredient_id).first()
        if level is None:
            level = StockLevel(ingredient_id=ingredient_id, quantity=0.0)
            session.add(level)
        level.quantity = max(0.0, float(quantity))
        if min_stock is not None:
            level.min_stock = float(min_stock)
        session.flush()
        return level


def append_stock_history(
    ingredient_id: int,
    previous_quantity: float,
    new_quantity: float,
    requested_amount: float,
    change_type: StockChangeType,
    order_id: Optional[int] = None,
    *,
    session=None,
) -> StockHistory:
    """
    Append an immutable stock history entry.

    change_amount is derived as new_quantity - previous_quantity.

    Returns:
        The new StockHistory entry
    """
    with _scope(session) as session:
        entry = StockHistory(
            ingredient_id=ingredient_id,
            previous_quantity=float(previous_quantity),
            new_quantity=float(new_quantity),
            change_amount=float(new_quantity) - float(previous_quantity),
            requested_amount=float(requested_amount),
            change_type=change_type,
            order_id=order_id,
        )
        session.add(entry)
        session.flush()
        return entry
