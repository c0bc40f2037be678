"""
Consumption calculator: ingredient usage for an order's produced quantities.

For each line item the recipe is scaled by produced_quantity / yield and
every ingredient amount is rounded UP to a whole unit, so stock is never
under-deducted. Amounts for the same ingredient are summed across line
items.

All arithmetic uses Decimal and multiplies before dividing, so an exact
integer result stays exact.

These functions are pure: no session, no clock. Identical inputs always
give identical, insertion-ordered output.
"""

from decimal import Decimal, InvalidOperation, ROUND_CEILING
from typing import Dict, Iterable, List, Mapping, Optional

from .exceptions import InvalidRecipeYield, MissingProducedQuantity, MissingRecipe
from .recipe_resolver import RecipeLookup


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def calculate_scale(
    produced_quantity: int,
    yield_quantity,
    product_id=None,
    product_name: Optional[str] = None,
) -> Decimal:
    """
    Scale factor for a recipe: produced_quantity / yield_quantity.

    Raises:
        InvalidRecipeYield: If the yield is missing, zero, negative or not
            finite, or the resulting scale is not a finite positive number
    """
    yield_value = _to_decimal(yield_quantity)
    if yield_value is None or not yield_value.is_finite() or yield_value <= 0:
        raise InvalidRecipeYield(product_id, product_name)

    scale = Decimal(produced_quantity) / yield_value
    if not scale.is_finite() or scale <= 0:
        raise InvalidRecipeYield(product_id, product_name)
    return scale


def ingredient_amount(amount, produced_quantity: int, yield_quantity) -> int:
    """
    Consumption of one recipe ingredient: ceil(amount * produced / yield).

    Example:
        >>> ingredient_amount(10, 7, 5)
        14
        >>> ingredient_amount(3, 1, 2)
        2
    """
    exact = (_to_decimal(amount) * Decimal(produced_quantity)) / _to_decimal(yield_quantity)
    return int(exact.to_integral_value(rounding=ROUND_CEILING))


def calculate_line_consumption(
    line_item,
    recipe,
    product_name: Optional[str] = None,
) -> Dict[int, int]:
    """
    Ingredient consumption for a single line item.

    Args:
        line_item: Object with product_id and produced_quantity
        recipe: The product's recipe (yield_quantity, ingredients)
        product_name: Optional display name for error messages

    Returns:
        Dict of ingredient_id -> whole-unit amount, regular and shell
        ingredients included

    Raises:
        MissingProducedQuantity: If produced_quantity is not > 0
        InvalidRecipeYield: If the recipe yield is unusable
    """
    produced = line_item.produced_quantity or 0
    if produced <= 0:
        raise MissingProducedQuantity(line_item.product_id, product_name)

    calculate_scale(produced, recipe.yield_quantity, line_item.product_id, product_name)

    consumption: Dict[int, int] = {}
    for recipe_ingredient in recipe.ingredients:
        amount = ingredient_amount(recipe_ingredient.amount, produced, recipe.yield_quantity)
        consumption[recipe_ingredient.ingredient_id] = (
            consumption.get(recipe_ingredient.ingredient_id, 0) + amount
        )
    return consumption


def find_products_without_recipe(line_items: Iterable, find_recipe: RecipeLookup) -> List[int]:
    """Product IDs (in line order, without repeats) that have no recipe."""
    missing: List[int] = []
    for item in line_items:
        if find_recipe(item.product_id) is None and item.product_id not in missing:
            missing.append(item.product_id)
    return missing


def calculate_consumption(
    line_items: Iterable,
    find_recipe: RecipeLookup,
    product_names: Optional[Mapping[int, str]] = None,
) -> Dict[int, int]:
    """
    Total ingredient consumption for a set of line items.

    Every recipe is resolved before any arithmetic happens: if any product
    lacks a recipe the whole computation fails and nothing partial is
    returned.

    Args:
        line_items: Objects with product_id and produced_quantity
        find_recipe: Callable product_id -> Recipe or None
        product_names: Optional product_id -> name map for error messages

    Returns:
        Dict of ingredient_id -> summed whole-unit amount, in first-seen order

    Raises:
        MissingRecipe: Names every product without a recipe
        MissingProducedQuantity: If a line item's produced quantity is 0
        InvalidRecipeYield: If a recipe yield is zero or not finite
    """
    items = list(line_items)
    names = product_names or {}

    missing = find_products_without_recipe(items, find_recipe)
    if missing:
        labels = [names.get(product_id) for product_id in missing]
        raise MissingRecipe(missing, labels if all(labels) else None)

    totals: Dict[int, int] = {}
    for item in items:
        recipe = find_recipe(item.product_id)
        line = calculate_line_consumption(item, recipe, names.get(item.product_id))
        for ingredient_id, amount in line.items():
            totals[ingredient_id] = totals.get(ingredient_id, 0) + amount
    return totals
