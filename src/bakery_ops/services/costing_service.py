"""
Costing service: recipe costs, order totals and ingredient usage reports.

Ingredient unit prices are rounded up to whole currency units
(ceil(price / package_size)), and so are the amounts they are multiplied
by, matching how the bakery prices its recipes.
"""

from contextlib import nullcontext
from decimal import Decimal, ROUND_CEILING
from typing import Any, Dict, Iterable, List, Mapping

from bakery_ops.models import Ingredient, Order, Recipe
from bakery_ops.utils.constants import DEFAULT_PRODUCT_UNIT
from . import catalog_repository, order_repository
from .consumption_calculator import calculate_scale, ingredient_amount
from .database import session_scope
from .exceptions import MissingRecipe, ProductNotFound, ValidationError
from .recipe_resolver import RecipeResolver


def _scope(session):
    return nullcontext(session) if session is not None else session_scope()


def _ceil(value) -> int:
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_CEILING))


def ingredient_unit_price(ingredient: Ingredient) -> int:
    """Price of one unit of an ingredient, rounded up."""
    return _ceil(Decimal(str(ingredient.price)) / Decimal(str(ingredient.package_size)))


def recipe_cost(recipe: Recipe, ingredients: Mapping[int, Ingredient]) -> int:
    """
    Cost of one full recipe yield.

    Regular and shell ingredients both count; ingredients missing from
    `ingredients` are skipped.
    """
    total = 0
    for item in recipe.ingredients:
        ingredient = ingredients.get(item.ingredient_id)
        if ingredient is None:
            continue
        total += ingredient_unit_price(ingredient) * _ceil(item.amount)
    return total


def calculate_recipe_cost(product_id: int, *, session=None) -> Dict[str, Any]:
    """
    Cost of a product's recipe.

    Returns:
        Dict with product_id, recipe_id, yield_quantity, total_cost and
        cost_per_unit (total_cost / yield_quantity)

    Raises:
        ProductNotFound: If the product doesn't exist
        MissingRecipe: If the product has no recipe
    """
    with _scope(session) as session:
        product = catalog_repository.get_product(product_id, session=session)
        recipe = catalog_repository.get_recipe_for_product(product_id, session=session)
        if recipe is None:
            raise MissingRecipe([product_id], [product.name])
        ingredients = catalog_repository.get_ingredients_by_id(
            [item.ingredient_id for item in recipe.ingredients], session=session
        )
        total = recipe_cost(recipe, ingredients)
        return {
            "product_id": product_id,
            "recipe_id": recipe.id,
            "yield_quantity": recipe.yield_quantity,
            "total_cost": total,
            "cost_per_unit": total / recipe.yield_quantity,
        }


def calculate_sell_price(
    cost: float,
    margin_percentage: float = 30.0,
    include_tax: bool = False,
    tax_percentage: float = 10.0,
) -> float:
    """
    Selling price for a cost at a target margin: cost / (1 - margin/100).

    Raises:
        ValidationError: If the margin is not below 100 percent
    """
    if margin_percentage >= 100:
        raise ValidationError(["Margin: Must be less than 100 percent"])
    price = cost / (1 - margin_percentage / 100)
    if include_tax:
        price *= 1 + tax_percentage / 100
    return price


def calculate_order_total(order_id: int, *, session=None) -> float:
    """Sum of price * ordered quantity over the order's priced products."""
    with _scope(session) as session:
        order = order_repository.get_order(order_id, session=session)
        total = 0.0
        for item in order.products:
            if item.product is not None and item.product.price is not None:
                total += item.product.price * item.quantity
        return total


def _usage_quantity(line_item) -> int:
    return line_item.produced_quantity or line_item.quantity


def calculate_ingredient_usage(order_ids: Iterable[int], *, session=None) -> Dict[str, Any]:
    """
    Ingredient usage and cost across a set of orders.

    Each line item uses its produced quantity, or the ordered quantity when
    nothing has been produced yet. Products without a recipe are skipped
    and listed; ingredients missing from the catalog are skipped.

    Returns:
        Dict with keys:
            - "orders": List[Dict] with order_id, order_number, branch_id
            - "products": List[Dict] per line item with product_id, name,
              quantity, produced_quantity, unit, has_recipe
            - "ingredients": List[Dict] with ingredient_id, name, unit,
              amount, cost
            - "totals_by_unit": Dict unit -> total amount
            - "total_cost": int
            - "products_without_recipes": List[str] product names

    Raises:
        OrderNotFound: If an order doesn't exist
        InvalidRecipeYield: If a recipe yield is unusable
    """
    with _scope(session) as session:
        orders: List[Order] = [
            order_repository.get_order(order_id, session=session) for order_id in order_ids
        ]
        resolver = RecipeResolver(catalog_repository.list_recipes(session=session))
        catalog = {
            ingredient.id: ingredient
            for ingredient in catalog_repository.list_ingredients(session=session)
        }

        product_rows: List[Dict[str, Any]] = []
        without_recipes: List[str] = []
        usage: Dict[int, Dict[str, int]] = {}

        for order in orders:
            for item in order.products:
                product = item.product
                if product is None:
                    raise ProductNotFound(item.product_id)
                recipe = resolver(item.product_id)
                quantity = _usage_quantity(item)
                product_rows.append(
                    {
                        "order_id": order.id,
                        "product_id": product.id,
                        "name": product.name,
                        "quantity": item.quantity,
                        "produced_quantity": quantity,
                        "unit": product.unit or DEFAULT_PRODUCT_UNIT,
                        "has_recipe": recipe is not None,
                    }
                )
                if recipe is None:
                    if product.name not in without_recipes:
                        without_recipes.append(product.name)
                    continue

                calculate_scale(quantity, recipe.yield_quantity, product.id, product.name)
                for recipe_item in recipe.ingredients:
                    ingredient = catalog.get(recipe_item.ingredient_id)
                    if ingredient is None:
                        continue
                    amount = ingredient_amount(
                        recipe_item.amount, quantity, recipe.yield_quantity
                    )
                    entry = usage.setdefault(ingredient.id, {"amount": 0, "cost": 0})
                    entry["amount"] += amount
                    entry["cost"] += ingredient_unit_price(ingredient) * amount

        ingredient_rows = []
        totals_by_unit: Dict[str, int] = {}
        for ingredient_id, entry in usage.items():
            ingredient = catalog[ingredient_id]
            ingredient_rows.append(
                {
                    "ingredient_id": ingredient_id,
                    "name": ingredient.name,
                    "unit": ingredient.unit,
                    "amount": entry["amount"],
                    "cost": entry["cost"],
                }
            )
            totals_by_unit[ingredient.unit] = (
                totals_by_unit.get(ingredient.unit, 0) + entry["amount"]
            )

        return {
            "orders": [
                {
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "branch_id": order.branch_id,
                }
                for order in orders
            ],
            "products": product_rows,
            "ingredients": ingredient_rows,
            "totals_by_unit": totals_by_unit,
            "total_cost": sum(row["cost"] for row in ingredient_rows),
            "products_without_recipes": without_recipes,
        }
