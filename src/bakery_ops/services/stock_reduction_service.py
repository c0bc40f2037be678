"""
Stock reduction service: moves ingredient stock for completed production.

Reducing stock for an order deducts every ingredient its produced
quantities consume; reverting adds the same computation back. The order's
stock state is derived from the stock ledger, which makes each operation
valid exactly once in turn:

    none/reverted --reduce--> reduced --revert--> reverted

A reduction or reversion runs in a single transaction: the state check,
every StockLevel write, every StockHistory entry and the order's
stock_reduced flag either all commit or all roll back. Version counters on
orders and stock levels turn a concurrent second attempt into
ConcurrentModification instead of a double deduction.

Reversion always uses the order's current produced quantities. If they were
edited after the reduction, the reversion returns the recomputed amounts.
"""

from contextlib import nullcontext
import logging
from typing import Any, Dict, List

from bakery_ops.models import Order, ReductionState, StockChangeType
from . import catalog_repository, order_repository, stock_ledger
from .consumption_calculator import calculate_consumption
from .database import session_scope
from .exceptions import (
    ConcurrentModification,
    InvalidOrder,
    InvalidRecipeYield,
    MissingIngredient,
    MissingProducedQuantity,
    MissingRecipe,
    PersistenceFailure,
    StockStateConflict,
)
from .logging_utils import get_service_logger, log_operation
from .recipe_resolver import RecipeResolver

logger = get_service_logger(__name__)

REDUCE = "reduce"
REVERT = "revert"

_FAILURE_OUTCOMES = (
    (StockStateConflict, "state_conflict"),
    (MissingRecipe, "missing_recipe"),
    (MissingProducedQuantity, "missing_produced_quantity"),
    (InvalidRecipeYield, "invalid_recipe_yield"),
    (MissingIngredient, "missing_ingredient"),
    (ConcurrentModification, "concurrent_modification"),
    (PersistenceFailure, "persistence_failure"),
    (InvalidOrder, "invalid_order"),
)


def _scope(session):
    return nullcontext(session) if session is not None else session_scope()


def _log_failure(operation: str, order_id: int, error: Exception) -> None:
    for error_type, outcome in _FAILURE_OUTCOMES:
        if isinstance(error, error_type):
            break
    else:
        outcome = "error"
    log_operation(
        logger,
        operation=operation,
        outcome=outcome,
        level=logging.WARNING,
        order_id=order_id,
        error=str(error),
    )


def _compute_consumption(order: Order, session) -> Dict[int, int]:
    """Consumption for the order's current produced quantities, catalog-checked."""
    resolver = RecipeResolver(catalog_repository.list_recipes(session=session))
    product_names = catalog_repository.get_product_names(
        [item.product_id for item in order.products], session=session
    )
    consumption = calculate_consumption(order.products, resolver, product_names)

    known = catalog_repository.get_ingredients_by_id(consumption.keys(), session=session)
    missing = [ingredient_id for ingredient_id in consumption if ingredient_id not in known]
    if missing:
        raise MissingIngredient(missing)
    return consumption


def _move_stock(order_id: int, operation: str, session) -> Dict[str, Any]:
    order = order_repository.get_order(order_id, session=session)
    if not order.products:
        raise InvalidOrder(order_id)

    state = stock_ledger.get_reduction_state(order_id, session=session)
    if operation == REDUCE and state == ReductionState.REDUCED:
        raise StockStateConflict(order_id, state.value, operation)
    if operation == REVERT and state != ReductionState.REDUCED:
        raise StockStateConflict(order_id, state.value, operation)

    consumption = _compute_consumption(order, session)

    if operation == REDUCE:
        change_type, sign = StockChangeType.REDUCTION, -1
    else:
        change_type, sign = StockChangeType.REVERSION, 1

    ingredients = catalog_repository.get_ingredients_by_id(consumption.keys(), session=session)
    adjustments: List[Dict[str, Any]] = []
    for ingredient_id, amount in consumption.items():
        entry = stock_ledger.apply_delta(
            ingredient_id, sign * amount, order_id, change_type, session=session
        )
        ingredient = ingredients[ingredient_id]
        adjustments.append(
            {
                "ingredient_id": ingredient_id,
                "ingredient_name": ingredient.name,
                "unit": ingredient.unit,
                "previous_quantity": entry.previous_quantity,
                "new_quantity": entry.new_quantity,
                "change_amount": entry.change_amount,
                "requested_amount": entry.requested_amount,
            }
        )

    order_repository.update_order_fields(
        order_id, {"stock_reduced": operation == REDUCE}, session=session
    )

    new_state = ReductionState.REDUCED if operation == REDUCE else ReductionState.REVERTED
    return {
        "order_id": order_id,
        "change_type": change_type.value,
        "reduction_state": new_state.value,
        "adjustments": adjustments,
    }


def _run(order_id: int, operation: str, log_name: str, session) -> Dict[str, Any]:
    try:
        with _scope(session) as session:
            result = _move_stock(order_id, operation, session)
    except Exception as e:
        _log_failure(log_name, order_id, e)
        raise

    log_operation(
        logger,
        operation=log_name,
        outcome="success",
        order_id=order_id,
        ingredient_count=len(result["adjustments"]),
    )
    return result


def reduce_stock_for_order(order_id: int, *, session=None) -> Dict[str, Any]:
    """
    Deduct the ingredients consumed by an order's produced quantities.

    Args:
        order_id: Order whose production consumed the ingredients
        session: Optional database session. When given, the caller owns the
            transaction and must roll it back on error.

    Returns:
        Dict with keys:
            - "order_id": int
            - "change_type": "reduction"
            - "reduction_state": "reduced"
            - "adjustments": List[Dict] per ingredient with ingredient_id,
              ingredient_name, unit, previous_quantity, new_quantity,
              change_amount (applied) and requested_amount

    Raises:
        OrderNotFound: If the order doesn't exist
        InvalidOrder: If the order has no line items
        StockStateConflict: If the order's stock is already reduced
        MissingRecipe: If any product has no recipe (names all of them)
        MissingProducedQuantity: If a line item's produced quantity is 0
        InvalidRecipeYield: If a recipe yield is unusable
        MissingIngredient: If a recipe names ingredients absent from the catalog
        ConcurrentModification: If the order or a stock level changed concurrently
        PersistenceFailure: If a database write fails
    """
    return _run(order_id, REDUCE, "reduce_stock_for_order", session)


def revert_stock_for_order(order_id: int, *, session=None) -> Dict[str, Any]:
    """
    Add back the ingredients an order's current produced quantities consume.

    Same contract as reduce_stock_for_order(); the order's stock must
    currently be reduced, otherwise StockStateConflict is raised. The result
    has change_type "reversion" and reduction_state "reverted".
    """
    return _run(order_id, REVERT, "revert_stock_for_order", session)


def toggle_stock_for_order(order_id: int, *, session=None) -> Dict[str, Any]:
    """Revert stock if the order is currently reduced, otherwise reduce it."""
    state = stock_ledger.get_reduction_state(order_id, session=session)
    if state == ReductionState.REDUCED:
        return revert_stock_for_order(order_id, session=session)
    return reduce_stock_for_order(order_id, session=session)
