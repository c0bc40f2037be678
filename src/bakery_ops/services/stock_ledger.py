"""
Stock ledger: the only writer of ingredient stock levels.

Every change goes through a signed delta that updates the StockLevel and
appends a StockHistory entry in the same transaction. The history is the
system of record for an order's stock state: get_reduction_state() replays
the order's reduction/reversion entries and the latest one wins.

This module provides:
- apply_delta(): signed stock change with history entry
- get_reduction_state() / project_reduction_state(): derived order state
- Manual stock counts, minimum-stock thresholds and low-stock reporting
- Filtered stock history queries
"""

from contextlib import nullcontext
from datetime import datetime
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from bakery_ops.models import (
    Ingredient,
    ReductionState,
    StockChangeType,
    StockHistory,
    StockLevel,
)
from bakery_ops.utils.datetime_utils import as_utc, parse_date
from bakery_ops.utils.validators import validate_non_negative_number
from . import catalog_repository
from .database import session_scope
from .exceptions import (
    ConcurrentModification,
    IngredientNotFound,
    PersistenceFailure,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

ORDER_CHANGE_TYPES = (StockChangeType.REDUCTION, StockChangeType.REVERSION)


def _scope(session):
    return nullcontext(session) if session is not None else session_scope()


# =============================================================================
# Deltas
# =============================================================================


def apply_delta(
    ingredient_id: int,
    signed_amount: float,
    order_id: Optional[int],
    change_type: StockChangeType,
    *,
    session=None,
) -> StockHistory:
    """
    Apply a signed stock change and record it.

    new_quantity = max(0, current + signed_amount). A reduction larger than
    the stock on hand is clamped at zero; the history entry then records the
    applied change (new - previous) in change_amount and the original
    request in requested_amount. Increases are never capped.

    Args:
        ingredient_id: Ingredient whose stock changes
        signed_amount: Negative to deduct, positive to add back
        order_id: Order causing the change (required for reduction/reversion)
        change_type: StockChangeType of the entry
        session: Optional database session; the level write and history
            append share its transaction

    Returns:
        The appended StockHistory entry

    Raises:
        ValidationError: If an order-linked change has no order_id
        IngredientNotFound: If the ingredient is not in the catalog
        ConcurrentModification: If the stock level changed concurrently
        PersistenceFailure: If the database write fails
    """
    change_type = StockChangeType(change_type)
    if change_type in ORDER_CHANGE_TYPES and order_id is None:
        raise ValidationError([f"Order is required for a stock {change_type.value}"])

    with _scope(session) as session:
        ingredient = session.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise IngredientNotFound(ingredient_id)
        ingredient_name = ingredient.name

        try:
            level = catalog_repository.get_stock_level(ingredient_id, session=session)
            previous = level.quantity if level is not None else 0.0
            new_quantity = max(0.0, previous + float(signed_amount))

            catalog_repository.set_stock_level(ingredient_id, new_quantity, session=session)
            entry = catalog_repository.append_stock_history(
                ingredient_id,
                previous_quantity=previous,
                new_quantity=new_quantity,
                requested_amount=signed_amount,
                change_type=change_type,
                order_id=order_id,
                session=session,
            )
        except StaleDataError as e:
            log_operation(
                logger,
                operation="apply_delta",
                outcome="concurrent_modification",
                level=logging.WARNING,
                ingredient_id=ingredient_id,
                order_id=order_id,
            )
            raise ConcurrentModification("Stock level", ingredient_id) from e
        except SQLAlchemyError as e:
            log_operation(
                logger,
                operation="apply_delta",
                outcome="error",
                level=logging.ERROR,
                ingredient_id=ingredient_id,
                order_id=order_id,
                error=str(e),
            )
            raise PersistenceFailure(f"failed to update stock for {ingredient_name}", e) from e

        log_operation(
            logger,
            operation="apply_delta",
            outcome="success",
            ingredient_id=ingredient_id,
            order_id=order_id,
            change_type=change_type.value,
            previous_quantity=previous,
            new_quantity=new_quantity,
            requested_amount=signed_amount,
        )
        return entry


# =============================================================================
# Derived order state
# =============================================================================


def _history_sort_key(entry: StockHistory):
    return (as_utc(entry.timestamp) or datetime.min, entry.id or 0)


def project_reduction_state(entries: Iterable[StockHistory]) -> ReductionState:
    """
    Fold an order's history entries into its reduction state.

    Entries are ordered by (timestamp, id); the latest reduction or
    reversion decides. Manual entries are ignored.

    Returns:
        ReductionState.REDUCED, REVERTED, or NONE when nothing was recorded
    """
    state = ReductionState.NONE
    for entry in sorted(entries, key=_history_sort_key):
        if entry.change_type == StockChangeType.REDUCTION:
            state = ReductionState.REDUCED
        elif entry.change_type == StockChangeType.REVERSION:
            state = ReductionState.REVERTED
    return state


def get_order_history(order_id: int, *, session=None) -> List[StockHistory]:
    """Reduction and reversion entries for an order, oldest first."""
    with _scope(session) as session:
        return (
            session.query(StockHistory)
            .filter(StockHistory.order_id == order_id)
            .filter(StockHistory.change_type.in_(ORDER_CHANGE_TYPES))
            .order_by(StockHistory.timestamp, StockHistory.id)
            .all()
        )


def get_reduction_state(order_id: int, *, session=None) -> ReductionState:
    """
    Derived stock state of an order.

    This is the single source of truth for whether "reduce" or "revert" is
    the next valid stock operation for the order.
    """
    return project_reduction_state(get_order_history(order_id, session=session))


# =============================================================================
# Manual stock management
# =============================================================================


def _level_to_dict(ingredient: Ingredient, level: Optional[StockLevel]) -> Dict[str, Any]:
    quantity = level.quantity if level is not None else 0.0
    min_stock = level.min_stock if level is not None else None
    return {
        "ingredient_id": ingredient.id,
        "ingredient_name": ingredient.name,
        "unit": ingredient.unit,
        "quantity": quantity,
        "min_stock": min_stock,
        "is_low": min_stock is not None and quantity <= min_stock,
    }


def set_stock_quantity(
    ingredient_id: int,
    quantity: float,
    min_stock: Optional[float] = None,
    *,
    session=None,
) -> Dict[str, Any]:
    """
    Set an ingredient's counted stock (manual update).

    A quantity change is recorded as a MANUAL history entry. min_stock is
    only changed when given.

    Returns:
        Stock level dict (see get_stock_level)

    Raises:
        ValidationError: If quantity or min_stock is negative or not a number
        IngredientNotFound: If the ingredient doesn't exist
    """
    errors = []
    is_valid, error = validate_non_negative_number(quantity, "Quantity")
    if not is_valid:
        errors.append(error)
    if min_stock is not None:
        is_valid, error = validate_non_negative_number(min_stock, "Minimum stock")
        if not is_valid:
            errors.append(error)
    if errors:
        raise ValidationError(errors)

    with _scope(session) as session:
        ingredient = session.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise IngredientNotFound(ingredient_id)

        level = catalog_repository.get_stock_level(ingredient_id, session=session)
        previous = level.quantity if level is not None else 0.0
        delta = float(quantity) - previous
        if delta != 0 or level is None:
            apply_delta(ingredient_id, delta, None, StockChangeType.MANUAL, session=session)
        if min_stock is not None:
            catalog_repository.set_stock_level(
                ingredient_id, float(quantity), min_stock=min_stock, session=session
            )

        level = catalog_repository.get_stock_level(ingredient_id, session=session)
        return _level_to_dict(ingredient, level)


def set_min_stock(ingredient_id: int, min_stock: float, *, session=None) -> Dict[str, Any]:
    """
    Set the low-stock threshold for an ingredient without changing quantity.

    Raises:
        ValidationError: If min_stock is negative or not a number
        IngredientNotFound: If the ingredient doesn't exist
    """
    is_valid, error = validate_non_negative_number(min_stock, "Minimum stock")
    if not is_valid:
        raise ValidationError([error])

    with _scope(session) as session:
        ingredient = session.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise IngredientNotFound(ingredient_id)
        level = catalog_repository.get_stock_level(ingredient_id, session=session)
        quantity = level.quantity if level is not None else 0.0
        level = catalog_repository.set_stock_level(
            ingredient_id, quantity, min_stock=min_stock, session=session
        )
        return _level_to_dict(ingredient, level)


def get_stock_level(ingredient_id: int, *, session=None) -> Dict[str, Any]:
    """
    Current stock of an ingredient.

    Returns:
        Dict with ingredient_id, ingredient_name, unit, quantity (0 if never
        stocked), min_stock and is_low

    Raises:
        IngredientNotFound: If the ingredient doesn't exist
    """
    with _scope(session) as session:
        ingredient = session.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise IngredientNotFound(ingredient_id)
        level = catalog_repository.get_stock_level(ingredient_id, session=session)
        return _level_to_dict(ingredient, level)


def get_stock_levels(*, session=None) -> List[Dict[str, Any]]:
    """Stock of every catalog ingredient, ordered by ingredient name."""
    with _scope(session) as session:
        levels = {
            level.ingredient_id: level
            for level in catalog_repository.list_stock_levels(session=session)
        }
        return [
            _level_to_dict(ingredient, levels.get(ingredient.id))
            for ingredient in catalog_repository.list_ingredients(session=session)
        ]


def get_low_stock_ingredients(*, session=None) -> List[Dict[str, Any]]:
    """Ingredients whose quantity is at or below their minimum stock."""
    return [level for level in get_stock_levels(session=session) if level["is_low"]]


def get_stock_history(
    ingredient_id: Optional[int] = None,
    change_type: Optional[StockChangeType] = None,
    start=None,
    end=None,
    order_id: Optional[int] = None,
    *,
    session=None,
) -> List[StockHistory]:
    """
    Query stock history, newest first.

    Args:
        ingredient_id: Only entries for this ingredient
        change_type: Only entries of this StockChangeType (or its value)
        start: Only entries at or after this date/datetime (ISO string ok)
        end: Only entries at or before this date/datetime (ISO string ok)
        order_id: Only entries caused by this order
        session: Optional database session

    Returns:
        List of StockHistory entries
    """
    with _scope(session) as session:
        query = session.query(StockHistory)
        if ingredient_id is not None:
            query = query.filter(StockHistory.ingredient_id == ingredient_id)
        if change_type is not None:
            query = query.filter(StockHistory.change_type == StockChangeType(change_type))
        if order_id is not None:
            query = query.filter(StockHistory.order_id == order_id)
        start_at = parse_date(start)
        if start_at is not None:
            query = query.filter(StockHistory.timestamp >= start_at)
        end_at = parse_date(end)
        if end_at is not None:
            query = query.filter(StockHistory.timestamp <= end_at)
        return query.order_by(StockHistory.timestamp.desc(), StockHistory.id.desc()).all()
