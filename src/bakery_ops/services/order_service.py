"""
Order service: creation and lifecycle transitions of orders.

Status transitions:
    pending    -> processing, completed
    processing -> processing, completed
    completed  -> pending (reopen), completed (edit), processing (reschedule)

Every transition is checked against ALLOWED_TRANSITIONS before anything is
written, and each operation writes its line items and status in a single
transaction. Stock is never moved here; see stock_reduction_service.
"""

from contextlib import nullcontext
from datetime import timedelta
import logging
from typing import Any, Dict, List, Mapping, Optional

from bakery_ops.models import Order, OrderStatus, Product
from bakery_ops.utils.constants import (
    BRANCHES,
    ORDER_NUMBER_DATE_FORMAT,
    UNKNOWN_BRANCH_CODE,
)
from bakery_ops.utils.datetime_utils import parse_date, utc_now
from bakery_ops.utils.validators import validate_order_data, validate_quantity_map
from . import order_repository
from .database import session_scope
from .exceptions import (
    InvalidOrder,
    InvalidStatusTransition,
    ProductNotFound,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.COMPLETED},
    OrderStatus.PROCESSING: {OrderStatus.PROCESSING, OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: {
        OrderStatus.PENDING,
        OrderStatus.COMPLETED,
        OrderStatus.PROCESSING,
    },
}


def _scope(session):
    return nullcontext(session) if session is not None else session_scope()


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    """Return True if an order may move from `current` to `requested`."""
    return OrderStatus(requested) in ALLOWED_TRANSITIONS.get(OrderStatus(current), set())


def _check_transition(order: Order, requested: OrderStatus) -> None:
    if not can_transition(order.status, requested):
        log_operation(
            logger,
            operation="order_transition",
            outcome="invalid_transition",
            level=logging.WARNING,
            order_id=order.id,
            current_status=order.status.value,
            requested_status=requested.value,
        )
        raise InvalidStatusTransition(order.id, order.status.value, requested.value)


def _load_order_with_products(order_id: int, session) -> Order:
    order = order_repository.get_order(order_id, session=session)
    if not order.products:
        raise InvalidOrder(order_id)
    return order


# =============================================================================
# Creation and deletion
# =============================================================================


def generate_order_number(branch_id: str, order_date, sequence: int) -> str:
    """
    Build an order number: BRANCHCODE-YYMMDD-SEQ.

    The branch code is the first two letters of the branch name, or "XX"
    for an unknown branch.

    Example:
        >>> generate_order_number("seseduh", datetime(2025, 1, 13), 1)
        'SE-250113-001'
    """
    name = BRANCHES.get(branch_id)
    code = name[:2].upper() if name else UNKNOWN_BRANCH_CODE
    return f"{code}-{order_date.strftime(ORDER_NUMBER_DATE_FORMAT)}-{sequence:03d}"


def next_sequence_number(branch_id: str, order_date, *, session=None) -> int:
    """Next per-branch, per-day order sequence (1 for the day's first order)."""
    start = order_date.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    count = order_repository.count_orders_for_branch_day(branch_id, start, end, session=session)
    return count + 1


def create_order(data: Dict[str, Any], *, session=None) -> Order:
    """
    Create a pending order.

    Args:
        data: Dictionary with:
            - branch_id (required, a known branch)
            - ordered_by (required)
            - products: list of {product_id, quantity > 0} (at least one)
            - order_date (defaults to now), delivery_date
            - po_number, notes, batch_number
        session: Optional database session

    Returns:
        The created Order with status PENDING and produced quantities 0

    Raises:
        ValidationError: If the data is invalid
        ProductNotFound: If a product doesn't exist
    """
    errors = validate_order_data(data)
    if errors:
        raise ValidationError(errors)

    try:
        order_date = parse_date(data.get("order_date")) or utc_now()
        delivery_date = parse_date(data.get("delivery_date"))
    except ValueError as e:
        raise ValidationError([f"Date: {e}"]) from e

    with _scope(session) as session:
        for item in data["products"]:
            if session.get(Product, item["product_id"]) is None:
                raise ProductNotFound(item["product_id"])

        sequence = next_sequence_number(data["branch_id"], order_date, session=session)
        order = order_repository.add_order(
            {
                "order_number": generate_order_number(data["branch_id"], order_date, sequence),
                "branch_id": data["branch_id"],
                "ordered_by": data["ordered_by"].strip(),
                "order_date": order_date,
                "delivery_date": delivery_date,
                "po_number": data.get("po_number"),
                "notes": data.get("notes"),
                "batch_number": data.get("batch_number"),
                "status": OrderStatus.PENDING,
            },
            [
                {"product_id": item["product_id"], "quantity": item["quantity"]}
                for item in data["products"]
            ],
            session=session,
        )

        log_operation(
            logger,
            operation="create_order",
            outcome="success",
            order_id=order.id,
            order_number=order.order_number,
            branch_id=order.branch_id,
        )
        return order


def delete_order(order_id: int, *, session=None) -> None:
    """
    Delete an order. Its stock history stays in the ledger.

    Raises:
        OrderNotFound: If the order doesn't exist
    """
    with _scope(session) as session:
        order_repository.delete_order(order_id, session=session)
        log_operation(logger, operation="delete_order", outcome="success", order_id=order_id)


def get_order(order_id: int, *, session=None) -> Order:
    """Get an order by ID (raises OrderNotFound)."""
    return order_repository.get_order(order_id, session=session)


def get_active_orders(*, session=None) -> List[Order]:
    """Orders that still need production."""
    return order_repository.list_active_orders(session=session)


def get_completed_orders(*, session=None) -> List[Order]:
    """Completed orders, most recent first."""
    return order_repository.list_completed_orders(session=session)


# =============================================================================
# Transitions
# =============================================================================


def complete_order(
    order_id: int,
    produced_quantities: Optional[Mapping[int, int]] = None,
    stock_quantities: Optional[Mapping[int, int]] = None,
    reject_quantities: Optional[Mapping[int, int]] = None,
    reject_notes: Optional[Mapping[int, str]] = None,
    completed_at=None,
    *,
    session=None,
) -> Order:
    """
    Mark an order as completed with its produced quantities.

    Calling this on an already completed order edits it in place.

    For every line item:
    - produced_quantity: the supplied value, else the existing non-zero
      value, else the ordered quantity
    - stock_quantity, reject_quantity, reject_notes: the supplied value,
      else the existing one

    completed_at is the explicit value if given, else the existing
    completion timestamp when the order is already completed, else now.

    Args:
        order_id: Order to complete
        produced_quantities: product_id -> produced quantity
        stock_quantities: product_id -> quantity put to stock
        reject_quantities: product_id -> rejected quantity
        reject_notes: product_id -> reason for rejects
        completed_at: Optional completion date/datetime (ISO string ok)
        session: Optional database session

    Returns:
        The completed Order

    Raises:
        OrderNotFound: If the order doesn't exist
        InvalidOrder: If the order has no line items
        InvalidStatusTransition: If completion is not allowed from the
            current status
        ValidationError: If a supplied quantity is not a whole number >= 0
    """
    errors = (
        validate_quantity_map(produced_quantities, "Produced quantity")
        + validate_quantity_map(stock_quantities, "Stock quantity")
        + validate_quantity_map(reject_quantities, "Reject quantity")
    )
    if errors:
        raise ValidationError(errors)
    try:
        completion = parse_date(completed_at)
    except ValueError as e:
        raise ValidationError([f"Completion date: {e}"]) from e

    produced_quantities = produced_quantities or {}
    stock_quantities = stock_quantities or {}
    reject_quantities = reject_quantities or {}
    reject_notes = reject_notes or {}

    with _scope(session) as session:
        order = _load_order_with_products(order_id, session)
        _check_transition(order, OrderStatus.COMPLETED)
        was_completed = order.status == OrderStatus.COMPLETED

        line_items = {}
        for item in order.products:
            product_id = item.product_id
            if product_id in produced_quantities:
                produced = produced_quantities[product_id]
            elif item.produced_quantity:
                produced = item.produced_quantity
            else:
                produced = item.quantity
            line_items[product_id] = {
                "produced_quantity": produced,
                "stock_quantity": stock_quantities.get(product_id, item.stock_quantity),
                "reject_quantity": reject_quantities.get(product_id, item.reject_quantity),
                "reject_notes": reject_notes.get(product_id, item.reject_notes),
            }

        order_repository.update_order_fields(
            order_id, {}, line_items=line_items, session=session
        )

        if completion is None:
            completion = order.completed_at if was_completed else utc_now()
        order = order_repository.update_order_status(
            order_id, OrderStatus.COMPLETED, completed_at=completion, session=session
        )

        log_operation(
            logger,
            operation="complete_order",
            outcome="edited" if was_completed else "success",
            order_id=order_id,
            line_item_count=len(line_items),
        )
        return order


def reopen_order(order_id: int, *, session=None) -> Order:
    """
    Move a completed order back to pending.

    completed_at is cleared; produced quantities and stock are untouched.

    Raises:
        OrderNotFound: If the order doesn't exist
        InvalidOrder: If the order has no line items
        InvalidStatusTransition: If the order is not completed
    """
    with _scope(session) as session:
        order = _load_order_with_products(order_id, session)
        if order.status != OrderStatus.COMPLETED:
            log_operation(
                logger,
                operation="reopen_order",
                outcome="invalid_transition",
                level=logging.WARNING,
                order_id=order_id,
                current_status=order.status.value,
            )
            raise InvalidStatusTransition(
                order_id, order.status.value, OrderStatus.PENDING.value
            )
        _check_transition(order, OrderStatus.PENDING)

        order = order_repository.update_order_status(
            order_id, OrderStatus.PENDING, session=session
        )
        log_operation(logger, operation="reopen_order", outcome="success", order_id=order_id)
        return order


def schedule_production(order_id: int, start_date, end_date, *, session=None) -> Order:
    """
    Schedule production for an order and move it to processing.

    Produced quantities are never changed. Rescheduling a completed order
    clears its completion timestamp.

    Args:
        order_id: Order to schedule
        start_date: Production start (date, datetime or ISO string)
        end_date: Production end (date, datetime or ISO string)
        session: Optional database session

    Raises:
        OrderNotFound: If the order doesn't exist
        InvalidOrder: If the order has no line items
        InvalidStatusTransition: If scheduling is not allowed from the
            current status
        ValidationError: If a date is missing or unparsable, or end is
            before start
    """
    try:
        start = parse_date(start_date)
        end = parse_date(end_date)
    except ValueError as e:
        raise ValidationError([f"Production date: {e}"]) from e
    if start is None or end is None:
        raise ValidationError(["Production dates: This field is required"])
    if end < start:
        raise ValidationError(["Production end date must not be before the start date"])

    with _scope(session) as session:
        order = _load_order_with_products(order_id, session)
        _check_transition(order, OrderStatus.PROCESSING)

        order_repository.update_order_fields(
            order_id,
            {"production_start_date": start, "production_end_date": end},
            session=session,
        )
        order = order_repository.update_order_status(
            order_id, OrderStatus.PROCESSING, session=session
        )
        log_operation(
            logger,
            operation="schedule_production",
            outcome="success",
            order_id=order_id,
            production_start_date=start.isoformat(),
            production_end_date=end.isoformat(),
        )
        return order
