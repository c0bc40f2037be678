"""
Order repository: persistence boundary for orders and their line items.

This module provides:
- Order lookup and listing (all, active, completed)
- Adding and deleting orders
- Field updates with optional compare-and-swap on the order version
- Status updates that keep completed_at consistent with the status

Every write queues an order event; subscribers are notified only after the
surrounding transaction commits (see order_events).
"""

from contextlib import nullcontext
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm.exc import StaleDataError

from bakery_ops.models import Order, OrderLineItem, OrderStatus
from bakery_ops.utils.datetime_utils import utc_now
from . import order_events
from .database import session_scope
from .exceptions import ConcurrentModification, InvalidOrder, OrderNotFound

# Fields callers may change through update_order_fields(). Status and
# completion go through update_order_status() so they stay consistent.
UPDATABLE_ORDER_FIELDS = {
    "branch_id",
    "ordered_by",
    "order_date",
    "delivery_date",
    "po_number",
    "notes",
    "batch_number",
    "production_start_date",
    "production_end_date",
    "stock_reduced",
}

LINE_ITEM_FIELDS = {
    "quantity",
    "produced_quantity",
    "stock_quantity",
    "reject_quantity",
    "reject_notes",
}


def _scope(session):
    return nullcontext(session) if session is not None else session_scope()


def _flush(session, order_id: int) -> None:
    # A failed flush expires every loaded object; only plain values are safe here
    try:
        session.flush()
    except StaleDataError as e:
        raise ConcurrentModification("Order", order_id) from e


def get_order(order_id: int, *, session=None) -> Order:
    """
    Get an order with its line items.

    Raises:
        OrderNotFound: If the order doesn't exist
    """
    with _scope(session) as session:
        order = session.get(Order, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order


def list_orders(*, session=None) -> List[Order]:
    """List all orders, newest order date first."""
    with _scope(session) as session:
        return session.query(Order).order_by(Order.order_date.desc(), Order.id.desc()).all()


def list_active_orders(*, session=None) -> List[Order]:
    """List orders that are not completed, newest order date first."""
    with _scope(session) as session:
        return (
            session.query(Order)
            .filter(Order.status != OrderStatus.COMPLETED)
            .order_by(Order.order_date.desc(), Order.id.desc())
            .all()
        )


def list_completed_orders(*, session=None) -> List[Order]:
    """List completed orders, most recently completed first."""
    with _scope(session) as session:
        return (
            session.query(Order)
            .filter(Order.status == OrderStatus.COMPLETED)
            .order_by(Order.completed_at.desc(), Order.id.desc())
            .all()
        )


def count_orders_for_branch_day(branch_id: str, start, end, *, session=None) -> int:
    """Count a branch's orders with order_date in [start, end)."""
    with _scope(session) as session:
        return (
            session.query(Order)
            .filter(Order.branch_id == branch_id)
            .filter(Order.order_date >= start, Order.order_date < end)
            .count()
        )


def add_order(
    fields: Dict[str, Any], line_items: Iterable[Dict[str, Any]], *, session=None
) -> Order:
    """
    Persist a new order with its line items.

    Args:
        fields: Order column values (branch_id, ordered_by, order_date, ...)
        line_items: Dicts with product_id and quantity; line positions follow
            the iteration order
        session: Optional database session

    Returns:
        The new Order

    Raises:
        InvalidOrder: If there are no line items or a product repeats
    """
    items = list(line_items)
    if not items:
        raise InvalidOrder(None)
    product_ids = [item["product_id"] for item in items]
    if len(set(product_ids)) != len(product_ids):
        raise InvalidOrder(None, "a product appears on more than one line")

    with _scope(session) as session:
        order = Order(**fields)
        for position, item in enumerate(items):
            order.products.append(
                OrderLineItem(
                    position=position,
                    product_id=item["product_id"],
                    quantity=item["quantity"],
                    produced_quantity=item.get("produced_quantity", 0),
                    stock_quantity=item.get("stock_quantity", 0),
                    reject_quantity=item.get("reject_quantity", 0),
                    reject_notes=item.get("reject_notes"),
                )
            )
        session.add(order)
        session.flush()
        order_events.queue_event(session, order_events.ORDER_CREATED, order.id)
        return order


def delete_order(order_id: int, *, session=None) -> None:
    """
    Delete an order and its line items. Stock history is left untouched.

    Raises:
        OrderNotFound: If the order doesn't exist
    """
    with _scope(session) as session:
        order = get_order(order_id, session=session)
        session.delete(order)
        _flush(session, order_id)
        order_events.queue_event(session, order_events.ORDER_DELETED, order_id)


def update_order_fields(
    order_id: int,
    fields: Dict[str, Any],
    expected_version: Optional[int] = None,
    *,
    line_items: Optional[Dict[int, Dict[str, Any]]] = None,
    session=None,
) -> Order:
    """
    Update order fields and, optionally, line item fields.

    Args:
        order_id: Order to update
        fields: Column values; only UPDATABLE_ORDER_FIELDS are applied
        expected_version: When given, the update only succeeds if the order's
            version_id still equals it
        line_items: Optional product_id -> {field: value} for line items
        session: Optional database session

    Returns:
        The updated Order

    Raises:
        OrderNotFound: If the order doesn't exist
        ConcurrentModification: If the order version does not match
    """
    with _scope(session) as session:
        order = get_order(order_id, session=session)
        if expected_version is not None and order.version_id != expected_version:
            raise ConcurrentModification("Order", order_id)

        for key, value in fields.items():
            if key in UPDATABLE_ORDER_FIELDS:
                setattr(order, key, value)

        for product_id, values in (line_items or {}).items():
            item = order.line_item_for(product_id)
            if item is None:
                continue
            for key, value in values.items():
                if key in LINE_ITEM_FIELDS:
                    setattr(item, key, value)

        # Line-item-only edits still bump the order version
        order.updated_at = utc_now()
        _flush(session, order_id)
        order_events.queue_event(session, order_events.ORDER_UPDATED, order_id)
        return order


def update_order_status(
    order_id: int,
    status: OrderStatus,
    completed_at=None,
    *,
    session=None,
) -> Order:
    """
    Set an order's status.

    completed_at is kept if and only if the new status is COMPLETED: when
    completing, the given timestamp (or now) is stored; any other status
    clears it. Transition rules are checked by order_service, not here.

    Raises:
        OrderNotFound: If the order doesn't exist
    """
    status = OrderStatus(status)
    with _scope(session) as session:
        order = get_order(order_id, session=session)
        order.status = status
        if status == OrderStatus.COMPLETED:
            order.completed_at = completed_at or order.completed_at or utc_now()
        else:
            order.completed_at = None
        order.updated_at = utc_now()
        _flush(session, order_id)
        order_events.queue_event(session, order_events.ORDER_UPDATED, order_id)
        return order
