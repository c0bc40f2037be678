"""
Order event stream.

Services queue an OrderEvent on the session whenever they create, update
or delete an order. Queued events are dispatched to subscribers only after
the transaction commits; a rollback discards them. Subscribers therefore
never see changes that did not persist.

Usage:
    from bakery_ops.services import order_events

    def on_order_event(event):
        print(event.kind, event.order_id)

    unsubscribe = order_events.subscribe(on_order_event)
    ...
    unsubscribe()
"""

from dataclasses import dataclass
from typing import Callable, List

from sqlalchemy import event
from sqlalchemy.orm import Session

from .logging_utils import get_service_logger

logger = get_service_logger(__name__)

ORDER_CREATED = "created"
ORDER_UPDATED = "updated"
ORDER_DELETED = "deleted"

_PENDING_KEY = "pending_order_events"


@dataclass(frozen=True)
class OrderEvent:
    """A committed change to an order."""

    kind: str
    order_id: int


OrderEventCallback = Callable[[OrderEvent], None]

_subscribers: List[OrderEventCallback] = []


def subscribe(callback: OrderEventCallback) -> Callable[[], None]:
    """
    Register a callback for committed order events.

    Args:
        callback: Called with each OrderEvent after commit

    Returns:
        A function that removes the subscription
    """
    _subscribers.append(callback)

    def unsubscribe() -> None:
        if callback in _subscribers:
            _subscribers.remove(callback)

    return unsubscribe


def clear_subscribers() -> None:
    """Remove every subscriber. Useful for testing."""
    _subscribers.clear()


def queue_event(session: Session, kind: str, order_id: int) -> None:
    """
    Queue an event for dispatch when the session's transaction commits.

    Repeated events of the same kind for the same order collapse into one.
    """
    pending = session.info.setdefault(_PENDING_KEY, [])
    order_event = OrderEvent(kind=kind, order_id=order_id)
    if order_event not in pending:
        pending.append(order_event)


def _dispatch(events: List[OrderEvent]) -> None:
    for order_event in events:
        for callback in list(_subscribers):
            try:
                callback(order_event)
            except Exception:
                # The change is already committed; log and keep dispatching.
                logger.exception(
                    f"Order event subscriber failed for {order_event.kind} "
                    f"order {order_event.order_id}"
                )


@event.listens_for(Session, "after_commit")
def _dispatch_after_commit(session):
    events = session.info.pop(_PENDING_KEY, [])
    if events:
        _dispatch(events)


@event.listens_for(Session, "after_rollback")
def _discard_after_rollback(session):
    session.info.pop(_PENDING_KEY, None)
