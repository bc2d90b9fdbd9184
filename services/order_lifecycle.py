# services/order_lifecycle.py
"""
Order state machine: pending -> approved | rejected. Both outcomes are final.

Approval is a human decision taken after the operator has matched the
customer's payment reference against the bank statement; nothing here checks
payment. Every write goes through OrderStore.update() as a compare-and-set so a
record that was deleted or moved on in the meantime is reported, not overwritten.
"""
import uuid
from typing import Dict, List, Optional, Sequence

from config import BOOKING_REF_PREFIX
from exceptions import DuplicateBookingRef, InvalidTransition
from models import Order, PENDING, APPROVED, REJECTED, ORDER_STATUSES
from logger import get_logger

log = get_logger("order_lifecycle")

BOOKING_REF_ATTEMPTS = 20

_UNSET = object()


def new_booking_ref() -> str:
    return f"{BOOKING_REF_PREFIX}{uuid.uuid4().hex[:8].upper()}"


def generate_unique_booking_ref(store) -> str:
    for _ in range(BOOKING_REF_ATTEMPTS):
        ref = new_booking_ref()
        if not store.booking_ref_exists(ref):
            return ref
    raise RuntimeError(f"Could not generate an unused booking reference in {BOOKING_REF_ATTEMPTS} attempts")


def _require_pending(order: Order, action: str) -> None:
    if order.status != PENDING:
        log.warning(f"Refused to {action} order {order.id}: status={order.status}")
        raise InvalidTransition(order.id, action, order.status)


def approve_order(store, order_id) -> Order:
    order = store.get(order_id)
    _require_pending(order, "approve")

    for attempt in range(1, BOOKING_REF_ATTEMPTS + 1):
        ref = generate_unique_booking_ref(store)
        try:
            updated = store.update(
                order_id,
                {"status": APPROVED, "booking_ref": ref},
                expected_status=PENDING,
                require_no_booking_ref=True,
            )
            break
        except InvalidTransition as e:
            # someone else decided this order between our read and write
            raise InvalidTransition(order_id, "approve", e.current_status) from e
        except DuplicateBookingRef:
            # a concurrent approval took the same ref after our existence check
            if attempt == BOOKING_REF_ATTEMPTS:
                raise
            log.warning(f"Order {order_id}: booking_ref {ref} taken concurrently, retrying")

    log.info(f"Order {order_id} APPROVED | booking_ref={ref} payment_ref={order.payment_ref}")
    return updated


def reject_order(store, order_id) -> Order:
    order = store.get(order_id)
    _require_pending(order, "reject")

    try:
        updated = store.update(order_id, {"status": REJECTED}, expected_status=PENDING)
    except InvalidTransition as e:
        raise InvalidTransition(order_id, "reject", e.current_status) from e

    log.info(f"Order {order_id} REJECTED | payment_ref={order.payment_ref}")
    return updated


def delete_order(store, order_id) -> None:
    """Permanent. The caller is responsible for having asked the operator first."""
    store.delete(order_id)
    log.info(f"Order {order_id} DELETED")


def update_ticket_fields(store, order_id, ticket_url=_UNSET, ticket_sent=_UNSET) -> Order:
    order = store.get(order_id)
    if order.status != APPROVED:
        raise InvalidTransition(order_id, "attach a ticket to", order.status)

    fields: Dict[str, object] = {}
    if ticket_url is not _UNSET:
        fields["ticket_url"] = ticket_url or None
    if ticket_sent is not _UNSET:
        fields["ticket_sent"] = bool(ticket_sent)

    final_url = fields.get("ticket_url", order.ticket_url)
    final_sent = fields.get("ticket_sent", order.ticket_sent)
    if final_sent and not final_url:
        raise ValueError(f"Order {order_id}: ticket_sent needs a ticket_url")
    if not final_url and order.ticket_sent:
        # clearing the URL also clears the sent flag
        fields["ticket_sent"] = False

    try:
        updated = store.update(order_id, fields, expected_status=APPROVED)
    except InvalidTransition as e:
        raise InvalidTransition(order_id, "attach a ticket to", e.current_status) from e

    log.info(f"Order {order_id} ticket fields updated: {sorted(fields)}")
    return updated


# ------------------------------------------------------------
# Read-side helpers for the backoffice lists
# ------------------------------------------------------------
def orders_by_status(store) -> Dict[str, List[Order]]:
    grouped: Dict[str, List[Order]] = {s: [] for s in ORDER_STATUSES}
    for o in store.list():
        grouped.setdefault(o.status, []).append(o)
    for orders in grouped.values():
        orders.sort(key=lambda o: (o.created_at or "", o.id or 0), reverse=True)
    return grouped


def search_orders(orders: Sequence[Order], term: Optional[str]) -> List[Order]:
    term = (term or "").strip().lower()
    if not term:
        return list(orders)
    return [
        o for o in orders
        if term in (o.customer_name or "").lower()
        or term in (o.payment_ref or "").lower()
        or term in (o.booking_ref or "").lower()
    ]
