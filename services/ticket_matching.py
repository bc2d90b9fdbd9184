# services/ticket_matching.py
"""
Bulk ticket assignment.

Phase 1 binds a file to the first remaining candidate whose booking reference
appears in the filename. Phase 2, only when the operator said so, pairs the
leftover files and orders in their remaining order. Neither phase revisits the
other's decisions. Each binding is then stored and written on its own, so a
failure only costs that one file.
"""
from typing import Iterable, List, Optional, Sequence

from exceptions import UploadFailure, NotFound, InvalidTransition
from models import (
    BatchSummary,
    MatchPlan,
    Order,
    TicketBinding,
    UploadFile,
    APPROVED,
    MATCH_AUTO,
    MATCH_BY_REF,
)
from services.eligibility import find_orders_needing_tickets, ALL_CATEGORIES
from services.order_lifecycle import update_ticket_fields
from logger import get_logger

log = get_logger("ticket_matching")


def plan_ticket_matches(
    files: Sequence[UploadFile],
    candidates: Sequence[Order],
    auto_assign: bool = False,
    reserved_refs: Iterable[str] = (),
) -> MatchPlan:
    """
    Pure matching step: decides bindings, touches nothing.

    reserved_refs are booking references of orders outside the candidate pool
    (already ticketed, other category). A file naming one of them is never
    paired in phase 2; it is held back and reported instead.
    """
    files_left: List[UploadFile] = list(files)
    orders_left: List[Order] = list(candidates)
    reserved = [r for r in reserved_refs if r]
    plan = MatchPlan()

    # Phase 1: booking reference contained in filename, first found wins
    remaining_files: List[UploadFile] = []
    for upload in files_left:
        hits = [
            idx for idx, order in enumerate(orders_left)
            if order.booking_ref and order.booking_ref in upload.filename
        ]
        if not hits:
            remaining_files.append(upload)
            continue

        if len(hits) > 1:
            refs = ", ".join(orders_left[i].booking_ref for i in hits)
            msg = (
                f"{upload.filename!r} matches {len(hits)} booking refs ({refs}); "
                f"bound to {orders_left[hits[0]].booking_ref}"
            )
            log.warning(f"Ambiguous ticket file: {msg}")
            plan.warnings.append(msg)

        order = orders_left.pop(hits[0])
        plan.bindings.append(TicketBinding(order, upload, MATCH_BY_REF))

    held: List[UploadFile] = []
    files_left = []
    for upload in remaining_files:
        named = next((r for r in reserved if r in upload.filename), None)
        if named is None:
            files_left.append(upload)
            continue
        msg = f"{upload.filename!r} names booking ref {named}, which is not awaiting a ticket here; left unassigned"
        log.warning(f"Held back ticket file: {msg}")
        plan.warnings.append(msg)
        held.append(upload)

    # Phase 2: sequential leftovers, operator-confirmed only
    plan.fallback_offered = bool(files_left) and bool(orders_left)
    if plan.fallback_offered and auto_assign:
        while files_left and orders_left:
            upload = files_left.pop(0)
            order = orders_left.pop(0)
            plan.bindings.append(TicketBinding(order, upload, MATCH_AUTO))

    # keep upload order in the report
    left_ids = {id(u) for u in files_left + held}
    plan.unmatched_files = [u for u in remaining_files if id(u) in left_ids]
    plan.unmatched_orders = orders_left

    log.info(
        f"Match plan: by_ref={plan.count(MATCH_BY_REF)} auto={plan.count(MATCH_AUTO)} "
        f"files_left={len(plan.unmatched_files)} (held={len(held)}) orders_left={len(orders_left)} "
        f"(fallback offered={plan.fallback_offered}, confirmed={auto_assign})"
    )
    return plan


def apply_match_plan(store, storage, plan: MatchPlan) -> BatchSummary:
    """
    Writes each binding on its own. unmatched_orders ends up as the number of
    orders from the pool still needing a ticket: a failed upload leaves its
    order needing one, a write refused because the order was deleted or moved
    on does not.
    """
    summary = BatchSummary(
        unmatched_files=len(plan.unmatched_files),
        unmatched_filenames=[u.filename for u in plan.unmatched_files],
        unmatched_orders=len(plan.unmatched_orders),
        fallback_offered=plan.fallback_offered,
        warnings=list(plan.warnings),
    )

    for binding in plan.bindings:
        order_id = binding.order.id
        filename = binding.upload.filename
        try:
            url = storage.store(binding.upload.content, filename)
            update_ticket_fields(store, order_id, ticket_url=url, ticket_sent=True)
        except UploadFailure as e:
            summary.failures.append({"filename": filename, "order_id": str(order_id), "reason": e.reason})
            # the order still needs its ticket
            summary.unmatched_orders += 1
            continue
        except (NotFound, InvalidTransition) as e:
            log.warning(f"Order {order_id} changed during bulk assign, {filename} not attached: {e}")
            summary.failures.append({"filename": filename, "order_id": str(order_id), "reason": str(e)})
            continue

        if binding.method == MATCH_BY_REF:
            summary.matched_by_ref += 1
        else:
            summary.auto_assigned += 1
        summary.assigned.append({"order_id": order_id, "ticket_url": url, "method": binding.method})
        log.info(f"Ticket {filename} -> order {order_id} ({binding.method})")

    summary.message = (
        f"Process complete. ID matches: {summary.matched_by_ref}, "
        f"auto-assigned: {summary.auto_assigned}, unresolved files: {summary.unresolved}"
    )
    return summary


def assign_ticket_files(
    store,
    storage,
    files: Sequence[UploadFile],
    category: Optional[str] = None,
    auto_assign: bool = False,
) -> BatchSummary:
    all_orders = store.list()
    candidates = find_orders_needing_tickets(all_orders, category)

    if not candidates:
        scope = f" for category '{category}'" if category and category != ALL_CATEGORIES else ""
        log.info(f"Bulk assign: no orders need tickets{scope}; nothing to do")
        return BatchSummary(
            unmatched_files=len(files),
            unmatched_filenames=[f.filename for f in files],
            nothing_to_do=True,
            message=f"No orders found needing tickets{scope}.",
        )

    if not files:
        log.info("Bulk assign: no files uploaded; nothing to do")
        return BatchSummary(
            unmatched_orders=len(candidates),
            nothing_to_do=True,
            message="No files uploaded.",
        )

    candidate_ids = {o.id for o in candidates}
    reserved_refs = [o.booking_ref for o in all_orders if o.booking_ref and o.id not in candidate_ids]
    plan = plan_ticket_matches(files, candidates, auto_assign=auto_assign, reserved_refs=reserved_refs)
    summary = apply_match_plan(store, storage, plan)
    log.info(
        f"Bulk assign finished | files={len(files)} candidates={len(candidates)} "
        f"by_ref={summary.matched_by_ref} auto={summary.auto_assigned} "
        f"unresolved={summary.unresolved} failures={len(summary.failures)}"
    )
    return summary


def attach_ticket(store, storage, order_id, upload: UploadFile) -> Order:
    """Single-order upload. UploadFailure propagates; nothing is written then."""
    current = store.get(order_id)
    if current.status != APPROVED:
        raise InvalidTransition(order_id, "attach a ticket to", current.status)

    url = storage.store(upload.content, upload.filename)
    order = update_ticket_fields(store, order_id, ticket_url=url, ticket_sent=True)
    log.info(f"Ticket {upload.filename} attached to order {order_id}")
    return order
