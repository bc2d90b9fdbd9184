from typing import List, Optional, Sequence

from models import Order, APPROVED
from logger import get_logger

log = get_logger("eligibility")

ALL_CATEGORIES = "all"


def find_orders_needing_tickets(orders: Sequence[Order], category: Optional[str] = None) -> List[Order]:
    """
    Candidate pool for ticket assignment: approved orders with no ticket yet,
    in the order given. A category narrows it to orders holding a line item
    of that name.
    """
    pool = [o for o in orders if o.status == APPROVED and not o.ticket_url]

    if category and category != ALL_CATEGORIES:
        pool = [o for o in pool if o.has_category(category)]

    log.info(f"Orders needing tickets (category={category or ALL_CATEGORIES}): {len(pool)}")
    return pool


def ticket_categories(orders: Sequence[Order]) -> List[str]:
    seen: List[str] = []
    for o in orders:
        if o.status != APPROVED:
            continue
        for item in o.items:
            if item.name and item.name not in seen:
                seen.append(item.name)
    return seen
