#models.py
import json
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
ORDER_STATUSES = (PENDING, APPROVED, REJECTED)

# how a ticket file got bound to an order
MATCH_BY_REF = "booking_ref"
MATCH_AUTO = "auto"


@dataclass
class LineItem:
    name: str                 # ticket category, e.g. "VIP"
    count: int
    price: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LineItem":
        return cls(
            name=str(d.get("name") or "").strip(),
            count=int(d.get("count") or 0),
            price=float(d.get("price") or 0),
        )


@dataclass
class Order:
    id: Optional[int]
    customer_name: str
    customer_email: str
    payment_ref: str
    status: str = PENDING     # pending/approved/rejected
    items: List[LineItem] = field(default_factory=list)
    total_amount: float = 0.0
    customer_phone: str = ""
    event_id: Optional[str] = None
    event_title: str = ""
    booking_ref: Optional[str] = None
    ticket_url: Optional[str] = None
    ticket_sent: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Order":
        items = [LineItem.from_dict(d) for d in json.loads(row["items_json"] or "[]")]
        return cls(
            id=row["id"],
            customer_name=row["customer_name"] or "",
            customer_email=row["customer_email"] or "",
            payment_ref=row["payment_ref"] or "",
            status=row["status"],
            items=items,
            total_amount=row["total_amount"] or 0,
            customer_phone=row["customer_phone"] or "",
            event_id=row["event_id"],
            event_title=row["event_title"] or "",
            booking_ref=row["booking_ref"],
            ticket_url=row["ticket_url"],
            ticket_sent=bool(row["ticket_sent"]),
            created_at=row["created_at"],
        )

    def items_json(self) -> str:
        return json.dumps([asdict(i) for i in self.items])

    def has_category(self, category: str) -> bool:
        return any(i.name == category for i in self.items)

    @property
    def ticket_count(self) -> int:
        return sum(i.count for i in self.items)


@dataclass
class PaymentSettings:
    payment_identifier: str = ""   # UPI id, e.g. merchant@bank
    instructions: str = ""


@dataclass
class UploadFile:
    filename: str
    content: bytes


@dataclass
class TicketBinding:
    order: Order
    upload: UploadFile
    method: str               # MATCH_BY_REF / MATCH_AUTO


@dataclass
class MatchPlan:
    bindings: List[TicketBinding] = field(default_factory=list)
    unmatched_files: List[UploadFile] = field(default_factory=list)
    unmatched_orders: List[Order] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    fallback_offered: bool = False   # leftovers existed on both sides after phase 1

    def count(self, method: str) -> int:
        return sum(1 for b in self.bindings if b.method == method)


@dataclass
class BatchSummary:
    matched_by_ref: int = 0
    auto_assigned: int = 0
    unmatched_files: int = 0
    unmatched_filenames: List[str] = field(default_factory=list)
    unmatched_orders: int = 0
    fallback_offered: bool = False   # leftovers on both sides; --auto-assign would pair them
    failures: List[Dict[str, str]] = field(default_factory=list)   # {"filename", "order_id", "reason"}
    warnings: List[str] = field(default_factory=list)
    assigned: List[Dict[str, Any]] = field(default_factory=list)   # {"order_id", "ticket_url", "method"}
    nothing_to_do: bool = False
    message: str = ""

    @property
    def unresolved(self) -> int:
        return self.unmatched_files + len(self.failures)


@dataclass
class EmailResult:
    success: bool
    reason: str = ""


@dataclass
class TicketMessage:
    to_name: str
    to_email: str
    ticket_url: str
    event_title: str
    booking_ref: str
    subject: str
    html: str
