# db.py

import sqlite3
from typing import Any, Dict, List, Optional

from config import STATE_DB_PATH, utc_now_iso
from exceptions import NotFound, InvalidTransition, DuplicateBookingRef
from models import Order, PaymentSettings, PENDING
from logger import get_logger


log = get_logger("db")

# columns the store lets callers write through update()
UPDATABLE_COLUMNS = {"status", "booking_ref", "ticket_url", "ticket_sent"}


def _table_columns(cur: sqlite3.Cursor, table: str) -> set[str]:
    cur.execute(f"PRAGMA table_info({table})")
    return {row[1] for row in cur.fetchall()}

def _ensure_column(cur: sqlite3.Cursor, table: str, column: str, col_type: str) -> None:
    cols = _table_columns(cur, table)
    if column not in cols:
        log.info(f"DB MIGRATION: adding column {table}.{column} {col_type}")
        cur.execute(f'ALTER TABLE {table} ADD COLUMN "{column}" {col_type}')


# ---------- Local State DB ----------
def state_conn(db_path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path or STATE_DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn

def init_state_db(db_path: Optional[str] = None) -> None:
    conn = state_conn(db_path)
    cur = conn.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS ticket_orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_name TEXT,
        customer_email TEXT,
        customer_phone TEXT,
        event_id TEXT,
        event_title TEXT,
        items_json TEXT,
        total_amount REAL,
        payment_ref TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        booking_ref TEXT,
        ticket_url TEXT,
        ticket_sent INTEGER NOT NULL DEFAULT 0,
        created_at TEXT,
        updated_ts TEXT
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS payment_settings (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        payment_identifier TEXT,
        instructions TEXT,
        updated_ts TEXT
    )
    """)

    # ---- MIGRATIONS / SAFE UPGRADES ----
    _ensure_column(cur, "ticket_orders", "updated_ts", "TEXT")

    conn.commit()
    conn.close()

    ensure_state_indexes(db_path)

def ensure_state_indexes(db_path: Optional[str] = None) -> None:
    conn = state_conn(db_path)
    conn.executescript("""
    CREATE UNIQUE INDEX IF NOT EXISTS idx_ticket_orders_booking_ref
    ON ticket_orders(booking_ref) WHERE booking_ref IS NOT NULL;

    CREATE INDEX IF NOT EXISTS idx_ticket_orders_status ON ticket_orders(status);
    CREATE INDEX IF NOT EXISTS idx_ticket_orders_created_at ON ticket_orders(created_at);
    """)
    conn.commit()
    conn.close()


class OrderStore:
    """
    Durable keyed collection of ticket orders (plus the payment settings row).

    Every write opens its own connection and commits before returning, so a
    bulk run that stops half way keeps the orders it already updated.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or STATE_DB_PATH
        init_state_db(self.db_path)

    def _conn(self) -> sqlite3.Connection:
        return state_conn(self.db_path)

    # ---------- orders ----------
    def list(self, status: Optional[str] = None) -> List[Order]:
        conn = self._conn()
        if status:
            rows = conn.execute(
                "SELECT * FROM ticket_orders WHERE status=? ORDER BY id",
                (status,),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM ticket_orders ORDER BY id").fetchall()
        conn.close()
        return [Order.from_row(r) for r in rows]

    def get(self, order_id) -> Order:
        conn = self._conn()
        row = conn.execute(
            "SELECT * FROM ticket_orders WHERE id=?", (order_id,)
        ).fetchone()
        conn.close()
        if not row:
            raise NotFound(order_id)
        return Order.from_row(row)

    def create(self, order: Order) -> Order:
        now = utc_now_iso()
        conn = self._conn()
        cur = conn.execute("""
        INSERT INTO ticket_orders (
            customer_name, customer_email, customer_phone,
            event_id, event_title, items_json, total_amount,
            payment_ref, status, booking_ref, ticket_url, ticket_sent,
            created_at, updated_ts
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL, 0, ?, ?)
        """, (
            order.customer_name, order.customer_email, order.customer_phone,
            order.event_id, order.event_title, order.items_json(), order.total_amount,
            order.payment_ref, PENDING,
            order.created_at or now, now,
        ))
        conn.commit()
        new_id = cur.lastrowid
        conn.close()
        log.info(f"Order {new_id} created for {order.customer_email} ({order.event_title})")
        return self.get(new_id)

    def update(
        self,
        order_id,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None,
        require_no_booking_ref: bool = False,
    ) -> Order:
        """
        Compare-and-set update. The row is only written while it still has
        expected_status (and no booking_ref, when asked). Raises NotFound when
        the row is gone and InvalidTransition when its status moved on.
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")
        if not fields:
            return self.get(order_id)

        values = dict(fields)
        if "ticket_sent" in values:
            values["ticket_sent"] = 1 if values["ticket_sent"] else 0

        set_sql = ", ".join(f"{col}=?" for col in values) + ", updated_ts=?"
        params: List[Any] = list(values.values()) + [utc_now_iso()]

        where_sql = "id=?"
        params.append(order_id)
        if expected_status is not None:
            where_sql += " AND status=?"
            params.append(expected_status)
        if require_no_booking_ref:
            where_sql += " AND booking_ref IS NULL"

        conn = self._conn()
        try:
            cur = conn.execute(f"UPDATE ticket_orders SET {set_sql} WHERE {where_sql}", params)
            conn.commit()
            changed = cur.rowcount
        except sqlite3.IntegrityError as e:
            if "booking_ref" not in values:
                raise
            log.warning(f"Booking ref {values.get('booking_ref')} collided for order {order_id}: {e}")
            raise DuplicateBookingRef(order_id, values.get("booking_ref")) from e
        finally:
            conn.close()

        if changed == 0:
            current = self.get(order_id)   # raises NotFound if deleted underneath us
            raise InvalidTransition(order_id, "update", current.status)

        return self.get(order_id)

    def delete(self, order_id) -> None:
        conn = self._conn()
        cur = conn.execute("DELETE FROM ticket_orders WHERE id=?", (order_id,))
        conn.commit()
        deleted = cur.rowcount
        conn.close()
        if deleted == 0:
            raise NotFound(order_id)

    def booking_ref_exists(self, booking_ref: str) -> bool:
        conn = self._conn()
        row = conn.execute(
            "SELECT 1 FROM ticket_orders WHERE booking_ref=?", (booking_ref,)
        ).fetchone()
        conn.close()
        return row is not None

    # ---------- payment settings ----------
    def load_payment_settings(self) -> PaymentSettings:
        conn = self._conn()
        row = conn.execute(
            "SELECT payment_identifier, instructions FROM payment_settings WHERE id=1"
        ).fetchone()
        conn.close()
        if not row:
            return PaymentSettings()
        return PaymentSettings(
            payment_identifier=row["payment_identifier"] or "",
            instructions=row["instructions"] or "",
        )

    def save_payment_settings(self, settings: PaymentSettings) -> None:
        conn = self._conn()
        conn.execute("""
        INSERT INTO payment_settings (id, payment_identifier, instructions, updated_ts)
        VALUES (1, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            payment_identifier=excluded.payment_identifier,
            instructions=excluded.instructions,
            updated_ts=excluded.updated_ts
        """, (settings.payment_identifier, settings.instructions, utc_now_iso()))
        conn.commit()
        conn.close()
