# scripts/daily_pending_summary_email.py
import os, sys
from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from config import ADMIN_EMAILS, DISPLAY_TZ
from db import OrderStore
from emailer import send_email
from models import PENDING, APPROVED
from services.eligibility import find_orders_needing_tickets
from logger import get_logger, log_marker
log = get_logger("daily_pending_summary")

LOCAL_TZ = ZoneInfo(DISPLAY_TZ)


def fetch_open_orders(store):
    orders = store.list()
    awaiting_payment = [o for o in orders if o.status == PENDING]
    awaiting_ticket = find_orders_needing_tickets(orders)
    return awaiting_payment, awaiting_ticket


def build_html(awaiting_payment, awaiting_ticket):
    today = datetime.now(LOCAL_TZ).strftime("%b %d, %Y %I:%M %p")

    def table_block(title, items, show_booking):
        if not items:
            return f"""
            <h3 style="margin-top:20px;">{title}</h3>
            <p style="color:#4caf50;"><b>✅ Nothing waiting.</b></p>
            """

        rows_html = ""
        for o in items:
            tickets = ", ".join(f"{i.count} {escape(i.name)}" for i in o.items) or "—"
            ref_cell = escape(o.booking_ref or "—") if show_booking else escape(o.payment_ref or "—")
            rows_html += f"""
            <tr>
              <td style="padding:8px;border:1px solid #ddd;">{o.id}</td>
              <td style="padding:8px;border:1px solid #ddd;">{escape(o.customer_name)}</td>
              <td style="padding:8px;border:1px solid #ddd;">{escape(o.event_title)}</td>
              <td style="padding:8px;border:1px solid #ddd;">{tickets}</td>
              <td style="padding:8px;border:1px solid #ddd;">₹{o.total_amount}</td>
              <td style="padding:8px;border:1px solid #ddd;"><b>{ref_cell}</b></td>
              <td style="padding:8px;border:1px solid #ddd;">{escape(str(o.created_at or ""))}</td>
            </tr>
            """

        ref_header = "Booking ID" if show_booking else "Payment Ref"
        return f"""
        <h3 style="margin-top:20px;">{title} ({len(items)})</h3>
        <table style="border-collapse:collapse;width:100%;font-size:14px;margin-top:8px;">
          <thead>
            <tr style="background:#f5f5f5;">
              <th style="padding:8px;border:1px solid #ddd;">Order</th>
              <th style="padding:8px;border:1px solid #ddd;">Customer</th>
              <th style="padding:8px;border:1px solid #ddd;">Event</th>
              <th style="padding:8px;border:1px solid #ddd;">Tickets</th>
              <th style="padding:8px;border:1px solid #ddd;">Amount</th>
              <th style="padding:8px;border:1px solid #ddd;">{ref_header}</th>
              <th style="padding:8px;border:1px solid #ddd;">Created</th>
            </tr>
          </thead>
          <tbody>
            {rows_html}
          </tbody>
        </table>
        """

    html = f"""
    <div style="font-family:Segoe UI,Arial,sans-serif;max-width:900px;margin:auto;">
      <h2 style="color:#0b57d0;">📌 Daily Ticket Orders Summary</h2>
      <p style="color:#333;">Orders still waiting on an operator.</p>
      <p><b>Generated:</b> {today}</p>

      {table_block("💳 Waiting for payment verification", awaiting_payment, show_booking=False)}
      {table_block("🎟️ Approved, ticket not uploaded", awaiting_ticket, show_booking=True)}
    </div>
    """

    return html, len(awaiting_payment), len(awaiting_ticket)


def main(store=None, mailer=send_email):
    store = store or OrderStore()
    log_marker(log, "PENDING SUMMARY", "START")

    awaiting_payment, awaiting_ticket = fetch_open_orders(store)

    # Only send email if something is waiting
    if not awaiting_payment and not awaiting_ticket:
        log.info("No open orders. Daily summary email not sent.")
        log_marker(log, "PENDING SUMMARY", "END", "skipped")
        return None

    html, pay_cnt, ticket_cnt = build_html(awaiting_payment, awaiting_ticket)
    subject = f"Ticket Orders Daily Summary – Payment={pay_cnt}, Tickets={ticket_cnt}"

    result = mailer(ADMIN_EMAILS, subject, html)
    if result.success:
        log.info(f"Sent daily summary email to {ADMIN_EMAILS}")
    else:
        log.error(f"Daily summary email failed: {result.reason}")
    log_marker(log, "PENDING SUMMARY", "END", "sent" if result.success else "failed")
    return result


if __name__ == "__main__":
    res = main()
    sys.exit(0 if res is None or res.success else 1)
