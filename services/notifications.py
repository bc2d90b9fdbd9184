# services/notifications.py
from html import escape
from typing import Callable, List

from config import MERCHANT_NAME
from emailer import send_email
from exceptions import DispatchFailure
from models import EmailResult, Order, TicketMessage
from logger import get_logger

log = get_logger("notifications")

Mailer = Callable[[List[str], str, str], EmailResult]


def build_ticket_message(order: Order) -> TicketMessage:
    event = order.event_title or "your event"
    subject = f"Your ticket for {event} – Booking {order.booking_ref or ''}".strip()

    html = f"""
    <div style="font-family:Segoe UI,Arial,sans-serif; max-width:640px;">
      <h2 style="margin:0 0 10px;">🎟️ {escape(event)}</h2>
      <p>Hi {escape(order.customer_name or 'there')},</p>
      <p>Here is your ticket for {escape(event)}. We look forward to seeing you there!</p>
      <p><b>Booking Reference:</b> {escape(order.booking_ref or '—')}</p>
      <p>
        <a href="{escape(order.ticket_url or '', quote=True)}"
           style="display:inline-block;padding:10px 18px;background:#111;color:#fff;
                  text-decoration:none;border-radius:6px;">View / Download Ticket</a>
      </p>
      <p style="color:#666;font-size:13px;">Please keep this email and show the ticket at the entrance.<br>
        – {escape(MERCHANT_NAME)}</p>
    </div>
    """

    return TicketMessage(
        to_name=order.customer_name,
        to_email=order.customer_email,
        ticket_url=order.ticket_url or "",
        event_title=order.event_title,
        booking_ref=order.booking_ref or "",
        subject=subject,
        html=html,
    )


def send_ticket_email(order: Order, mailer: Mailer = send_email) -> EmailResult:
    """
    Email the ticket link to the customer. Raises DispatchFailure when the order
    has no ticket yet (mailer is not called) or when the mailer reports failure.
    Order state is never touched here.
    """
    if not order.ticket_url:
        log.warning(f"Order {order.id}: no ticket uploaded, email not sent")
        raise DispatchFailure(order.id, "no ticket uploaded yet")

    msg = build_ticket_message(order)
    result = mailer([msg.to_email], msg.subject, msg.html)

    if not result.success:
        log.error(f"Order {order.id}: ticket email to {msg.to_email} failed: {result.reason}")
        raise DispatchFailure(order.id, result.reason or "mailer reported failure")

    log.info(f"Order {order.id}: ticket email sent to {msg.to_email} (booking {msg.booking_ref})")
    return result
