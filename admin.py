from flask import Blueprint, Flask, current_app, flash, redirect, render_template, request, url_for
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from config import ADMIN_SECRET_KEY, DISPLAY_TZ, PREVIEW_AMOUNT, PAYMENT_CURRENCY
from db import OrderStore
from emailer import send_email
from exceptions import TicketingError, NotFound
from models import PaymentSettings, UploadFile, PENDING, APPROVED, REJECTED
from services.eligibility import ticket_categories, ALL_CATEGORIES
from services.notifications import send_ticket_email
from services.order_lifecycle import (
    approve_order,
    reject_order,
    delete_order,
    orders_by_status,
    search_orders,
)
from services.payment_settings import (
    get_payment_settings,
    set_payment_settings,
    upi_preview_uri,
    qr_image_url,
)
from services.storage import build_storage
from services.ticket_matching import assign_ticket_files, attach_ticket
from logger import get_logger

log = get_logger("admin")

bp = Blueprint("tickets", __name__)

TABS = (PENDING, APPROVED, REJECTED)

LOCAL_TZ = ZoneInfo(DISPLAY_TZ)

def _to_dt_utc(value):
    # value can be ISO string or datetime
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip()
        if not s:
            return None
        # handles "2025-12-22T03:35:00Z" and "2025-12-22T03:35:00+00:00"
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def format_local(value, fmt="%b %d, %Y · %I:%M %p"):
    dt_utc = _to_dt_utc(value)
    if not dt_utc:
        return ""
    return dt_utc.astimezone(LOCAL_TZ).strftime(fmt)


# collaborators are injected through app.config by create_app()
def _store() -> OrderStore:
    return current_app.config["ORDER_STORE"]

def _storage():
    return current_app.config["TICKET_STORAGE"]

def _mailer():
    return current_app.config["MAILER"]


def _uploads_from_request(field: str) -> list[UploadFile]:
    uploads = []
    for f in request.files.getlist(field):
        if not f or not f.filename:
            continue
        uploads.append(UploadFile(filename=f.filename, content=f.read()))
    return uploads


@bp.route("/")
def dashboard():
    tab = (request.args.get("tab") or PENDING).strip().lower()
    if tab not in TABS:
        tab = PENDING
    q = (request.args.get("q") or "").strip()

    grouped = orders_by_status(_store())
    orders = search_orders(grouped[tab], q)

    return render_template(
        "dashboard.html",
        tab=tab,
        q=q,
        orders=orders,
        counts={s: len(grouped[s]) for s in TABS},
        categories=ticket_categories(grouped[APPROVED]),
        all_categories=ALL_CATEGORIES,
    )


@bp.route("/order/<int:order_id>")
def order_detail(order_id):
    try:
        order = _store().get(order_id)
    except NotFound as e:
        flash(str(e), "error")
        return redirect(url_for("tickets.dashboard"))
    return render_template("order_detail.html", order=order)


@bp.route("/order/<int:order_id>/approve", methods=["POST"])
def order_approve(order_id):
    try:
        order = approve_order(_store(), order_id)
        flash(f"Order {order_id} approved. Booking ID {order.booking_ref}.", "success")
    except TicketingError as e:
        flash(str(e), "error")
    return redirect(url_for("tickets.dashboard", tab=PENDING))


@bp.route("/order/<int:order_id>/reject", methods=["POST"])
def order_reject(order_id):
    try:
        reject_order(_store(), order_id)
        flash(f"Order {order_id} rejected.", "success")
    except TicketingError as e:
        flash(str(e), "error")
    return redirect(url_for("tickets.dashboard", tab=PENDING))


@bp.route("/order/<int:order_id>/delete", methods=["GET", "POST"])
def order_delete(order_id):
    """GET asks the operator; only a POST carrying confirm=yes deletes."""
    try:
        order = _store().get(order_id)
    except NotFound as e:
        flash(str(e), "error")
        return redirect(url_for("tickets.dashboard"))

    if request.method == "GET" or request.form.get("confirm") != "yes":
        return render_template("confirm_delete.html", order=order)

    try:
        delete_order(_store(), order_id)
        flash(f"Order {order_id} permanently deleted.", "success")
    except TicketingError as e:
        flash(str(e), "error")
    return redirect(url_for("tickets.dashboard", tab=order.status))


@bp.route("/order/<int:order_id>/ticket", methods=["POST"])
def order_ticket_upload(order_id):
    uploads = _uploads_from_request("ticket")
    if not uploads:
        flash("Choose a ticket file first.", "error")
        return redirect(url_for("tickets.dashboard", tab=APPROVED))

    try:
        attach_ticket(_store(), _storage(), order_id, uploads[0])
        flash("Ticket uploaded and marked as sent!", "success")
    except (TicketingError, ValueError) as e:
        flash(str(e), "error")
    return redirect(url_for("tickets.dashboard", tab=APPROVED))


@bp.route("/order/<int:order_id>/send", methods=["POST"])
def order_send_email(order_id):
    try:
        order = _store().get(order_id)
        send_ticket_email(order, mailer=_mailer())
        flash(f"Ticket email sent to {order.customer_email}.", "success")
    except TicketingError as e:
        flash(str(e), "error")
    return redirect(url_for("tickets.dashboard", tab=APPROVED))


@bp.route("/tickets/bulk", methods=["POST"])
def bulk_upload():
    category = (request.form.get("category") or ALL_CATEGORIES).strip()
    # the checkbox is the operator's go-ahead for sequential leftovers
    auto_assign = request.form.get("auto_assign") == "yes"
    uploads = _uploads_from_request("files")

    summary = assign_ticket_files(
        _store(),
        _storage(),
        uploads,
        category=category,
        auto_assign=auto_assign,
    )
    return render_template(
        "bulk_result.html",
        summary=summary,
        category=category,
        auto_assign=auto_assign,
        file_count=len(uploads),
    )


@bp.route("/settings", methods=["GET", "POST"])
def payment_settings():
    if request.method == "POST":
        settings = set_payment_settings(
            _store(),
            PaymentSettings(
                payment_identifier=request.form.get("payment_identifier", ""),
                instructions=request.form.get("instructions", ""),
            ),
        )
        flash("Payment settings updated!", "success")
    else:
        settings = get_payment_settings(_store())

    preview_uri = upi_preview_uri(settings.payment_identifier) if settings.payment_identifier else None
    return render_template(
        "settings.html",
        settings=settings,
        preview_uri=preview_uri,
        preview_qr=qr_image_url(preview_uri) if preview_uri else None,
        preview_amount=PREVIEW_AMOUNT,
        currency=PAYMENT_CURRENCY,
    )


def create_app(store=None, storage=None, mailer=None) -> Flask:
    app = Flask(__name__)
    app.secret_key = ADMIN_SECRET_KEY
    app.config["ORDER_STORE"] = store or OrderStore()
    app.config["TICKET_STORAGE"] = storage or build_storage()
    app.config["MAILER"] = mailer or send_email

    app.jinja_env.filters["local_ts"] = format_local
    app.register_blueprint(bp)

    log.info(
        f"Admin app ready | db={app.config['ORDER_STORE'].db_path} "
        f"storage={getattr(app.config['TICKET_STORAGE'], 'name', type(app.config['TICKET_STORAGE']).__name__)}"
    )
    return app


# IMPORTANT: waitress imports the module; it does NOT run __main__
# so the app (and its schema) is built at import time.
app = create_app()


if __name__ == "__main__":
    # For local dev only. Waitress uses admin:app
    app.run(host="0.0.0.0", port=5050, debug=True)
