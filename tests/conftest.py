"""
Shared fixtures: a throwaway SQLite order store, in-memory ticket storage,
a recording mailer and small order builders.
"""

import os
import tempfile

# config.py reads the environment at import time, so point it somewhere
# disposable before any project module is imported.
_TMP = tempfile.mkdtemp(prefix="ticket-orders-tests-")
os.environ.setdefault("ENV", "TEST")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("STATE_DB_PATH", os.path.join(_TMP, "state.db"))
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))

import pytest

from db import OrderStore
from exceptions import UploadFailure
from models import EmailResult, LineItem, Order, UploadFile, APPROVED
from services.storage import MemoryStorage


@pytest.fixture
def store(tmp_path):
    return OrderStore(str(tmp_path / "orders.db"))


@pytest.fixture
def storage():
    return MemoryStorage()


class RecordingMailer:
    def __init__(self, success: bool = True, reason: str = ""):
        self.success = success
        self.reason = reason
        self.calls = []

    def __call__(self, to_addrs, subject, html):
        self.calls.append({"to": list(to_addrs), "subject": subject, "html": html})
        return EmailResult(self.success, "" if self.success else self.reason)


class FlakyStorage(MemoryStorage):
    """Memory storage that refuses the filenames it is told to."""

    def __init__(self, failing_names):
        super().__init__()
        self.failing_names = set(failing_names)
        self.attempts = []

    def store(self, content, filename):
        self.attempts.append(filename)
        if filename in self.failing_names:
            raise UploadFailure(filename, "simulated timeout")
        return super().store(content, filename)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def make_order(store):
    def _make(name="Asha Rao", email="asha@example.com", items=None, payment_ref="412398765432", **kw):
        items = items if items is not None else [LineItem("General", 1, 499)]
        order = Order(
            id=None,
            customer_name=name,
            customer_email=email,
            payment_ref=payment_ref,
            items=items,
            total_amount=sum(i.count * i.price for i in items),
            event_title=kw.pop("event_title", "Neon Nights Live"),
            event_id=kw.pop("event_id", "evt-1"),
            **kw,
        )
        return store.create(order)
    return _make


@pytest.fixture
def approved_order(store, make_order):
    """Approved, ticket-less order with a chosen booking reference."""
    def _make(booking_ref, **kw):
        order = make_order(**kw)
        return store.update(
            order.id,
            {"status": APPROVED, "booking_ref": booking_ref},
            expected_status="pending",
        )
    return _make


def upload(name, content=b"%PDF-1.4 ticket"):
    return UploadFile(filename=name, content=content)
