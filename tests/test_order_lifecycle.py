import pytest

from config import BOOKING_REF_PREFIX
from exceptions import InvalidTransition, NotFound
from models import LineItem, PENDING, APPROVED, REJECTED
from services import order_lifecycle
from services.order_lifecycle import (
    approve_order,
    reject_order,
    delete_order,
    update_ticket_fields,
    orders_by_status,
    search_orders,
    generate_unique_booking_ref,
)


class TestApprove:
    def test_pending_order_becomes_approved_with_booking_ref(self, store, make_order):
        order = make_order()
        assert order.status == PENDING
        assert order.booking_ref is None

        approved = approve_order(store, order.id)

        assert approved.status == APPROVED
        assert approved.booking_ref
        assert approved.booking_ref.startswith(BOOKING_REF_PREFIX)
        assert approved.booking_ref != approved.payment_ref
        assert approved.ticket_url is None
        assert approved.ticket_sent is False
        assert store.get(order.id).booking_ref == approved.booking_ref

    def test_second_approve_fails_and_keeps_first_booking_ref(self, store, make_order):
        order = make_order()
        first = approve_order(store, order.id)

        with pytest.raises(InvalidTransition) as exc:
            approve_order(store, order.id)

        assert exc.value.current_status == APPROVED
        assert store.get(order.id).booking_ref == first.booking_ref

    def test_missing_order(self, store):
        with pytest.raises(NotFound):
            approve_order(store, 404)

    def test_rejected_order_cannot_be_approved(self, store, make_order):
        order = make_order()
        reject_order(store, order.id)

        with pytest.raises(InvalidTransition):
            approve_order(store, order.id)
        assert store.get(order.id).booking_ref is None

    def test_booking_refs_are_unique(self, store, make_order):
        refs = {approve_order(store, make_order().id).booking_ref for _ in range(25)}
        assert len(refs) == 25

    def test_booking_ref_generation_skips_taken_refs(self, store, approved_order, monkeypatch):
        approved_order("NB-TAKEN01")
        candidates = iter(["NB-TAKEN01", "NB-TAKEN01", "NB-FRESH001"])
        monkeypatch.setattr(order_lifecycle, "new_booking_ref", lambda: next(candidates))

        assert generate_unique_booking_ref(store) == "NB-FRESH001"

    def test_booking_ref_taken_concurrently_is_retried(self, store, make_order, approved_order, monkeypatch):
        other = approved_order("NB-RACED001")
        order = make_order()
        # the existence check misses the ref another approval just wrote
        monkeypatch.setattr(store, "booking_ref_exists", lambda ref: False)
        candidates = iter(["NB-RACED001", "NB-FRESH001"])
        monkeypatch.setattr(order_lifecycle, "new_booking_ref", lambda: next(candidates))

        approved = approve_order(store, order.id)

        assert approved.booking_ref == "NB-FRESH001"
        assert store.get(other.id).booking_ref == "NB-RACED001"

    def test_status_changed_between_read_and_write(self, store, make_order):
        order = make_order()

        class StaleReadStore:
            """Serves the pending snapshot although the row was rejected meanwhile."""
            def __init__(self, inner, snapshot):
                self.inner = inner
                self.snapshot = snapshot

            def get(self, order_id):
                return self.snapshot

            def __getattr__(self, name):
                return getattr(self.inner, name)

        snapshot = store.get(order.id)
        reject_order(store, order.id)

        with pytest.raises(InvalidTransition) as exc:
            approve_order(StaleReadStore(store, snapshot), order.id)

        assert exc.value.current_status == REJECTED
        current = store.get(order.id)
        assert current.status == REJECTED
        assert current.booking_ref is None


class TestReject:
    def test_pending_order_rejected_without_booking_ref(self, store, make_order):
        order = make_order()
        rejected = reject_order(store, order.id)
        assert rejected.status == REJECTED
        assert rejected.booking_ref is None

    def test_reject_twice(self, store, make_order):
        order = make_order()
        reject_order(store, order.id)
        with pytest.raises(InvalidTransition):
            reject_order(store, order.id)

    def test_approved_order_cannot_be_rejected(self, store, make_order):
        order = make_order()
        approve_order(store, order.id)
        with pytest.raises(InvalidTransition):
            reject_order(store, order.id)
        assert store.get(order.id).status == APPROVED


class TestDelete:
    def test_delete_after_approval_removes_record(self, store, make_order):
        order = make_order()
        approve_order(store, order.id)

        delete_order(store, order.id)

        with pytest.raises(NotFound):
            store.get(order.id)

    def test_delete_missing_order(self, store):
        with pytest.raises(NotFound):
            delete_order(store, 12345)


class TestUpdateTicketFields:
    def test_sets_url_and_sent_without_changing_status(self, store, approved_order):
        order = approved_order("NB-00000001")
        updated = update_ticket_fields(store, order.id, ticket_url="memory://t/1.pdf", ticket_sent=True)
        assert updated.status == APPROVED
        assert updated.ticket_url == "memory://t/1.pdf"
        assert updated.ticket_sent is True
        assert updated.booking_ref == "NB-00000001"

    def test_pending_order_refused(self, store, make_order):
        order = make_order()
        with pytest.raises(InvalidTransition):
            update_ticket_fields(store, order.id, ticket_url="memory://t/1.pdf")
        assert store.get(order.id).ticket_url is None

    def test_sent_flag_needs_url(self, store, approved_order):
        order = approved_order("NB-00000002")
        with pytest.raises(ValueError):
            update_ticket_fields(store, order.id, ticket_sent=True)

    def test_clearing_url_clears_sent_flag(self, store, approved_order):
        order = approved_order("NB-00000003")
        update_ticket_fields(store, order.id, ticket_url="memory://t/3.pdf", ticket_sent=True)
        cleared = update_ticket_fields(store, order.id, ticket_url=None)
        assert cleared.ticket_url is None
        assert cleared.ticket_sent is False

    def test_deleted_order(self, store, approved_order):
        order = approved_order("NB-00000004")
        store.delete(order.id)
        with pytest.raises(NotFound):
            update_ticket_fields(store, order.id, ticket_url="memory://t/4.pdf")


def test_booking_ref_only_on_approved_orders(store, make_order):
    ids = [make_order(name=f"Guest {i}").id for i in range(6)]
    approve_order(store, ids[0])
    approve_order(store, ids[1])
    reject_order(store, ids[2])

    for order in store.list():
        if order.status == APPROVED:
            assert order.booking_ref
        else:
            assert order.booking_ref is None


def test_orders_by_status_groups_every_order(store, make_order):
    a = make_order(name="A")
    b = make_order(name="B")
    c = make_order(name="C")
    approve_order(store, a.id)
    reject_order(store, b.id)

    grouped = orders_by_status(store)

    assert [o.id for o in grouped[APPROVED]] == [a.id]
    assert [o.id for o in grouped[REJECTED]] == [b.id]
    assert [o.id for o in grouped[PENDING]] == [c.id]


def test_search_matches_name_payment_ref_and_booking_ref(store, make_order, approved_order):
    make_order(name="Kabir Singh", payment_ref="111122223333")
    make_order(name="Meera Iyer", payment_ref="999988887777")
    approved_order("NB-ABCD1234", name="Dev Patel")
    orders = store.list()

    assert [o.customer_name for o in search_orders(orders, "kabir")] == ["Kabir Singh"]
    assert [o.customer_name for o in search_orders(orders, "98888")] == ["Meera Iyer"]
    assert [o.customer_name for o in search_orders(orders, "abcd12")] == ["Dev Patel"]
    assert len(search_orders(orders, "  ")) == 3


def test_line_items_survive_round_trip(store, make_order):
    order = make_order(items=[LineItem("VIP", 2, 1500), LineItem("General", 1, 499)])
    loaded = store.get(order.id)
    assert [(i.name, i.count) for i in loaded.items] == [("VIP", 2), ("General", 1)]
    assert loaded.ticket_count == 3
    assert loaded.total_amount == 3499
