# Overview: Pytest coverage for the client stock ledger primitives.

import pytest

from sfa.errors import (
    ClientNotFound,
    InsufficientStock,
    InvalidQuantity,
    NoSuchStock,
    ProductNotFound,
    StockEntryNotFound,
)
from sfa.models import ClientStock
from sfa.services import stock_ledger_service as ledger
from sfa.services.concurrency import run_in_unit_of_work
from sfa.validation import MAX_QUANTITY


class TestReads:
    def test_absent_key_reads_as_none(self, db_session, outlet, products):
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) is None

    def test_get_quantity_after_set(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 12)
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == 12

    def test_lock_entries_skips_missing_keys(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 3)
        set_stock(outlet.id, products[2].id, 7)

        rows = run_in_unit_of_work(
            db_session,
            lambda uow: {
                key: entry.quantity
                for key, entry in ledger.lock_entries(
                    db_session,
                    [(outlet.id, p.id) for p in products],
                ).items()
            },
        )

        assert rows == {(outlet.id, products[0].id): 3, (outlet.id, products[2].id): 7}

    def test_lock_entries_empty(self, db_session):
        assert ledger.lock_entries(db_session, []) == {}


class TestUpsertSet:
    def test_creates_then_overwrites(self, db_session, outlet, products, set_stock):
        first = set_stock(outlet.id, products[0].id, 5)
        second = set_stock(outlet.id, products[0].id, 9)

        assert first.id == second.id
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == 9
        assert db_session.query(ClientStock).count() == 1

    def test_zero_is_allowed(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 0)
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == 0

    def test_negative_rejected(self, db_session, outlet, products, set_stock):
        with pytest.raises(InvalidQuantity) as excinfo:
            set_stock(outlet.id, products[0].id, -1)

        assert excinfo.value.details["product_id"] == products[0].id
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) is None

    def test_above_maximum_rejected(self, db_session, outlet, products):
        with pytest.raises(InvalidQuantity):
            ledger.set_client_stock(db_session, outlet.id, products[0].id, MAX_QUANTITY + 1)
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) is None

    def test_maximum_is_storable(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, MAX_QUANTITY)
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == MAX_QUANTITY

    def test_unknown_client(self, db_session, products):
        with pytest.raises(ClientNotFound):
            ledger.set_client_stock(db_session, 999, products[0].id, 1)

    def test_unknown_product(self, db_session, outlet):
        with pytest.raises(ProductNotFound):
            ledger.set_client_stock(db_session, outlet.id, 999, 1)


class TestAdjust:
    def _adjust(self, session, *args, **kwargs):
        return run_in_unit_of_work(session, lambda uow: ledger.adjust(session, *args, **kwargs).quantity)

    def test_decrement(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 10)
        assert self._adjust(db_session, outlet.id, products[0].id, -4) == 6
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == 6

    def test_decrement_to_zero(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 4)
        assert self._adjust(db_session, outlet.id, products[0].id, -4) == 0

    def test_decrement_below_zero_leaves_row_untouched(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 3)

        with pytest.raises(InsufficientStock) as excinfo:
            self._adjust(db_session, outlet.id, products[0].id, -5)

        err = excinfo.value
        assert err.product_id == products[0].id
        assert err.available == 3
        assert err.requested == 5
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == 3

    def test_decrement_absent_row(self, db_session, outlet, products):
        with pytest.raises(InsufficientStock) as excinfo:
            self._adjust(db_session, outlet.id, products[0].id, -1)
        assert excinfo.value.available == 0

    def test_increment_absent_row_without_create(self, db_session, outlet, products):
        with pytest.raises(NoSuchStock):
            self._adjust(db_session, outlet.id, products[0].id, 2)
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) is None

    def test_increment_absent_row_with_create(self, db_session, outlet, products):
        assert self._adjust(db_session, outlet.id, products[0].id, 2, create=True) == 2
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == 2

    def test_increment_past_maximum_leaves_row_untouched(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, MAX_QUANTITY - 2)

        with pytest.raises(InvalidQuantity) as excinfo:
            self._adjust(db_session, outlet.id, products[0].id, 3)

        assert excinfo.value.details["quantity"] == MAX_QUANTITY + 1
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == MAX_QUANTITY - 2

    def test_create_past_maximum(self, db_session, outlet, products):
        with pytest.raises(InvalidQuantity):
            self._adjust(db_session, outlet.id, products[0].id, MAX_QUANTITY + 1, create=True)
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) is None

    def test_keys_are_independent(self, db_session, outlet, other_outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 10)
        set_stock(other_outlet.id, products[0].id, 10)

        self._adjust(db_session, outlet.id, products[0].id, -7)

        assert ledger.get_quantity(db_session, outlet.id, products[0].id) == 3
        assert ledger.get_quantity(db_session, other_outlet.id, products[0].id) == 10


class TestQueriesAndDelete:
    def test_list_client_stock_filters_and_paginates(self, db_session, outlet, other_outlet, products, set_stock):
        for product in products:
            set_stock(outlet.id, product.id, 5)
        set_stock(other_outlet.id, products[0].id, 1)

        entries, total = ledger.list_client_stock(db_session, client_id=outlet.id, page=1, limit=2)
        assert total == 3
        assert len(entries) == 2
        assert all(e.client_id == outlet.id for e in entries)

        entries, total = ledger.list_client_stock(db_session, product_id=products[0].id)
        assert total == 2

    def test_low_stock_orders_lowest_first(self, db_session, outlet, products, set_stock):
        set_stock(outlet.id, products[0].id, 8)
        set_stock(outlet.id, products[1].id, 2)
        set_stock(outlet.id, products[2].id, 50)

        rows = ledger.low_stock(db_session, threshold=10, client_id=outlet.id)

        assert [r.quantity for r in rows] == [2, 8]

    def test_delete_entry(self, db_session, outlet, products, set_stock):
        entry = set_stock(outlet.id, products[0].id, 4)
        ledger.delete_entry(db_session, entry.id)
        assert ledger.get_quantity(db_session, outlet.id, products[0].id) is None

    def test_get_entry_by_id(self, db_session, outlet, products, set_stock):
        entry_id = set_stock(outlet.id, products[0].id, 4).id
        assert ledger.get_entry_by_id(db_session, entry_id).quantity == 4

        with pytest.raises(StockEntryNotFound):
            ledger.get_entry_by_id(db_session, entry_id + 100)

    def test_delete_missing_entry(self, db_session):
        with pytest.raises(StockEntryNotFound):
            ledger.delete_entry(db_session, 12345)
