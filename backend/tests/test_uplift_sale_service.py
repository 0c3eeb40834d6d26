# Overview: Pytest coverage for uplift sale creation, voiding and status changes.

from decimal import Decimal

import pytest

from sfa.errors import (
    ClientNotFound,
    InsufficientStock,
    InvalidStatusTransition,
    ProductNotFound,
    SaleNotFound,
    UnitOfWorkTimeout,
    UserNotFound,
    ValidationError,
)
from sfa.models import ClientStock, UpliftSale, UpliftSaleItem
from sfa.services import uplift_sale_service


def _item(product, quantity, unit_price):
    return {"productId": product.id, "quantity": quantity, "unitPrice": unit_price}


class TestCreateSale:
    def test_scenario_sale_then_void(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        """(client, product) holds 20; sell 5 at 2.0; void restores 20."""
        set_stock(outlet.id, products[0].id, 20)

        sale = uplift_sale_service.create_sale(
            db_session, outlet.id, rep.id, [_item(products[0], 5, 2.0)]
        )

        assert sale.total_amount == Decimal("10.00")
        assert sale.status == "pending"
        assert ledger_snapshot()[(outlet.id, products[0].id)] == 15

        voided = uplift_sale_service.void_sale(db_session, sale.id)

        assert voided.status == "voided"
        assert voided.voided_at is not None
        assert ledger_snapshot()[(outlet.id, products[0].id)] == 20

    def test_decrements_exactly_the_sold_keys(self, db_session, outlet, other_outlet, rep, products, set_stock, ledger_snapshot):
        set_stock(outlet.id, products[0].id, 10)
        set_stock(outlet.id, products[1].id, 10)
        set_stock(outlet.id, products[2].id, 10)
        set_stock(other_outlet.id, products[0].id, 10)
        before = ledger_snapshot()

        uplift_sale_service.create_sale(
            db_session, outlet.id, rep.id,
            [_item(products[0], 3, "1.00"), _item(products[1], 4, "2.50")],
        )

        after = ledger_snapshot()
        expected = dict(before)
        expected[(outlet.id, products[0].id)] -= 3
        expected[(outlet.id, products[1].id)] -= 4
        assert after == expected

    def test_items_kept_in_submitted_order_with_totals(self, db_session, outlet, rep, products, set_stock):
        for product in products:
            set_stock(outlet.id, product.id, 50)

        sale = uplift_sale_service.create_sale(
            db_session, outlet.id, rep.id,
            [
                _item(products[2], 1, "0.80"),
                _item(products[0], 2, "2.00"),
                _item(products[1], 3, "1.55"),
            ],
        )

        assert [i.product_id for i in sale.items] == [products[2].id, products[0].id, products[1].id]
        assert [i.total for i in sale.items] == [Decimal("0.80"), Decimal("4.00"), Decimal("4.65")]
        assert sale.total_amount == sum((i.total for i in sale.items), Decimal("0"))

    def test_repeated_product_draws_from_one_row(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        set_stock(outlet.id, products[0].id, 5)

        with pytest.raises(InsufficientStock) as excinfo:
            uplift_sale_service.create_sale(
                db_session, outlet.id, rep.id,
                [_item(products[0], 3, 1), _item(products[0], 3, 1)],
            )

        assert excinfo.value.requested == 6
        assert excinfo.value.available == 5
        assert ledger_snapshot()[(outlet.id, products[0].id)] == 5

    def test_one_short_item_leaves_ledger_unchanged(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        set_stock(outlet.id, products[0].id, 10)
        set_stock(outlet.id, products[1].id, 2)
        before = ledger_snapshot()

        with pytest.raises(InsufficientStock) as excinfo:
            uplift_sale_service.create_sale(
                db_session, outlet.id, rep.id,
                [_item(products[0], 4, 1), _item(products[1], 3, 1)],
            )

        err = excinfo.value
        assert err.product_id == products[1].id
        assert err.details == {
            "client_id": outlet.id,
            "product_id": products[1].id,
            "available": 2,
            "requested": 3,
        }
        assert ledger_snapshot() == before
        assert db_session.query(UpliftSale).count() == 0
        assert db_session.query(UpliftSaleItem).count() == 0

    def test_no_stock_row_is_insufficient(self, db_session, outlet, rep, products):
        with pytest.raises(InsufficientStock) as excinfo:
            uplift_sale_service.create_sale(db_session, outlet.id, rep.id, [_item(products[0], 1, 1)])
        assert excinfo.value.available == 0

    def test_unknown_client(self, db_session, rep, products):
        with pytest.raises(ClientNotFound):
            uplift_sale_service.create_sale(db_session, 4040, rep.id, [_item(products[0], 1, 1)])

    def test_unknown_product_without_stock_is_insufficient(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        set_stock(outlet.id, products[0].id, 5)
        before = ledger_snapshot()

        with pytest.raises(InsufficientStock) as excinfo:
            uplift_sale_service.create_sale(
                db_session, outlet.id, rep.id,
                [_item(products[0], 1, 1), {"productId": 4040, "quantity": 1, "unitPrice": 1}],
            )

        assert excinfo.value.product_id == 4040
        assert ledger_snapshot() == before

    def test_stock_row_for_unknown_product(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        # Row left behind for a product that no longer exists
        db_session.add(ClientStock(client_id=outlet.id, product_id=4040, quantity=9))
        db_session.commit()
        set_stock(outlet.id, products[0].id, 5)
        before = ledger_snapshot()

        with pytest.raises(ProductNotFound):
            uplift_sale_service.create_sale(
                db_session, outlet.id, rep.id,
                [_item(products[0], 1, 1), {"productId": 4040, "quantity": 1, "unitPrice": 1}],
            )

        assert ledger_snapshot() == before

    def test_unknown_sales_rep(self, db_session, outlet, products):
        with pytest.raises(UserNotFound):
            uplift_sale_service.create_sale(db_session, outlet.id, 4040, [_item(products[0], 1, 1)])

    @pytest.mark.parametrize("items", [
        [],
        None,
        [{"productId": 1, "quantity": 0, "unitPrice": 1}],
        [{"productId": 1, "quantity": 2.5, "unitPrice": 1}],
        [{"productId": 1, "quantity": 1, "unitPrice": -1}],
        [{"productId": 1, "quantity": 1}],
        [{"quantity": 1, "unitPrice": 1}],
        [{"productId": 1, "quantity": 2**31, "unitPrice": 1}],
        [{"productId": 1, "quantity": 2**31 - 1, "unitPrice": "9999999.99"}],
        [{"productId": 10**20, "quantity": 1, "unitPrice": 1}],
    ])
    def test_invalid_items(self, db_session, outlet, rep, items):
        with pytest.raises(ValidationError):
            uplift_sale_service.create_sale(db_session, outlet.id, rep.id, items)

    def test_timeout_rolls_back(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        set_stock(outlet.id, products[0].id, 10)
        before = ledger_snapshot()

        with pytest.raises(UnitOfWorkTimeout):
            uplift_sale_service.create_sale(
                db_session, outlet.id, rep.id, [_item(products[0], 1, 1)], timeout=0
            )

        assert ledger_snapshot() == before
        assert db_session.query(UpliftSale).count() == 0


class TestVoidSale:
    def test_void_twice_restores_once(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        set_stock(outlet.id, products[0].id, 8)
        set_stock(outlet.id, products[1].id, 8)
        sale = uplift_sale_service.create_sale(
            db_session, outlet.id, rep.id,
            [_item(products[0], 2, 1), _item(products[1], 5, 1)],
        )

        uplift_sale_service.void_sale(db_session, sale.id)
        after_first = ledger_snapshot()
        again = uplift_sale_service.void_sale(db_session, sale.id)

        assert again.status == "voided"
        assert ledger_snapshot() == after_first
        assert after_first == {(outlet.id, products[0].id): 8, (outlet.id, products[1].id): 8}

    def test_void_recreates_deleted_row(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        from sfa.services import stock_ledger_service

        entry = set_stock(outlet.id, products[0].id, 3)
        sale = uplift_sale_service.create_sale(db_session, outlet.id, rep.id, [_item(products[0], 3, 1)])
        stock_ledger_service.delete_entry(db_session, entry.id)

        uplift_sale_service.void_sale(db_session, sale.id)

        assert ledger_snapshot() == {(outlet.id, products[0].id): 3}

    def test_void_missing_sale(self, db_session):
        with pytest.raises(SaleNotFound):
            uplift_sale_service.void_sale(db_session, 777)


class TestStatusAndQueries:
    def _sale(self, db_session, outlet, rep, products, set_stock):
        set_stock(outlet.id, products[0].id, 10)
        return uplift_sale_service.create_sale(db_session, outlet.id, rep.id, [_item(products[0], 1, 1)])

    def test_update_business_status(self, db_session, outlet, rep, products, set_stock):
        sale = self._sale(db_session, outlet, rep, products, set_stock)
        updated = uplift_sale_service.update_sale_status(db_session, sale.id, "completed")
        assert updated.status == "completed"

    def test_status_voided_restores_stock(self, db_session, outlet, rep, products, set_stock, ledger_snapshot):
        sale = self._sale(db_session, outlet, rep, products, set_stock)
        uplift_sale_service.update_sale_status(db_session, sale.id, "voided")
        assert ledger_snapshot()[(outlet.id, products[0].id)] == 10

    def test_voided_sale_is_terminal(self, db_session, outlet, rep, products, set_stock):
        sale = self._sale(db_session, outlet, rep, products, set_stock)
        uplift_sale_service.void_sale(db_session, sale.id)

        with pytest.raises(InvalidStatusTransition):
            uplift_sale_service.update_sale_status(db_session, sale.id, "completed")

    def test_status_required(self, db_session, outlet, rep, products, set_stock):
        sale = self._sale(db_session, outlet, rep, products, set_stock)
        with pytest.raises(ValidationError):
            uplift_sale_service.update_sale_status(db_session, sale.id, "  ")

    def test_list_sales_filters(self, db_session, outlet, other_outlet, rep, products, set_stock):
        set_stock(outlet.id, products[0].id, 10)
        set_stock(other_outlet.id, products[0].id, 10)
        first = uplift_sale_service.create_sale(db_session, outlet.id, rep.id, [_item(products[0], 1, 1)])
        uplift_sale_service.create_sale(db_session, other_outlet.id, rep.id, [_item(products[0], 1, 1)])
        uplift_sale_service.void_sale(db_session, first.id)

        sales, total = uplift_sale_service.list_sales(db_session, client_id=outlet.id)
        assert total == 1 and sales[0].id == first.id

        sales, total = uplift_sale_service.list_sales(db_session, status="pending")
        assert total == 1 and sales[0].client_id == other_outlet.id

        sales, total = uplift_sale_service.list_sales(db_session, user_id=rep.id, limit=1)
        assert total == 2 and len(sales) == 1

    def test_get_sale_missing(self, db_session):
        with pytest.raises(SaleNotFound):
            uplift_sale_service.get_sale(db_session, 1)
