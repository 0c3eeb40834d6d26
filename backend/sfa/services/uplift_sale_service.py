"""
Uplift Sales Service - sale creation and reversal against client stock

Create: every requested item is checked against the client's ledger row,
the rows are decremented, and the sale plus its items are written in one
transaction. Any failure (missing product, short stock, timeout) rolls the
whole thing back: no partial decrement is ever committed.

Void: restores the stock of every item and marks the sale voided, in one
transaction. Voiding an already-voided sale returns it unchanged, so a
retried or duplicated void request never credits stock twice.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import selectinload

from ..errors import (
    ClientNotFound,
    InsufficientStock,
    InvalidStatusTransition,
    ProductNotFound,
    SaleNotFound,
    UserNotFound,
    ValidationError,
)
from ..models import Client, Product, SalesRep, UpliftSale, UpliftSaleItem
from ..models.uplift import SALE_STATUS_PENDING, SALE_STATUS_VOIDED
from ..time_utils import utcnow
from ..validation import normalize_sale_items
from . import stock_ledger_service as ledger
from .concurrency import DEFAULT_ATTEMPTS, DEFAULT_TIMEOUT_SECONDS, lock_for_update, run_in_unit_of_work

log = logging.getLogger(__name__)


def _requested_by_product(items: list[dict]) -> dict[int, int]:
    # Same product on several lines draws from one ledger row
    totals: dict[int, int] = {}
    for item in items:
        totals[item["product_id"]] = totals.get(item["product_id"], 0) + item["quantity"]
    return totals


def _validate_on_hand(entries: dict, client_id: int, requested: dict[int, int]) -> None:
    for product_id, quantity in requested.items():
        entry = entries.get((client_id, product_id))
        available = entry.quantity if entry is not None else 0
        if entry is None or available < quantity:
            raise InsufficientStock(
                client_id=client_id,
                product_id=product_id,
                available=available,
                requested=quantity,
            )


def create_sale(
    session,
    client_id: int,
    user_id: int,
    items,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_ATTEMPTS,
) -> UpliftSale:
    """
    Create an uplift sale and take its items out of the client's stock.

    items: [{"productId"|"product_id", "quantity", "unitPrice"|"unit_price"}, ...]
    Returns the committed sale; sale.items are in submitted order.
    """
    normalized = normalize_sale_items(items)

    # Reference checks happen before any write
    if session.get(Client, client_id) is None:
        raise ClientNotFound(client_id)
    if session.get(SalesRep, user_id) is None:
        raise UserNotFound(user_id)

    requested = _requested_by_product(normalized)

    def _op(uow):
        entries = ledger.lock_entries(session, [(client_id, pid) for pid in requested])
        _validate_on_hand(entries, client_id, requested)

        for product_id in requested:
            if session.get(Product, product_id) is None:
                raise ProductNotFound(product_id)
        uow.check_deadline("validate")

        for product_id, quantity in requested.items():
            ledger.adjust(
                session,
                client_id,
                product_id,
                -quantity,
                entry=entries[(client_id, product_id)],
            )
        uow.check_deadline("decrement")

        sale = UpliftSale(client_id=client_id, user_id=user_id, status=SALE_STATUS_PENDING)
        total_amount = Decimal("0.00")
        for item in normalized:
            sale.items.append(UpliftSaleItem(
                product_id=item["product_id"],
                quantity=item["quantity"],
                unit_price=item["unit_price"],
                total=item["total"],
            ))
            total_amount += item["total"]

        sale.total_amount = total_amount
        session.add(sale)
        session.flush()
        uow.check_deadline("create")
        return sale

    sale = run_in_unit_of_work(session, _op, timeout=timeout, attempts=attempts)
    log.info(
        "Uplift sale %s created for client %s by user %s (%d items, total %s)",
        sale.id, client_id, user_id, len(normalized), sale.total_amount,
    )
    return sale


def void_sale(
    session,
    sale_id: int,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_ATTEMPTS,
) -> UpliftSale:
    """
    Void a sale and put its items back into the client's stock.

    Idempotent: an already-voided sale is returned as-is.
    """
    sale = session.get(UpliftSale, sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)
    if sale.is_voided:
        return sale

    def _op(uow):
        # Re-read under the lock: a concurrent void may have won the race
        sale = lock_for_update(session.query(UpliftSale).filter_by(id=sale_id)).populate_existing().first()
        if sale is None:
            raise SaleNotFound(sale_id)
        if sale.is_voided:
            return sale, False

        items = session.query(UpliftSaleItem).filter_by(uplift_sale_id=sale.id).order_by(UpliftSaleItem.id).all()
        restored: dict[int, int] = {}
        for item in items:
            restored[item.product_id] = restored.get(item.product_id, 0) + item.quantity

        entries = ledger.lock_entries(session, [(sale.client_id, pid) for pid in restored])
        for product_id, quantity in sorted(restored.items()):
            ledger.adjust(
                session,
                sale.client_id,
                product_id,
                quantity,
                create=True,
                entry=entries.get((sale.client_id, product_id)),
            )
        uow.check_deadline("restore")

        sale.status = SALE_STATUS_VOIDED
        sale.voided_at = utcnow()
        session.flush()
        return sale, True

    sale, changed = run_in_unit_of_work(session, _op, timeout=timeout, attempts=attempts)
    if changed:
        log.info("Uplift sale %s voided; stock restored for client %s", sale.id, sale.client_id)
    return sale


def update_sale_status(
    session,
    sale_id: int,
    status: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_ATTEMPTS,
) -> UpliftSale:
    """
    Change a sale's business status.

    "voided" goes through void_sale(). A voided sale accepts no other status.
    """
    if not isinstance(status, str) or not status.strip():
        raise ValidationError("status is required", details={"field": "status"})
    status = status.strip()
    if len(status) > 32:
        raise ValidationError("status must be at most 32 characters", details={"field": "status"})

    if status == SALE_STATUS_VOIDED:
        return void_sale(session, sale_id, timeout=timeout, attempts=attempts)

    def _op(uow):
        sale = lock_for_update(session.query(UpliftSale).filter_by(id=sale_id)).populate_existing().first()
        if sale is None:
            raise SaleNotFound(sale_id)
        if sale.is_voided:
            raise InvalidStatusTransition(sale_id, sale.status, status)
        sale.status = status
        session.flush()
        return sale

    return run_in_unit_of_work(session, _op, timeout=timeout, attempts=attempts)


def get_sale(session, sale_id: int) -> UpliftSale:
    sale = (
        session.query(UpliftSale)
        .options(selectinload(UpliftSale.items))
        .filter_by(id=sale_id)
        .first()
    )
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


def list_sales(
    session,
    *,
    status: str | None = None,
    client_id: int | None = None,
    user_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[UpliftSale], int]:
    """Sales newest first, with optional filters. Returns (page of sales, total count)."""
    query = session.query(UpliftSale)
    if status:
        query = query.filter(UpliftSale.status == status)
    if client_id is not None:
        query = query.filter(UpliftSale.client_id == client_id)
    if user_id is not None:
        query = query.filter(UpliftSale.user_id == user_id)
    if start is not None:
        query = query.filter(UpliftSale.created_at >= start)
    if end is not None:
        query = query.filter(UpliftSale.created_at <= end)

    total = query.count()
    sales = (
        query.options(selectinload(UpliftSale.items))
        .order_by(UpliftSale.created_at.desc(), UpliftSale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return sales, total
