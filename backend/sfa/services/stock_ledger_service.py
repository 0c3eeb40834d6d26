# Overview: Service-layer operations for the client stock ledger; the only writer of ClientStock.quantity.

"""
Client Stock Ledger Invariants (authoritative)

Ledger model:
- One ClientStock row per (client_id, product_id) key; the row is the single
  source of truth for on-hand stock at that client.
- An absent row reads as quantity 0 but is a distinct state for writes:
  subtracting from it is NoSuchStock, never an implicit create.

Business invariants:
- quantity >= 0 after every committed transaction.
- quantity changes ONLY through adjust() and upsert_set() below. Sale, void
  and bulk services call these; nothing assigns ClientStock.quantity directly.

Concurrency:
- adjust() and upsert_set() run inside a UnitOfWork and read the row with
  SELECT ... FOR UPDATE, so writes to one key are linearizable.
- Multi-key callers lock through lock_entries(), which always locks in sorted
  key order to avoid deadlocks between overlapping transactions.
- ClientStock carries a version column; a lost update surfaces as
  StaleDataError and the UnitOfWork retries.
"""

from __future__ import annotations

import logging

from sqlalchemy import tuple_
from sqlalchemy.exc import IntegrityError

from ..errors import (
    ClientNotFound,
    InsufficientStock,
    InvalidQuantity,
    NoSuchStock,
    ProductNotFound,
    StockEntryNotFound,
)
from ..models import Client, ClientStock, Product
from ..validation import MAX_QUANTITY
from .concurrency import DEFAULT_ATTEMPTS, DEFAULT_TIMEOUT_SECONDS, lock_for_update, run_in_unit_of_work

log = logging.getLogger(__name__)


def get_entry(session, client_id: int, product_id: int, *, lock: bool = False) -> ClientStock | None:
    query = session.query(ClientStock).filter_by(client_id=client_id, product_id=product_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_quantity(session, client_id: int, product_id: int) -> int | None:
    """Current on-hand quantity, or None when the key has no row yet."""
    quantity = (
        session.query(ClientStock.quantity)
        .filter_by(client_id=client_id, product_id=product_id)
        .scalar()
    )
    return int(quantity) if quantity is not None else None


def lock_entries(session, keys) -> dict[tuple[int, int], ClientStock]:
    """
    Batch-read and lock the ledger rows for many keys.

    Keys without a row are simply missing from the result.
    """
    ordered = sorted(set(keys))
    if not ordered:
        return {}
    query = (
        session.query(ClientStock)
        .filter(tuple_(ClientStock.client_id, ClientStock.product_id).in_(ordered))
        .order_by(ClientStock.client_id, ClientStock.product_id)
    )
    return {entry.key: entry for entry in lock_for_update(query).all()}


def _check_storable(quantity: int, client_id: int, product_id: int) -> None:
    if quantity < 0:
        raise InvalidQuantity(quantity, client_id=client_id, product_id=product_id)
    if quantity > MAX_QUANTITY:
        raise InvalidQuantity(
            quantity,
            client_id=client_id,
            product_id=product_id,
            message=f"Quantity {quantity} exceeds the maximum of {MAX_QUANTITY}",
        )


def _insert_entry(session, client_id: int, product_id: int, quantity: int) -> tuple[ClientStock, bool]:
    """
    Insert a new row for the key inside a savepoint.

    A concurrent transaction may have created the same key since we looked;
    the unique constraint catches that and the existing row is returned
    (locked) with created=False.
    """
    entry = ClientStock(client_id=client_id, product_id=product_id, quantity=quantity)
    nested = session.begin_nested()
    try:
        session.add(entry)
        session.flush()
    except IntegrityError:
        nested.rollback()
        existing = get_entry(session, client_id, product_id, lock=True)
        if existing is None:
            raise
        return existing, False
    nested.commit()
    return entry, True


def upsert_set(session, client_id: int, product_id: int, quantity: int, *, entry: ClientStock | None = None) -> ClientStock:
    """
    Overwrite the quantity for a key, creating the row if absent.

    `entry` may be passed when the caller already holds the locked row.
    Must be called inside a UnitOfWork.
    """
    _check_storable(quantity, client_id, product_id)

    if entry is None:
        entry = get_entry(session, client_id, product_id, lock=True)
    if entry is None:
        entry, created = _insert_entry(session, client_id, product_id, quantity)
        if created:
            return entry

    entry.quantity = quantity
    session.flush()
    return entry


def adjust(
    session,
    client_id: int,
    product_id: int,
    delta: int,
    *,
    create: bool = False,
    entry: ClientStock | None = None,
) -> ClientStock:
    """
    Apply quantity += delta to one key.

    - Result below zero: InsufficientStock, nothing applied.
    - Result past MAX_QUANTITY: InvalidQuantity, nothing applied.
    - Absent row: NoSuchStock, unless create=True and delta >= 0 (the row
      is created holding delta).

    Must be called inside a UnitOfWork.
    """
    if entry is None:
        entry = get_entry(session, client_id, product_id, lock=True)

    if entry is None:
        if create and delta >= 0:
            _check_storable(delta, client_id, product_id)
            existing, created = _insert_entry(session, client_id, product_id, delta)
            if created:
                return existing
            return adjust(session, client_id, product_id, delta, entry=existing)
        if delta < 0:
            raise InsufficientStock(
                client_id=client_id, product_id=product_id, available=0, requested=-delta
            )
        raise NoSuchStock(client_id=client_id, product_id=product_id)

    new_quantity = entry.quantity + delta
    if new_quantity < 0:
        raise InsufficientStock(
            client_id=client_id,
            product_id=product_id,
            available=entry.quantity,
            requested=-delta,
        )
    _check_storable(new_quantity, client_id, product_id)

    entry.quantity = new_quantity
    session.flush()
    return entry


def _require_client(session, client_id: int) -> Client:
    client = session.get(Client, client_id)
    if client is None:
        raise ClientNotFound(client_id)
    return client


def _require_product(session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


def set_client_stock(
    session,
    client_id: int,
    product_id: int,
    quantity: int,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_ATTEMPTS,
) -> ClientStock:
    """
    Create or overwrite one client's stock of one product (standalone request).
    """
    _check_storable(quantity, client_id, product_id)
    _require_client(session, client_id)
    _require_product(session, product_id)

    def _op(uow):
        return upsert_set(session, client_id, product_id, quantity)

    entry = run_in_unit_of_work(session, _op, timeout=timeout, attempts=attempts)
    log.info("Client %s stock of product %s set to %s", client_id, product_id, quantity)
    return entry


def get_entry_by_id(session, entry_id: int) -> ClientStock:
    entry = session.get(ClientStock, entry_id)
    if entry is None:
        raise StockEntryNotFound(entry_id)
    return entry


def delete_entry(session, entry_id: int) -> None:
    """Administrative removal of a ledger row."""
    entry = get_entry_by_id(session, entry_id)
    client_id, product_id = entry.key
    session.delete(entry)
    session.commit()
    log.info("Deleted client stock entry %s (client %s, product %s)", entry_id, client_id, product_id)


def list_client_stock(
    session,
    *,
    client_id: int | None = None,
    product_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ClientStock], int]:
    query = session.query(ClientStock)
    if client_id is not None:
        query = query.filter(ClientStock.client_id == client_id)
    if product_id is not None:
        query = query.filter(ClientStock.product_id == product_id)

    total = query.count()
    entries = (
        query.order_by(ClientStock.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return entries, total


def low_stock(session, *, threshold: int = 10, client_id: int | None = None) -> list[ClientStock]:
    """Ledger rows at or below threshold, lowest first."""
    query = session.query(ClientStock).filter(ClientStock.quantity <= threshold)
    if client_id is not None:
        query = query.filter(ClientStock.client_id == client_id)
    return query.order_by(ClientStock.quantity.asc(), ClientStock.id.asc()).all()
