# Overview: Service-layer operations for bulk client stock updates with per-entry success/failure.

"""
Bulk stock updates

One request carries many {clientId, productId, quantity, operation} entries.
Entries succeed or fail independently: a bad entry is reported in
`failures` and never rolls back the good ones.

All entries run in ONE transaction:
- validation happens first, without touching storage
- existing ledger rows for every key are batch-read (and locked) up front
- entries are applied in submitted order, each inside its own savepoint, so
  two entries on the same key see each other's effect and a storage error
  on one entry only discards that entry

If the transaction runs past its deadline nothing is committed; every entry
that had passed validation is reported as a Timeout failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import DataError, IntegrityError

from ..errors import (
    ClientNotFound,
    CoreError,
    InvalidQuantity,
    NoSuchStock,
    ProductNotFound,
    UnitOfWorkTimeout,
    ValidationError,
)
from ..models import Client, Product
from ..validation import MAX_QUANTITY, coerce_int
from . import stock_ledger_service as ledger
from .concurrency import DEFAULT_ATTEMPTS, DEFAULT_TIMEOUT_SECONDS, run_in_unit_of_work

log = logging.getLogger(__name__)

OPERATION_SET = "set"
OPERATION_ADD = "add"
OPERATION_SUBTRACT = "subtract"
OPERATIONS = (OPERATION_SET, OPERATION_ADD, OPERATION_SUBTRACT)


@dataclass
class StockAdjustment:
    """One validated bulk entry."""
    index: int
    client_id: int
    product_id: int
    quantity: int
    operation: str

    @property
    def key(self) -> tuple[int, int]:
        return (self.client_id, self.product_id)


@dataclass
class BulkAdjustmentResult:
    successes: list[dict] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)

    def add_success(self, adjustment: StockAdjustment, previous: int | None, entry) -> None:
        self.successes.append({
            "index": adjustment.index,
            "id": entry.id,
            "client_id": adjustment.client_id,
            "product_id": adjustment.product_id,
            "operation": adjustment.operation,
            "quantity": adjustment.quantity,
            "previous_quantity": previous,
            "new_quantity": entry.quantity,
        })

    def add_failure(self, index: int, client_id, product_id, error: CoreError) -> None:
        self.failures.append({
            "index": index,
            "client_id": client_id,
            "product_id": product_id,
            "code": error.code,
            "error": error.message,
            "details": error.details,
        })

    def to_dict(self) -> dict:
        return {
            "successful": self.successes,
            "errors": self.failures,
            "success_count": len(self.successes),
            "error_count": len(self.failures),
        }


def _pick(entry: dict, *names: str):
    for name in names:
        if name in entry:
            return entry[name]
    return None


def parse_entry(index: int, raw) -> StockAdjustment:
    """
    Validate one raw entry.

    Quantity rules: set >= 0, add/subtract > 0. Operation defaults to "set".
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Entry {index} must be an object", details={"index": index})

    client_id = _pick(raw, "clientId", "client_id")
    product_id = _pick(raw, "productId", "product_id")
    quantity = raw.get("quantity")
    if client_id is None or product_id is None or quantity is None:
        raise ValidationError(
            "clientId, productId, and quantity are required",
            details={"index": index},
        )

    operation = raw.get("operation") or OPERATION_SET
    if operation not in OPERATIONS:
        raise ValidationError(
            f"operation must be one of {', '.join(OPERATIONS)}",
            details={"index": index, "operation": operation},
        )

    try:
        client_id = coerce_int(client_id, "clientId", minimum=1)
        product_id = coerce_int(product_id, "productId", minimum=1)
        quantity = coerce_int(quantity, "quantity", maximum=MAX_QUANTITY)
    except ValidationError as exc:
        exc.details.setdefault("index", index)
        raise

    if operation == OPERATION_SET:
        if quantity < 0:
            raise InvalidQuantity(quantity, client_id=client_id, product_id=product_id)
    elif quantity <= 0:
        raise ValidationError(
            f"quantity must be a positive integer for {operation}",
            details={"index": index, "quantity": quantity, "operation": operation},
        )

    return StockAdjustment(
        index=index,
        client_id=client_id,
        product_id=product_id,
        quantity=quantity,
        operation=operation,
    )


def _apply(session, adjustment: StockAdjustment, entry):
    """Apply one entry through the ledger primitives. `entry` is the locked row or None."""
    if adjustment.operation == OPERATION_SET:
        return ledger.upsert_set(
            session, adjustment.client_id, adjustment.product_id, adjustment.quantity, entry=entry
        )
    if adjustment.operation == OPERATION_ADD:
        return ledger.adjust(
            session, adjustment.client_id, adjustment.product_id, adjustment.quantity,
            create=True, entry=entry,
        )
    if entry is None:
        raise NoSuchStock(client_id=adjustment.client_id, product_id=adjustment.product_id)
    return ledger.adjust(
        session, adjustment.client_id, adjustment.product_id, -adjustment.quantity, entry=entry
    )


def _existing_ids(session, model, ids: set[int]) -> set[int]:
    if not ids:
        return set()
    return {row[0] for row in session.query(model.id).filter(model.id.in_(ids)).all()}


def bulk_adjust(
    session,
    entries,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    attempts: int = DEFAULT_ATTEMPTS,
) -> BulkAdjustmentResult:
    """
    Apply a batch of stock updates with partial-success semantics.

    Raises only for a malformed batch (entries not a list); everything else
    is reported per entry in the result.
    """
    if not isinstance(entries, (list, tuple)):
        raise ValidationError("updates must be a list", details={"field": "updates"})

    result = BulkAdjustmentResult()
    valid: list[StockAdjustment] = []
    for index, raw in enumerate(entries):
        try:
            valid.append(parse_entry(index, raw))
        except ValidationError as exc:
            raw = raw if isinstance(raw, dict) else {}
            result.add_failure(index, _pick(raw, "clientId", "client_id"), _pick(raw, "productId", "product_id"), exc)

    known_clients = _existing_ids(session, Client, {a.client_id for a in valid})
    known_products = _existing_ids(session, Product, {a.product_id for a in valid})
    applicable: list[StockAdjustment] = []
    for adjustment in valid:
        if adjustment.client_id not in known_clients:
            result.add_failure(adjustment.index, adjustment.client_id, adjustment.product_id,
                               ClientNotFound(adjustment.client_id))
        elif adjustment.product_id not in known_products:
            result.add_failure(adjustment.index, adjustment.client_id, adjustment.product_id,
                               ProductNotFound(adjustment.product_id))
        else:
            applicable.append(adjustment)

    if not applicable:
        result.failures.sort(key=lambda f: f["index"])
        return result

    def _op(uow):
        batch = BulkAdjustmentResult()
        rows = ledger.lock_entries(session, [a.key for a in applicable])
        for adjustment in applicable:
            uow.check_deadline(f"entry {adjustment.index}")
            entry = rows.get(adjustment.key)
            previous = entry.quantity if entry is not None else None
            nested = session.begin_nested()
            try:
                entry = _apply(session, adjustment, entry)
                nested.commit()
            except CoreError as exc:
                nested.rollback()
                batch.add_failure(adjustment.index, adjustment.client_id, adjustment.product_id, exc)
                continue
            except (IntegrityError, DataError) as exc:
                nested.rollback()
                log.warning("Bulk entry %d rejected by storage: %s", adjustment.index, exc.orig)
                batch.add_failure(
                    adjustment.index, adjustment.client_id, adjustment.product_id,
                    ValidationError("Entry violates a storage constraint", details={"index": adjustment.index}),
                )
                continue
            rows[adjustment.key] = entry
            batch.add_success(adjustment, previous, entry)
        return batch

    try:
        batch = run_in_unit_of_work(session, _op, timeout=timeout, attempts=attempts)
    except UnitOfWorkTimeout as exc:
        log.warning("Bulk stock update of %d entries aborted, nothing applied: %s", len(applicable), exc.message)
        for adjustment in applicable:
            result.add_failure(adjustment.index, adjustment.client_id, adjustment.product_id, exc)
    else:
        result.successes.extend(batch.successes)
        result.failures.extend(batch.failures)
        log.info(
            "Bulk stock update: %d applied, %d rejected",
            len(result.successes), len(result.failures),
        )

    result.failures.sort(key=lambda f: f["index"])
    return result
