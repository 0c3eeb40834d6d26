# Overview: Error taxonomy shared by the stock ledger, uplift sale and bulk stock services.

from __future__ import annotations


class CoreError(Exception):
    """
    Base class for business errors raised by the service layer.

    Every error carries a stable `code` (returned to API callers) and a
    `details` dict naming the offending entity.
    """
    code = "Error"
    http_status = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "error": self.message,
            "details": self.details,
        }


class ValidationError(CoreError, ValueError):
    """400-level input problem (missing or malformed field)."""
    code = "ValidationError"
    http_status = 400


class InvalidQuantity(ValidationError):
    """A stock quantity that can never be stored (negative, or past the column bound)."""
    code = "InvalidQuantity"

    def __init__(self, quantity, *, client_id=None, product_id=None, message: str | None = None):
        super().__init__(
            message or f"Quantity cannot be negative (got {quantity})",
            details={"client_id": client_id, "product_id": product_id, "quantity": quantity},
        )


class NotFound(CoreError):
    code = "NotFound"
    http_status = 404
    entity = "Resource"

    def __init__(self, entity_id, message: str | None = None):
        super().__init__(
            message or f"{self.entity} with ID {entity_id} not found",
            details={"id": entity_id, "entity": self.entity.lower().replace(" ", "_")},
        )
        self.entity_id = entity_id


class ClientNotFound(NotFound):
    code = "ClientNotFound"
    entity = "Client"


class UserNotFound(NotFound):
    code = "UserNotFound"
    entity = "Sales rep"


class ProductNotFound(NotFound):
    code = "ProductNotFound"
    entity = "Product"


class SaleNotFound(NotFound):
    code = "NotFound"
    entity = "Uplift sale"


class StockEntryNotFound(NotFound):
    code = "NotFound"
    entity = "Client stock entry"


class InsufficientStock(CoreError):
    """Requested quantity exceeds what the client holds (business rule, never retried)."""
    code = "InsufficientStock"
    http_status = 409

    def __init__(self, *, client_id: int, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product ID {product_id}. "
            f"Available: {available}, Requested: {requested}",
            details={
                "client_id": client_id,
                "product_id": product_id,
                "available": available,
                "requested": requested,
            },
        )
        self.client_id = client_id
        self.product_id = product_id
        self.available = available
        self.requested = requested


class NoSuchStock(CoreError):
    """Subtract against a (client, product) pair that has no stock row."""
    code = "NoSuchStock"
    http_status = 409

    def __init__(self, *, client_id: int, product_id: int):
        super().__init__(
            f"Cannot subtract from non-existent stock "
            f"(client ID {client_id}, product ID {product_id})",
            details={"client_id": client_id, "product_id": product_id},
        )
        self.client_id = client_id
        self.product_id = product_id


class InvalidStatusTransition(CoreError):
    code = "InvalidStatusTransition"
    http_status = 409

    def __init__(self, sale_id: int, current: str, requested: str):
        super().__init__(
            f"Cannot change status of uplift sale {sale_id} from {current} to {requested}",
            details={"sale_id": sale_id, "current_status": current, "requested_status": requested},
        )


class UnitOfWorkTimeout(CoreError):
    """
    The transaction could not finish in time and was rolled back; safe to retry.

    Raised when the deadline passes and when storage stays locked through
    every retry attempt.
    """
    code = "Timeout"
    http_status = 503

    def __init__(self, timeout: float, stage: str | None = None, message: str | None = None):
        super().__init__(
            message or f"Operation exceeded {timeout:g}s and was rolled back",
            details={"timeout_seconds": timeout, "stage": stage},
        )
        self.timeout = timeout
