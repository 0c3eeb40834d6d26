from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError


# Maximum unit price: 9,999,999.99
# This prevents database overflow issues and nonsensical prices
MAX_UNIT_PRICE = Decimal("9999999.99")

CENTS = Decimal("0.01")

# Largest value an INTEGER column holds on every supported backend
MAX_DB_INT = 2**31 - 1
MAX_QUANTITY = MAX_DB_INT

# Numeric(14,2) on uplift_sales.total_amount, Numeric(12,2) on item totals
MAX_SALE_TOTAL = Decimal("999999999999.99")
MAX_LINE_TOTAL = Decimal("9999999999.99")


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def coerce_int(
    value: Any,
    field: str,
    *,
    minimum: int | None = None,
    maximum: int | None = MAX_DB_INT,
    required: bool = True,
) -> int | None:
    """
    Strict integer coercion for ids and quantities.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals
    and scientific notation ("1e3").
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={"field": field})

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", details={"field": field})
    else:
        raise ValidationError(f"{field} must be an integer", details={"field": field})

    if minimum is not None and result < minimum:
        raise ValidationError(
            f"{field} must be >= {minimum}",
            details={"field": field, "value": result},
        )
    if maximum is not None and result > maximum:
        raise ValidationError(
            f"{field} must be <= {maximum}",
            details={"field": field, "value": result},
        )
    return result


def coerce_money(value: Any, field: str) -> Decimal:
    """Parse a non-negative amount into a cents-quantized Decimal."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required", details={"field": field})

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            # str() keeps 2.1 as 2.1 instead of its binary expansion
            amount = Decimal(str(value))
        elif isinstance(value, str) and value.strip():
            amount = Decimal(value.strip())
        else:
            raise ValidationError(f"{field} must be a number", details={"field": field})
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", details={"field": field})

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", details={"field": field})
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", details={"field": field, "value": str(amount)})
    if amount > MAX_UNIT_PRICE:
        raise ValidationError(
            f"{field} exceeds maximum of {MAX_UNIT_PRICE}",
            details={"field": field, "value": str(amount)},
        )
    return quantize_money(amount)


def _pick(payload: dict, *names: str):
    """First present key wins; accepts both camelCase (API) and snake_case (service) spellings."""
    for name in names:
        if name in payload:
            return payload[name]
    return None


def normalize_sale_items(items: Any) -> list[dict]:
    """
    Validate the requested line items of an uplift sale.

    Returns a list of {"product_id", "quantity", "unit_price", "total"} in
    submitted order. Raises ValidationError naming the first offending item.
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("items must be a non-empty list", details={"field": "items"})

    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(
                f"items[{index}] must be an object",
                details={"field": "items", "index": index},
            )
        try:
            product_id = coerce_int(_pick(item, "productId", "product_id"), "productId", minimum=1)
            quantity = coerce_int(_pick(item, "quantity"), "quantity", minimum=1, maximum=MAX_QUANTITY)
            unit_price = coerce_money(_pick(item, "unitPrice", "unit_price"), "unitPrice")
        except ValidationError as exc:
            exc.details.setdefault("index", index)
            raise
        total = quantize_money(unit_price * quantity)
        if total > MAX_LINE_TOTAL:
            raise ValidationError(
                f"items[{index}] total exceeds maximum of {MAX_LINE_TOTAL}",
                details={"field": "items", "index": index, "total": str(total)},
            )
        normalized.append({
            "product_id": product_id,
            "quantity": quantity,
            "unit_price": unit_price,
            "total": total,
        })

    sale_total = sum((item["total"] for item in normalized), Decimal("0.00"))
    if sale_total > MAX_SALE_TOTAL:
        raise ValidationError(
            f"Sale total exceeds maximum of {MAX_SALE_TOTAL}",
            details={"field": "items", "total": str(sale_total)},
        )
    return normalized


def parse_pagination(args, *, default_limit: int = 20, max_limit: int = 200) -> tuple[int, int]:
    """Read page/limit query parameters (1-based page)."""
    page = coerce_int(args.get("page"), "page", minimum=1, required=False) or 1
    limit = coerce_int(args.get("limit"), "limit", minimum=1, required=False) or default_limit
    return page, min(limit, max_limit)
