# Overview: Flask API routes for client stock; parses input and returns JSON responses.

# backend/sfa/routes/client_stock.py
"""
Client stock routes.

All endpoints are gated by the CLIENT_STOCK_ENABLED feature flag.
Quantities only change through the stock ledger service.
"""

import math

from flask import Blueprint, current_app, jsonify, request

from ..decorators import handle_service_errors, require_client_stock_enabled
from ..errors import ValidationError
from ..extensions import db
from ..services import bulk_stock_service, stock_ledger_service
from ..validation import MAX_QUANTITY, coerce_int, parse_pagination


client_stock_bp = Blueprint("client_stock", __name__, url_prefix="/api/client-stock")


def _uow_options() -> dict:
    return {
        "timeout": current_app.config["UNIT_OF_WORK_TIMEOUT_SECONDS"],
        "attempts": current_app.config["UNIT_OF_WORK_RETRY_ATTEMPTS"],
    }


def _page_response(entries, total: int, page: int, limit: int):
    return jsonify({
        "success": True,
        "data": [entry.to_dict(include_product=True) for entry in entries],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }), 200


@client_stock_bp.get("")
@require_client_stock_enabled
@handle_service_errors("fetch client stock")
def list_client_stock_route():
    page, limit = parse_pagination(request.args)
    entries, total = stock_ledger_service.list_client_stock(
        db.session,
        client_id=coerce_int(request.args.get("clientId"), "clientId", required=False),
        product_id=coerce_int(request.args.get("productId"), "productId", required=False),
        page=page,
        limit=limit,
    )
    return _page_response(entries, total, page, limit)


@client_stock_bp.get("/low-stock")
@require_client_stock_enabled
@handle_service_errors("fetch low stock alerts")
def low_stock_route():
    threshold = coerce_int(request.args.get("threshold"), "threshold", minimum=0, required=False)
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    entries = stock_ledger_service.low_stock(
        db.session,
        threshold=threshold,
        client_id=coerce_int(request.args.get("clientId"), "clientId", required=False),
    )
    return jsonify({
        "success": True,
        "data": [entry.to_dict(include_product=True) for entry in entries],
        "threshold": threshold,
    }), 200


@client_stock_bp.get("/<int:client_id>")
@require_client_stock_enabled
@handle_service_errors("fetch client stock")
def get_client_stock_route(client_id: int):
    page, limit = parse_pagination(request.args)
    entries, total = stock_ledger_service.list_client_stock(
        db.session, client_id=client_id, page=page, limit=limit
    )
    return _page_response(entries, total, page, limit)


@client_stock_bp.post("")
@require_client_stock_enabled
@handle_service_errors("update client stock")
def upsert_client_stock_route():
    """
    Create or overwrite one client's stock of one product.

    Body: {"clientId", "productId", "quantity"}
    """
    data = request.get_json(silent=True) or {}
    client_id = data.get("clientId", data.get("client_id"))
    product_id = data.get("productId", data.get("product_id"))
    quantity = data.get("quantity")
    if client_id is None or product_id is None or quantity is None:
        raise ValidationError("clientId, productId, and quantity are required")

    entry = stock_ledger_service.set_client_stock(
        db.session,
        coerce_int(client_id, "clientId", minimum=1),
        coerce_int(product_id, "productId", minimum=1),
        coerce_int(quantity, "quantity", maximum=MAX_QUANTITY),
        **_uow_options(),
    )
    return jsonify({
        "success": True,
        "message": "Client stock updated successfully",
        "data": entry.to_dict(include_product=True),
    }), 201


@client_stock_bp.post("/bulk")
@require_client_stock_enabled
@handle_service_errors("bulk update client stock")
def bulk_update_client_stock_route():
    """
    Apply many stock updates; each entry succeeds or fails on its own.

    Body: {"updates": [{"clientId", "productId", "quantity", "operation": "set"|"add"|"subtract"}]}
    """
    data = request.get_json(silent=True) or {}
    updates = data.get("updates")
    if not isinstance(updates, list) or not updates:
        raise ValidationError("Updates array is required and cannot be empty", details={"field": "updates"})

    result = bulk_stock_service.bulk_adjust(db.session, updates, **_uow_options())
    return jsonify({
        "success": True,
        "message": f"Processed {len(result.successes)} updates successfully",
        "data": result.to_dict(),
    }), 200


@client_stock_bp.get("/entry/<int:entry_id>")
@require_client_stock_enabled
@handle_service_errors("fetch client stock entry")
def get_client_stock_entry_route(entry_id: int):
    entry = stock_ledger_service.get_entry_by_id(db.session, entry_id)
    return jsonify({"success": True, "data": entry.to_dict(include_product=True)}), 200


@client_stock_bp.delete("/entry/<int:entry_id>")
@require_client_stock_enabled
@handle_service_errors("delete client stock")
def delete_client_stock_route(entry_id: int):
    stock_ledger_service.delete_entry(db.session, entry_id)
    return jsonify({
        "success": True,
        "message": "Client stock entry deleted successfully",
    }), 200
