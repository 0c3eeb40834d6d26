# Overview: Flask API routes for uplift sales; parses input and returns JSON responses.

# backend/sfa/routes/uplift_sales.py
"""Uplift sale API routes"""

import math

from flask import Blueprint, current_app, jsonify, request

from ..decorators import handle_service_errors
from ..errors import ValidationError
from ..extensions import db
from ..services import uplift_sale_service
from ..time_utils import parse_filter_datetime
from ..validation import coerce_int, parse_pagination


uplift_sales_bp = Blueprint("uplift_sales", __name__, url_prefix="/api/uplift-sales")


def _uow_options() -> dict:
    return {
        "timeout": current_app.config["UNIT_OF_WORK_TIMEOUT_SECONDS"],
        "attempts": current_app.config["UNIT_OF_WORK_RETRY_ATTEMPTS"],
    }


def _parse_date(value, field: str, *, end_of_day: bool = False):
    try:
        return parse_filter_datetime(value, end_of_day=end_of_day)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date", details={"field": field})


def _list_response(sales, total: int, page: int, limit: int):
    pages = math.ceil(total / limit) if limit else 0
    return jsonify({
        "success": True,
        "data": [sale.to_dict() for sale in sales],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "has_next_page": page < pages,
            "has_previous_page": page > 1,
        },
    }), 200


@uplift_sales_bp.post("")
@handle_service_errors("create uplift sale")
def create_uplift_sale_route():
    """
    Create an uplift sale and deduct its items from the client's stock.

    Body: {"clientId", "userId", "items": [{"productId", "quantity", "unitPrice"}]}
    """
    data = request.get_json(silent=True) or {}
    client_id = coerce_int(data.get("clientId", data.get("client_id")), "clientId", minimum=1)
    user_id = coerce_int(data.get("userId", data.get("user_id")), "userId", minimum=1)

    sale = uplift_sale_service.create_sale(
        db.session,
        client_id,
        user_id,
        data.get("items"),
        **_uow_options(),
    )
    return jsonify({
        "success": True,
        "message": "Uplift sale created successfully",
        "data": sale.to_dict(),
    }), 201


@uplift_sales_bp.get("")
@handle_service_errors("fetch uplift sales")
def list_uplift_sales_route():
    page, limit = parse_pagination(request.args)
    sales, total = uplift_sale_service.list_sales(
        db.session,
        status=request.args.get("status") or None,
        client_id=coerce_int(request.args.get("clientId"), "clientId", required=False),
        user_id=coerce_int(request.args.get("userId"), "userId", required=False),
        start=_parse_date(request.args.get("startDate"), "startDate"),
        end=_parse_date(request.args.get("endDate"), "endDate", end_of_day=True),
        page=page,
        limit=limit,
    )
    return _list_response(sales, total, page, limit)


@uplift_sales_bp.get("/user/<int:user_id>")
@handle_service_errors("fetch uplift sales")
def list_uplift_sales_by_user_route(user_id: int):
    page, limit = parse_pagination(request.args)
    sales, total = uplift_sale_service.list_sales(
        db.session,
        user_id=user_id,
        status=request.args.get("status") or None,
        start=_parse_date(request.args.get("startDate"), "startDate"),
        end=_parse_date(request.args.get("endDate"), "endDate", end_of_day=True),
        page=page,
        limit=limit,
    )
    return _list_response(sales, total, page, limit)


@uplift_sales_bp.get("/<int:sale_id>")
@handle_service_errors("fetch uplift sale")
def get_uplift_sale_route(sale_id: int):
    sale = uplift_sale_service.get_sale(db.session, sale_id)
    return jsonify({"success": True, "data": sale.to_dict()}), 200


@uplift_sales_bp.patch("/<int:sale_id>/status")
@handle_service_errors("update uplift sale status")
def update_uplift_sale_status_route(sale_id: int):
    """
    Change the sale status. "voided" restores the sale's stock (once).
    """
    data = request.get_json(silent=True) or {}
    sale = uplift_sale_service.update_sale_status(
        db.session, sale_id, data.get("status"), **_uow_options()
    )
    return jsonify({
        "success": True,
        "message": "Status updated successfully",
        "data": sale.to_dict(),
    }), 200


@uplift_sales_bp.post("/<int:sale_id>/void")
@handle_service_errors("void uplift sale")
def void_uplift_sale_route(sale_id: int):
    """Void the sale and revert its stock. Repeating the call is a no-op."""
    sale = uplift_sale_service.void_sale(db.session, sale_id, **_uow_options())
    return jsonify({
        "success": True,
        "message": "Uplift sale voided and stock reverted",
        "data": sale.to_dict(),
    }), 200
