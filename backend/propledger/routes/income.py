# Overview: Flask API routes for other income; parses input and returns JSON responses.

"""
Other Income API

- GET    /api/finance/other-income                -> paginated list
- GET    /api/finance/other-income/summary        -> totals by category and status
- POST   /api/finance/other-income                -> create (Received posts a receipt)
- GET    /api/finance/other-income/<id>
- PATCH  /api/finance/other-income/<id>/receive   -> Pending -> Received
- POST   /api/finance/other-income/<id>/refund    -> Received -> Refunded
- DELETE /api/finance/other-income/<id>
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import income_service
from ..services.auth_service import FINANCE_ROLES, REPORT_ROLES
from ..validation import parse_datetime_field, parse_optional_id, parse_pagination


income_bp = Blueprint("income", __name__, url_prefix="/api/finance/other-income")


def _range_filters(args) -> dict:
    return {
        "residence_id": parse_optional_id(args.get("residence_id"), "residence_id"),
        "start": parse_datetime_field(args.get("start_date"), "start_date"),
        "end": parse_datetime_field(args.get("end_date"), "end_date"),
    }


@income_bp.get("")
@require_auth
@require_role(*REPORT_ROLES)
def list_income_route():
    try:
        page, per_page = parse_pagination(request.args)
        items, total = income_service.list_income(
            status=request.args.get("status"),
            category=request.args.get("category"),
            page=page,
            per_page=per_page,
            **_range_filters(request.args),
        )
        return jsonify({
            "success": True,
            "income": [i.to_dict() for i in items],
            "pagination": {"page": page, "per_page": per_page, "total": total},
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list income")
        return internal_error()


@income_bp.get("/summary")
@require_auth
@require_role(*REPORT_ROLES)
def income_summary_route():
    try:
        return jsonify({"success": True, "summary": income_service.income_summary(**_range_filters(request.args))}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to summarize income")
        return internal_error()


@income_bp.post("")
@require_auth
@require_role(*FINANCE_ROLES)
def create_income_route():
    """
    Request body:
    {
        "category": "Parking",
        "description": "Visitor parking March",
        "amount": 40,
        "payment_status": "Pending" | "Received",
        "payment_method": "Cash",           (required when Received)
        "income_date": "2026-03-01",        (optional)
        "residence_id": 1                   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        income = income_service.create_income(data, user_id=g.current_user.id)
        return jsonify({"success": True, "income": income.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create income")
        return internal_error()


@income_bp.get("/<income_id>")
@require_auth
@require_role(*REPORT_ROLES)
def get_income_route(income_id: str):
    try:
        return jsonify({"success": True, "income": income_service.get_income(income_id).to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get income")
        return internal_error()


@income_bp.patch("/<income_id>/receive")
@require_auth
@require_role(*FINANCE_ROLES)
def receive_income_route(income_id: str):
    try:
        data = request.get_json(silent=True) or {}
        income = income_service.receive_income(income_id, data, user_id=g.current_user.id)
        return jsonify({"success": True, "income": income.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive income")
        return internal_error()


@income_bp.post("/<income_id>/refund")
@require_auth
@require_role(*FINANCE_ROLES)
def refund_income_route(income_id: str):
    """Request body: {"reason": "...", "payment_method": "..."} (both optional)"""
    try:
        data = request.get_json(silent=True) or {}
        income = income_service.refund_income(income_id, data, user_id=g.current_user.id)
        return jsonify({"success": True, "income": income.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refund income")
        return internal_error()


@income_bp.delete("/<income_id>")
@require_auth
@require_role(*FINANCE_ROLES)
def delete_income_route(income_id: str):
    try:
        result = income_service.delete_income(income_id, user_id=g.current_user.id)
        return jsonify({"success": True, "message": "Income deleted", **result}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete income")
        return internal_error()
