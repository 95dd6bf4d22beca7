# Overview: Flask API routes for expenses; parses input and returns JSON responses.

"""
Expense API

- GET    /api/finance/expenses                  -> paginated list
- GET    /api/finance/expenses/summary          -> totals by category and status
- POST   /api/finance/expenses                  -> create (Pending accrues, Paid pays)
- GET    /api/finance/expenses/<id>             -> one expense
- PUT    /api/finance/expenses/<id>             -> edit
- PATCH  /api/finance/expenses/<id>/approve     -> mark paid
- DELETE /api/finance/expenses/<id>             -> delete with its ledger entries

<id> is the numeric row id or the EXP-... business id.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import expense_service
from ..services.auth_service import FINANCE_ROLES, REPORT_ROLES
from ..validation import parse_datetime_field, parse_optional_id, parse_pagination


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/finance/expenses")


def _list_filters(args) -> dict:
    return {
        "residence_id": parse_optional_id(args.get("residence_id"), "residence_id"),
        "start": parse_datetime_field(args.get("start_date"), "start_date"),
        "end": parse_datetime_field(args.get("end_date"), "end_date"),
    }


@expenses_bp.get("")
@require_auth
@require_role(*REPORT_ROLES)
def list_expenses_route():
    """Query params: status, category, residence_id, start_date, end_date, search, page, per_page"""
    try:
        page, per_page = parse_pagination(request.args)
        items, total = expense_service.list_expenses(
            status=request.args.get("status"),
            category=request.args.get("category"),
            search=request.args.get("search"),
            page=page,
            per_page=per_page,
            **_list_filters(request.args),
        )
        return jsonify({
            "success": True,
            "expenses": [e.to_dict() for e in items],
            "pagination": {"page": page, "per_page": per_page, "total": total},
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list expenses")
        return internal_error()


@expenses_bp.get("/summary")
@require_auth
@require_role(*REPORT_ROLES)
def expense_summary_route():
    try:
        summary = expense_service.expense_summary(**_list_filters(request.args))
        return jsonify({"success": True, "summary": summary}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to summarize expenses")
        return internal_error()


@expenses_bp.post("")
@require_auth
@require_role(*FINANCE_ROLES)
def create_expense_route():
    """
    Request body:
    {
        "category": "Utilities",
        "description": "March electricity",
        "amount": 120.50,
        "expense_date": "2026-03-05",        (optional, defaults to now)
        "payment_status": "Pending" | "Paid",
        "payment_method": "Bank Transfer",   (required when Paid)
        "residence_id": 1,                   (optional)
        "vendor": "ZESA"                     (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.create_expense(data, user_id=g.current_user.id)
        return jsonify({"success": True, "expense": expense.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return internal_error()


@expenses_bp.get("/<expense_id>")
@require_auth
@require_role(*REPORT_ROLES)
def get_expense_route(expense_id: str):
    try:
        expense = expense_service.get_expense(expense_id)
        return jsonify({"success": True, "expense": expense.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get expense")
        return internal_error()


@expenses_bp.put("/<expense_id>")
@require_auth
@require_role(*FINANCE_ROLES)
def update_expense_route(expense_id: str):
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.update_expense(expense_id, data, user_id=g.current_user.id)
        return jsonify({"success": True, "expense": expense.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update expense")
        return internal_error()


@expenses_bp.patch("/<expense_id>/approve")
@require_auth
@require_role(*FINANCE_ROLES)
def approve_expense_route(expense_id: str):
    """
    Request body:
    {
        "payment_method": "Cash",     (required)
        "paid_date": "2026-03-10"     (optional, defaults to now)
    }

    Settles the payable when the expense was accrued, otherwise posts
    Expense Dr / Cash Cr directly.
    """
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.approve_expense(expense_id, data, user_id=g.current_user.id)
        return jsonify({"success": True, "expense": expense.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve expense")
        return internal_error()


@expenses_bp.delete("/<expense_id>")
@require_auth
@require_role(*FINANCE_ROLES)
def delete_expense_route(expense_id: str):
    try:
        result = expense_service.delete_expense(expense_id, user_id=g.current_user.id)
        return jsonify({"success": True, "message": "Expense deleted", **result}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return internal_error()
