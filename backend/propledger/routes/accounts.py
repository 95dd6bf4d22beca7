# Overview: Flask API routes for the chart of accounts; parses input and returns JSON responses.

"""
Chart of Accounts API

READ: finance roles and CEO.
WRITE: admin and finance_admin.

Account types are immutable once postings exist; deleting an account with
postings deactivates it instead.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, ValidationError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import account_service, account_resolver
from ..services.auth_service import ACCOUNT_ADMIN_ROLES, REPORT_ROLES
from ..validation import parse_bool, parse_optional_id, require_fields


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/finance/accounts")


# =============================================================================
# QUERIES
# =============================================================================

@accounts_bp.get("")
@require_auth
@require_role(*REPORT_ROLES)
def list_accounts_route():
    """
    Query params: type, active (true/false), search (name or code substring)
    """
    try:
        accounts = account_service.list_accounts(
            account_type=request.args.get("type"),
            is_active=parse_bool(request.args.get("active"), "active"),
            search=request.args.get("search"),
        )
        return jsonify({"success": True, "accounts": [a.to_dict() for a in accounts], "count": len(accounts)}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list accounts")
        return internal_error()


@accounts_bp.get("/hierarchy")
@require_auth
@require_role(*REPORT_ROLES)
def hierarchy_route():
    try:
        return jsonify({"success": True, "hierarchy": account_service.get_hierarchy()}), 200
    except Exception:
        current_app.logger.exception("Failed to build account hierarchy")
        return internal_error()


@accounts_bp.get("/type/<account_type>")
@require_auth
@require_role(*REPORT_ROLES)
def accounts_by_type_route(account_type: str):
    try:
        accounts = account_service.accounts_by_type(account_type.capitalize())
        return jsonify({"success": True, "accounts": [a.to_dict() for a in accounts]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list accounts by type")
        return internal_error()


@accounts_bp.get("/stats")
@require_auth
@require_role(*REPORT_ROLES)
def stats_route():
    try:
        return jsonify({"success": True, "stats": account_service.get_account_stats()}), 200
    except Exception:
        current_app.logger.exception("Failed to compute account stats")
        return internal_error()


@accounts_bp.get("/payment-sources")
@require_auth
@require_role(*REPORT_ROLES)
def payment_sources_route():
    """Cash, bank and wallet accounts plus the account each payment method resolves to."""
    try:
        return jsonify({
            "success": True,
            "accounts": [a.to_dict() for a in account_resolver.get_payment_source_accounts()],
            "payment_methods": account_resolver.payment_method_options(),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list payment source accounts")
        return internal_error()


@accounts_bp.get("/expense-accounts")
@require_auth
@require_role(*REPORT_ROLES)
def expense_accounts_route():
    try:
        return jsonify({
            "success": True,
            "accounts": [a.to_dict() for a in account_resolver.get_expense_accounts()],
            "categories": account_resolver.EXPENSE_CATEGORIES,
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list expense accounts")
        return internal_error()


@accounts_bp.get("/resolve")
@require_auth
@require_role(*REPORT_ROLES)
def resolve_route():
    """
    Preview account resolution.

    Exactly one of: payment_method, expense_category, income_category.
    Returns 500 with the missing key when nothing resolves.
    """
    try:
        args = request.args
        keys = [k for k in ("payment_method", "expense_category", "income_category") if args.get(k)]
        if len(keys) != 1:
            raise ValidationError("Provide exactly one of payment_method, expense_category, income_category")

        key = keys[0]
        if key == "payment_method":
            account = account_resolver.require_payment_account(args[key])
        elif key == "expense_category":
            account = account_resolver.require_expense_account(args[key])
        else:
            account = account_resolver.require_income_account(args[key])

        return jsonify({"success": True, key: args[key], "account": account.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resolve account")
        return internal_error()


@accounts_bp.get("/<int:account_id>")
@require_auth
@require_role(*REPORT_ROLES)
def get_account_route(account_id: int):
    try:
        account = account_service.get_account(account_id)
        data = account.to_dict()
        data["has_postings"] = account_service.has_postings(account.id)
        return jsonify({"success": True, "account": data}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get account")
        return internal_error()


# =============================================================================
# MUTATIONS
# =============================================================================

@accounts_bp.post("")
@require_auth
@require_role(*ACCOUNT_ADMIN_ROLES)
def create_account_route():
    """
    Request body:
    {
        "code": "5011",
        "name": "Security Services",
        "type": "Expense",
        "category": "Security",          (optional)
        "description": "...",            (optional)
        "parent_account_id": 12          (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, ["code", "name", "type"])
        account = account_service.create_account(
            code=str(data["code"]),
            name=data["name"],
            account_type=data["type"],
            category=data.get("category"),
            description=data.get("description"),
            parent_account_id=parse_optional_id(data.get("parent_account_id"), "parent_account_id"),
            user_id=g.current_user.id,
        )
        return jsonify({"success": True, "account": account.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create account")
        return internal_error()


@accounts_bp.post("/bulk")
@require_auth
@require_role(*ACCOUNT_ADMIN_ROLES)
def bulk_create_route():
    """Request body: {"accounts": [{code, name, type, ...}, ...]}"""
    try:
        data = request.get_json(silent=True) or {}
        rows = data.get("accounts")
        if not isinstance(rows, list) or not rows:
            raise ValidationError("accounts must be a non-empty list")
        for row in rows:
            if not isinstance(row, dict):
                raise ValidationError("each account must be an object")
            if row.get("code") is not None:
                row["code"] = str(row["code"])
            row["parent_account_id"] = parse_optional_id(row.get("parent_account_id"), "parent_account_id")

        result = account_service.bulk_create_accounts(rows, user_id=g.current_user.id)
        return jsonify({
            "success": True,
            "created": [a.to_dict() for a in result["created"]],
            "errors": result["errors"],
        }), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to bulk create accounts")
        return internal_error()


@accounts_bp.put("/<int:account_id>")
@require_auth
@require_role(*ACCOUNT_ADMIN_ROLES)
def update_account_route(account_id: int):
    try:
        data = request.get_json(silent=True) or {}
        changes = {}
        for field in ("code", "name", "type", "category", "description"):
            if field in data:
                changes[field] = data[field]
        if "parent_account_id" in data:
            changes["parent_account_id"] = parse_optional_id(data["parent_account_id"], "parent_account_id")
        if "is_active" in data:
            changes["is_active"] = parse_bool(data["is_active"], "is_active")

        account = account_service.update_account(account_id, changes, user_id=g.current_user.id)
        return jsonify({"success": True, "account": account.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update account")
        return internal_error()


@accounts_bp.delete("/<int:account_id>")
@require_auth
@require_role(*ACCOUNT_ADMIN_ROLES)
def delete_account_route(account_id: int):
    try:
        result = account_service.delete_account(account_id, user_id=g.current_user.id)
        message = "Account deactivated (postings exist)" if result["deactivated"] else "Account deleted"
        return jsonify({"success": True, "message": message, **result}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete account")
        return internal_error()
