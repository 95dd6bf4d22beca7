# Overview: Flask API routes for ledger transactions; parses input and returns JSON responses.

"""
Ledger Transactions API

- GET  /api/finance/transactions                   -> paginated list
- GET  /api/finance/transactions/verify            -> unbalanced transactions, if any
- GET  /api/finance/transactions/<transaction_id>  -> one transaction with entries
- POST /api/finance/transactions/manual            -> manual journal entry
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import ImbalancedPostingError, LedgerError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import journal_service, ledger_service
from ..services.auth_service import FINANCE_ROLES, REPORT_ROLES
from ..validation import parse_bool, parse_datetime_field, parse_optional_id, parse_pagination


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/finance/transactions")


@transactions_bp.get("")
@require_auth
@require_role(*REPORT_ROLES)
def list_transactions_route():
    """
    Query params: start_date, end_date, residence_id, source, type, reference,
    account_code, include_entries (default true), page, per_page
    """
    try:
        args = request.args
        page, per_page = parse_pagination(args)
        include_entries = parse_bool(args.get("include_entries"), "include_entries")
        items, total = ledger_service.list_transactions(
            start=parse_datetime_field(args.get("start_date"), "start_date"),
            end=parse_datetime_field(args.get("end_date"), "end_date"),
            residence_id=parse_optional_id(args.get("residence_id"), "residence_id"),
            source=args.get("source"),
            txn_type=args.get("type"),
            reference=args.get("reference"),
            account_code=args.get("account_code"),
            page=page,
            per_page=per_page,
        )
        return jsonify({
            "success": True,
            "transactions": [t.to_dict(include_entries=include_entries is not False) for t in items],
            "pagination": {"page": page, "per_page": per_page, "total": total},
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return internal_error()


@transactions_bp.get("/verify")
@require_auth
@require_role(*REPORT_ROLES)
def verify_ledger_route():
    try:
        unbalanced = ledger_service.find_unbalanced_transactions()
        return jsonify({"success": True, "is_balanced": not unbalanced, "unbalanced": unbalanced}), 200
    except Exception:
        current_app.logger.exception("Failed to verify ledger")
        return internal_error()


@transactions_bp.get("/<transaction_id>")
@require_auth
@require_role(*REPORT_ROLES)
def get_transaction_route(transaction_id: str):
    try:
        txn = ledger_service.get_transaction(transaction_id)
        return jsonify({
            "success": True,
            "transaction": txn.to_dict(),
            "verification": ledger_service.verify_transaction(txn),
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return internal_error()


@transactions_bp.post("/manual")
@require_auth
@require_role(*FINANCE_ROLES)
def create_manual_entry_route():
    """Unbalanced manual entries are the caller's mistake, so they answer 400."""
    try:
        data = request.get_json(silent=True) or {}
        txn = journal_service.create_manual_entry(data, user_id=g.current_user.id)
        return jsonify({"success": True, "transaction": txn.to_dict()}), 201
    except ImbalancedPostingError as e:
        return jsonify(e.to_dict()), 400
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to post manual entry")
        return internal_error()
