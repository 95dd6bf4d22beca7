# Overview: Flask API routes for financial statements; parses report parameters and returns JSON.

"""
Financial Reports API

Common query params:
- basis: accrual | cash (defaults to DEFAULT_BASIS, cash flow defaults to cash)
- residence / residence_id: restrict to one property
- period: YYYY, YYYY-MM or YYYY-Qn (or start_date + end_date)
- as_of: ISO date, inclusive end of day (balance reports)

Aggregation failures answer 500 with the underlying message so finance
staff can report what broke.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, ValidationError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import statement_service
from ..services.auth_service import REPORT_ROLES
from ..time_utils import parse_as_of, parse_period
from ..validation import parse_int, parse_optional_id


reports_bp = Blueprint("reports", __name__, url_prefix="/api/finance")


def _basis(default: str | None = None) -> str:
    return request.args.get("basis") or default or current_app.config.get("DEFAULT_BASIS", "accrual")


def _residence_id():
    raw = request.args.get("residence_id") or request.args.get("residence")
    return parse_optional_id(raw, "residence_id")


def _period():
    try:
        return parse_period(
            request.args.get("period"),
            start=request.args.get("start_date"),
            end=request.args.get("end_date"),
        )
    except ValueError as e:
        raise ValidationError(str(e), details={"field": "period"})


def _as_of():
    try:
        return parse_as_of(request.args.get("as_of"))
    except ValueError as e:
        raise ValidationError(str(e), details={"field": "as_of"})


def _report_failed(name: str, exc: Exception):
    current_app.logger.exception("Failed to generate %s", name)
    return internal_error(f"Failed to generate {name}: {exc}")


@reports_bp.get("/proper-accounting/income-statement")
@require_auth
@require_role(*REPORT_ROLES)
def income_statement_route():
    try:
        report = statement_service.income_statement(
            period=_period(), basis=_basis(), residence_id=_residence_id(),
        )
        return jsonify({"success": True, "data": report}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception as e:
        return _report_failed("income statement", e)


@reports_bp.get("/proper-accounting/account-details")
@require_auth
@require_role(*REPORT_ROLES)
def account_details_route():
    """Query params: account_code (required), year, month, basis, residence"""
    try:
        account_code = request.args.get("account_code")
        if not account_code:
            raise ValidationError("account_code is required", details={"field": "account_code"})
        year = request.args.get("year")
        month = request.args.get("month")
        report = statement_service.account_details(
            account_code=account_code,
            year=parse_int(year, "year") if year else None,
            month=parse_int(month, "month") if month else None,
            basis=_basis(),
            residence_id=_residence_id(),
        )
        return jsonify({"success": True, "data": report}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception as e:
        return _report_failed("account details", e)


@reports_bp.get("/balance-sheet/report")
@require_auth
@require_role(*REPORT_ROLES)
def balance_sheet_route():
    try:
        report = statement_service.balance_sheet(as_of=_as_of(), basis=_basis(), residence_id=_residence_id())
        return jsonify({"success": True, "data": report}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception as e:
        return _report_failed("balance sheet", e)


@reports_bp.get("/cash-flow/report")
@require_auth
@require_role(*REPORT_ROLES)
def cash_flow_route():
    try:
        report = statement_service.cash_flow(
            period=_period(), basis=_basis("cash"), residence_id=_residence_id(),
        )
        return jsonify({"success": True, "data": report}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception as e:
        return _report_failed("cash flow statement", e)


@reports_bp.get("/trial-balance/report")
@require_auth
@require_role(*REPORT_ROLES)
def trial_balance_route():
    try:
        report = statement_service.trial_balance(as_of=_as_of(), basis=_basis(), residence_id=_residence_id())
        return jsonify({"success": True, "data": report}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception as e:
        return _report_failed("trial balance", e)


@reports_bp.get("/general-ledger/<account_code>")
@require_auth
@require_role(*REPORT_ROLES)
def general_ledger_route(account_code: str):
    try:
        report = statement_service.general_ledger(
            account_code=account_code, period=_period(), basis=_basis(), residence_id=_residence_id(),
        )
        return jsonify({"success": True, "data": report}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception as e:
        return _report_failed("general ledger", e)
