# Overview: Flask API routes for maintenance requests; parses input and returns JSON responses.

"""
Maintenance API

Anyone signed in may log and view requests. Finance approval is restricted
to finance roles because approving accrues the cost.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import maintenance_service
from ..services.auth_service import FINANCE_ROLES
from ..validation import parse_optional_id, parse_pagination


maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")


@maintenance_bp.get("")
@require_auth
def list_requests_route():
    """Query params: status, finance_status, priority, residence_id, page, per_page"""
    try:
        page, per_page = parse_pagination(request.args)
        items, total = maintenance_service.list_requests(
            status=request.args.get("status"),
            finance_status=request.args.get("finance_status"),
            priority=request.args.get("priority"),
            residence_id=parse_optional_id(request.args.get("residence_id"), "residence_id"),
            page=page,
            per_page=per_page,
        )
        return jsonify({
            "success": True,
            "requests": [r.to_dict() for r in items],
            "pagination": {"page": page, "per_page": per_page, "total": total},
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list maintenance requests")
        return internal_error()


@maintenance_bp.post("")
@require_auth
def create_request_route():
    try:
        data = request.get_json(silent=True) or {}
        req = maintenance_service.create_request(data, user_id=g.current_user.id)
        return jsonify({"success": True, "request": req.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create maintenance request")
        return internal_error()


@maintenance_bp.get("/<request_id>")
@require_auth
def get_request_route(request_id: str):
    try:
        req = maintenance_service.get_request(request_id)
        data = req.to_dict()
        data["expenses"] = [e.to_dict() for e in req.expenses]
        return jsonify({"success": True, "request": data}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get maintenance request")
        return internal_error()


@maintenance_bp.patch("/<request_id>/finance-approval")
@require_auth
@require_role(*FINANCE_ROLES)
def finance_approval_route(request_id: str):
    """
    Request body:
    {
        "finance_status": "approved" | "rejected",
        "amount": 85.00,        (required to approve unless already on the request)
        "notes": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        req = maintenance_service.finance_approval(request_id, data, user_id=g.current_user.id)
        return jsonify({"success": True, "request": req.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record finance approval")
        return internal_error()
