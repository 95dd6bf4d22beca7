# Overview: Flask API routes for the audit trail; read-only.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import audit_service
from ..services.auth_service import ACCOUNT_ADMIN_ROLES
from ..validation import parse_int, parse_optional_id


audit_bp = Blueprint("audit", __name__, url_prefix="/api/finance/audit-log")


@audit_bp.get("")
@require_auth
@require_role(*ACCOUNT_ADMIN_ROLES)
def list_audit_logs_route():
    """Query params: resource_type, record_id, action, user_id, limit (max 500)"""
    try:
        limit = min(max(parse_int(request.args.get("limit", 100), "limit"), 1), 500)
        logs = audit_service.list_audit_logs(
            resource_type=request.args.get("resource_type"),
            record_id=request.args.get("record_id"),
            action=request.args.get("action"),
            user_id=parse_optional_id(request.args.get("user_id"), "user_id"),
            limit=limit,
        )
        return jsonify({"success": True, "logs": [log.to_dict() for log in logs]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list audit logs")
        return internal_error()
