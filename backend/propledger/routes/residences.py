# Overview: Flask API routes for residences; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError, error_response, internal_error
from ..decorators import require_auth, require_role
from ..services import residence_service
from ..services.auth_service import ACCOUNT_ADMIN_ROLES
from ..validation import parse_bool


residences_bp = Blueprint("residences", __name__, url_prefix="/api/residences")


@residences_bp.get("")
@require_auth
def list_residences_route():
    try:
        include_inactive = parse_bool(request.args.get("include_inactive"), "include_inactive") or False
        residences = residence_service.list_residences(include_inactive=include_inactive)
        return jsonify({"success": True, "residences": [r.to_dict() for r in residences]}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list residences")
        return internal_error()


@residences_bp.post("")
@require_auth
@require_role(*ACCOUNT_ADMIN_ROLES)
def create_residence_route():
    try:
        data = request.get_json(silent=True) or {}
        residence = residence_service.create_residence(data.get("name"), data.get("address"))
        return jsonify({"success": True, "residence": residence.to_dict()}), 201
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create residence")
        return internal_error()


@residences_bp.get("/<int:residence_id>")
@require_auth
def get_residence_route(residence_id: int):
    try:
        return jsonify({"success": True, "residence": residence_service.get_residence(residence_id).to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get residence")
        return internal_error()
