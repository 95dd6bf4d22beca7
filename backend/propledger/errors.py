# Overview: Error taxonomy shared by services and routes.

"""
Ledger error taxonomy.

Each error carries the HTTP status its route layer answers with. Services
raise these; routes translate them with error_response(). Nothing in this
module touches the database.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 500

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError, ValueError):
    """400-level input problem (missing field, bad enum, bad id). Never retried."""
    status_code = 400


class NotFoundError(LedgerError):
    """Missing account / expense / transaction."""
    status_code = 404


class ConflictError(LedgerError):
    """409-level business rule conflict (duplicate account code, illegal transition)."""
    status_code = 409


class ImbalancedPostingError(LedgerError):
    """
    Debits and credits of a posting batch differ.

    Raised before anything is flushed; the whole business operation aborts.
    """
    status_code = 500


class AccountResolutionError(LedgerError):
    """No account could be resolved for a payment method or category."""
    status_code = 500


class AuditLogFailure(LedgerError):
    """Audit write failed. Logged and swallowed by audit_service; never reaches a client."""
    status_code = 500


def error_response(exc: LedgerError):
    """(json body, status) pair for a route's except clause."""
    from flask import jsonify
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(message: str = "Internal server error"):
    from flask import jsonify
    return jsonify({"success": False, "error": message}), 500
