# Overview: Flask API routes for supervisor overrides; parses input and returns JSON responses.

"""
Override API routes

Two trust levels:
- POS terminals (no login) call /request and /verify with the shared
  override key and name their companyId explicitly
- Owner-app users (session) call /approve, /virtual/provision and the read
  endpoints; the company comes from the session
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_override_key, require_role
from ..models.auth import APPROVER_ROLES
from ..services import override_service, virtual_token_service
from ..services.override_service import OverrideError
from ..validation import (
    APPROVE_SCHEMA,
    REQUEST_SCHEMA,
    REQUESTS_QUERY_SCHEMA,
    VERIFY_SCHEMA,
    VIRTUAL_PROVISION_SCHEMA,
    ValidationError,
    validate,
)
from .audit import list_audit_response, resolve_session_company


override_bp = Blueprint("override", __name__, url_prefix="/api/override")


def _override_error(e: OverrideError):
    body = {"message": e.message}
    if e.details:
        body["details"] = e.details
    return jsonify(body), e.status


@override_bp.post("/request")
@require_override_key
def create_request_route():
    """
    Terminal records a pending override request.

    Body: companyId, actionCode, requestedById, resourceType?, resourceId?,
    terminalId?, meta?
    """
    try:
        data = validate(REQUEST_SCHEMA, request.get_json(silent=True))
        result = override_service.create_override_request(
            company_id=data["companyId"],
            action_code=data["actionCode"],
            requested_by_id=data["requestedById"],
            resource_type=data.get("resourceType"),
            resource_id=data.get("resourceId"),
            terminal_id=data.get("terminalId"),
            meta=data.get("meta"),
        )
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except OverrideError as e:
        return _override_error(e)
    except Exception:
        current_app.logger.exception("Failed to create override request")
        return jsonify({"error": "Internal server error"}), 500


@override_bp.post("/approve")
@require_auth
@require_role(*APPROVER_ROLES)
def approve_route():
    """
    Approve a request and reveal its one-time token.

    Body: requestId, expiresInSeconds? (30..600). The approver and the
    company are the session's.
    """
    try:
        data = validate(APPROVE_SCHEMA, request.get_json(silent=True))
        company_id, error = resolve_session_company(data.get("companyId"))
        if error:
            return error

        result = override_service.approve_override(
            company_id=company_id,
            request_id=data["requestId"],
            approved_by_id=g.current_user.id,
            expires_in_seconds=data.get(
                "expiresInSeconds", current_app.config.get("OVERRIDE_DEFAULT_TTL_SECONDS")
            ),
        )
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except OverrideError as e:
        return _override_error(e)
    except Exception:
        current_app.logger.exception("Failed to approve override request")
        return jsonify({"error": "Internal server error"}), 500


@override_bp.post("/verify")
@require_override_key
def verify_route():
    """
    Terminal consumes a token.

    Body: companyId, token, actionCode, usedById, resourceType?,
    resourceId?, terminalId?

    Returns {"ok": true, "tokenId"} or 400 {"ok": false, "message"} where
    message is the rejection reason.
    """
    try:
        data = validate(VERIFY_SCHEMA, request.get_json(silent=True))
        result = override_service.verify_override(
            company_id=data["companyId"],
            token=data["token"],
            action_code=data["actionCode"],
            used_by_id=data["usedById"],
            resource_type=data.get("resourceType"),
            resource_id=data.get("resourceId"),
            terminal_id=data.get("terminalId"),
        )
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except OverrideError as e:
        return jsonify({"ok": False, "message": e.message}), e.status
    except Exception:
        current_app.logger.exception("Failed to verify override token")
        return jsonify({"ok": False, "error": "Internal server error"}), 500


@override_bp.post("/virtual/provision")
@require_auth
@require_role(*APPROVER_ROLES)
def provision_virtual_route():
    """
    Provision (or rotate) the TOTP secret of a terminal.

    Body: terminalId, uid?
    """
    try:
        data = validate(VIRTUAL_PROVISION_SCHEMA, request.get_json(silent=True))
        result = virtual_token_service.provision_virtual_token(
            company_id=g.company_id,
            user_id=g.current_user.id,
            terminal_id=data["terminalId"],
            uid=data.get("uid"),
            issuer=current_app.config.get("VIRTUAL_TOKEN_ISSUER", "FULLPOS"),
        )
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ValueError as e:
        return jsonify({"message": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to provision virtual token")
        return jsonify({"error": "Internal server error"}), 500


@override_bp.get("/requests")
@require_auth
def list_requests_route():
    """
    Most recent override requests of the session's company.

    Query: companyId? (must match session), status?, limit? (1..200, default 50)
    """
    try:
        query = validate(REQUESTS_QUERY_SCHEMA, request.args.to_dict())
        company_id, error = resolve_session_company(query.get("companyId"))
        if error:
            return error

        requests = override_service.get_override_requests(
            company_id,
            status=query.get("status"),
            limit=query.get("limit") or current_app.config.get("REQUESTS_DEFAULT_LIMIT", 50),
        )
        return jsonify([item.to_dict() for item in requests]), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to list override requests")
        return jsonify({"error": "Internal server error"}), 500


@override_bp.get("/audit")
@require_auth
def list_override_audit_route():
    """Same as GET /api/audit."""
    return list_audit_response()
