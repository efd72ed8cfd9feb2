# Overview: Flask API routes for the audit trail; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import audit_service
from ..validation import AUDIT_QUERY_SCHEMA, ValidationError, validate


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


def resolve_session_company(requested_company_id: int | None):
    """
    Tenant for a read endpoint: the session company.

    An explicit companyId is accepted only when it names the same company.
    Returns (company_id, None) or (None, error_response).
    """
    if requested_company_id is not None and requested_company_id != g.company_id:
        current_app.logger.warning(
            "cross-tenant read denied user=%s session_company=%s requested=%s",
            g.current_user.id, g.company_id, requested_company_id,
        )
        return None, (jsonify({"message": "companyId does not match session"}), 403)
    return g.company_id, None


def list_audit_response():
    """Shared body of GET /api/audit and GET /api/override/audit."""
    try:
        query = validate(AUDIT_QUERY_SCHEMA, request.args.to_dict())
        company_id, error = resolve_session_company(query.get("companyId"))
        if error:
            return error

        limit = query.get("limit") or current_app.config.get("AUDIT_DEFAULT_LIMIT", 100)
        entries = audit_service.get_audit(
            company_id,
            limit,
            max_limit=current_app.config.get("MAX_PAGE_SIZE", 200),
        )
        return jsonify([entry.to_dict() for entry in entries]), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to list audit log")
        return jsonify({"error": "Internal server error"}), 500


@audit_bp.get("")
@require_auth
def list_audit_route():
    """
    Most recent audit rows for the session's company.

    Query: companyId? (must match session), limit? (1..200, default 100)
    """
    return list_audit_response()
