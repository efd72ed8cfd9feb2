# Overview: Request guards for API routes (owner-app sessions and terminal API key).

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from .services import session_service


def require_auth(f):
    """
    Require an owner-app session and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: the authenticated User
    - g.company_id: the company captured at login
    - g.session_context: the full SessionContext

    Returns 401 if the Authorization header is missing or the token is
    invalid, expired, revoked, or belongs to a deactivated user/company.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.company_id = context.company_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the authenticated user to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                current_app.logger.warning(
                    "role denied user=%s role=%s path=%s",
                    g.current_user.id, g.current_user.role, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_override_key(f):
    """
    Guard terminal-originated endpoints with the shared override key.

    POS terminals have no login; they send X-Override-Key (or X-Cloud-Key).
    The guard is open when ALLOW_PUBLIC_CLOUD is set or no key is configured.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_app.config.get("ALLOW_PUBLIC_CLOUD"):
            return f(*args, **kwargs)

        api_key = (current_app.config.get("OVERRIDE_API_KEY") or "").strip()
        if not api_key:
            return f(*args, **kwargs)

        provided = request.headers.get("X-Override-Key") or request.headers.get("X-Cloud-Key")
        if not provided or not hmac.compare_digest(provided.strip().encode("utf-8"), api_key.encode("utf-8")):
            return jsonify({"message": "API key required"}), 401

        return f(*args, **kwargs)

    return decorated_function
