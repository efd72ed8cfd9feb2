# Overview: Flask API routes for owner-app authentication; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, session_service
from ..validation import LOGIN_SCHEMA, ValidationError, validate


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an owner-app user and create a session token.

    Body: companyId, username, password. The token goes in the
    Authorization header ("Bearer <token>") of protected routes.
    """
    try:
        data = validate(LOGIN_SCHEMA, request.get_json(silent=True))

        user = auth_service.authenticate(data["companyId"], data["username"], data["password"])
        if not user:
            current_app.logger.warning(
                "login failed company=%s username=%s ip=%s",
                data["companyId"], data["username"], request.remote_addr,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "companyId": session.company_id,
        }), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers["Authorization"].split(" ", 1)[1]
    session_service.revoke_session(token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "companyId": g.company_id,
    }), 200
