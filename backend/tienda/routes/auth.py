# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login     email + password -> session token
- POST /api/auth/logout    revoke the presented token
- POST /api/auth/validate  check a token, return identity and capabilities
- GET  /api/auth/me        identity, tenant context and capabilities

Capabilities returned here are what the server-side policy already
permits; a UI uses them only to decide what to present.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..services.session_service import SessionError
from ..permissions import get_permission_definition
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def _identity_payload(context) -> dict:
    tenant = context.tenant_context()
    permissions = sorted(permission_service.get_context_permissions(tenant))
    return {
        "user": context.user.to_dict(),
        "role": context.user.role,
        "employee_role": context.employee_role,
        "org_id": context.org_id,
        "store_id": context.store_id,
        "permissions": permissions,
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    Failed attempts are recorded as LOGIN_FAILED security events.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason=f"Invalid credentials for {auth_service.normalize_email(email)}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        try:
            session, token = session_service.create_session(
                user_id=user.id,
                user_agent=user_agent,
                ip_address=ip_address
            )
        except SessionError as e:
            return jsonify({"error": str(e)}), 401

        context = session_service.validate_session(token)

        return jsonify({
            **_identity_payload(context),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke session token (logout). Expects Authorization: Bearer <token>."""
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
def validate_route():
    """Validate session token and return identity, tenant context and capabilities."""
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({**_identity_payload(context), "message": "Token valid"}), 200

    except Exception:
        current_app.logger.exception("Failed to validate token")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current identity with capability details (code, name, description, category)."""
    payload = _identity_payload(g.session_context)
    payload["permission_details"] = [get_permission_definition(code) for code in payload["permissions"]]
    return jsonify(payload), 200
