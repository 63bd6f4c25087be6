# Overview: Flask API routes for platform management of businesses
# (superadmin only); parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..models import Organization
from ..services import business_service
from ..services.auth_service import PasswordValidationError
from ..services.business_service import BusinessError, BusinessNotFoundError
from ..decorators import require_auth, require_permission
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_rules_business,
    validate_payload,
)


businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")

BUSINESS_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "billing_day", "billing_amount_cents"},
    required_on_create={"name"},
)


def _not_found_or_bad_request(e: BusinessError):
    status = 404 if isinstance(e, BusinessNotFoundError) else 400
    return jsonify({"error": str(e), "details": e.details}), status


@businesses_bp.get("")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def list_businesses_route():
    businesses = business_service.list_businesses()
    items = [business_service.business_summary(org) for org in businesses]
    return jsonify({"items": items, "count": len(items)}), 200


@businesses_bp.post("")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def create_business_route():
    """
    Create a business with its admin account.

    Body: {"name", "admin_email", "admin_password", "admin_name"?, "code"?,
           "billing_day"?, "billing_amount_cents"?}
    """
    try:
        payload = dict(request.get_json(silent=True) or {})
        admin_email = payload.pop("admin_email", None)
        admin_password = payload.pop("admin_password", None)
        admin_name = payload.pop("admin_name", None)
        if not admin_email or not admin_password:
            return jsonify({"error": "admin_email and admin_password required"}), 400

        patch = validate_payload(model=Organization, payload=payload, policy=BUSINESS_POLICY, partial=False)
        enforce_rules_business(patch)

        org, admin = business_service.create_business(
            patch["name"],
            admin_email,
            admin_password,
            admin_name=admin_name,
            code=patch.get("code"),
            billing_day=patch.get("billing_day"),
            billing_amount_cents=patch.get("billing_amount_cents"),
        )
        return jsonify({"business": org.to_dict(), "admin": admin.to_dict()}), 201

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except BusinessError as e:
        return _not_found_or_bad_request(e)
    except Exception:
        current_app.logger.exception("Failed to create business")
        return jsonify({"error": "Internal server error"}), 500


@businesses_bp.get("/<int:org_id>")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def get_business_route(org_id: int):
    try:
        org = business_service.get_business(org_id)
        admins = business_service.get_business_admins(org_id)
        return jsonify({
            "business": business_service.business_summary(org),
            "admins": [a.to_dict() for a in admins],
        }), 200
    except BusinessError as e:
        return _not_found_or_bad_request(e)


@businesses_bp.patch("/<int:org_id>")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def update_business_route(org_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        patch = validate_payload(model=Organization, payload=payload, policy=BUSINESS_POLICY, partial=True)
        enforce_rules_business(patch)
        org = business_service.update_business(org_id, patch)
        return jsonify({"business": org.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except BusinessError as e:
        return _not_found_or_bad_request(e)
    except Exception:
        current_app.logger.exception("Failed to update business")
        return jsonify({"error": "Internal server error"}), 500


@businesses_bp.put("/<int:org_id>/status")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def set_business_status_route(org_id: int):
    """Body: {"is_active": bool}. Deactivation revokes every session of the business."""
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data.get("is_active"), bool):
            return jsonify({"error": "is_active must be a boolean"}), 400

        org = business_service.set_business_active(org_id, data["is_active"])
        return jsonify({"business": org.to_dict()}), 200

    except BusinessError as e:
        return _not_found_or_bad_request(e)
    except Exception:
        current_app.logger.exception("Failed to change business status")
        return jsonify({"error": "Internal server error"}), 500


@businesses_bp.post("/<int:org_id>/reset-admin-password")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def reset_admin_password_route(org_id: int):
    try:
        data = request.get_json(silent=True) or {}
        password = data.get("password")
        if not password:
            return jsonify({"error": "password required"}), 400
        admin_user_id = data.get("admin_user_id")
        if admin_user_id is not None:
            admin_user_id = coerce_int(admin_user_id, "admin_user_id")

        admin = business_service.reset_admin_password(org_id, password, admin_user_id=admin_user_id)
        return jsonify({"admin": admin.to_dict(), "message": "Password reset, sessions revoked"}), 200

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except BusinessError as e:
        return _not_found_or_bad_request(e)
    except Exception:
        current_app.logger.exception("Failed to reset admin password")
        return jsonify({"error": "Internal server error"}), 500


@businesses_bp.delete("/<int:org_id>")
@require_auth
@require_permission("MANAGE_BUSINESSES")
def delete_business_route(org_id: int):
    try:
        business_service.delete_business(org_id)
        return jsonify({"message": "Business deleted"}), 200

    except BusinessError as e:
        return _not_found_or_bad_request(e)
    except Exception:
        current_app.logger.exception("Failed to delete business")
        return jsonify({"error": "Internal server error"}), 500
