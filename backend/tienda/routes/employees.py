# Overview: Flask API routes for employees; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Employee
from ..services import employee_service
from ..services.auth_service import PasswordValidationError
from ..services.employee_service import EmployeeError
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_permission
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_rules_employee,
    validate_payload,
)


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "salary_cents", "role", "store_id"},
    required_on_create={"name", "role", "store_id"},
)


@employees_bp.get("")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
def list_employees_route():
    try:
        store_id = request.args.get("store_id")
        employees = employee_service.list_employees(
            g.tenant,
            store_id=coerce_int(store_id, "store_id") if store_id else None,
        )
        return jsonify({"items": [e.to_dict() for e in employees], "count": len(employees)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@employees_bp.post("")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
def create_employee_route():
    """
    Create an employee and its login account.

    Body: {"name", "email", "password", "role": "inventario" | "ventas",
           "store_id", "phone"?, "salary_cents"?}
    """
    try:
        payload = dict(request.get_json(silent=True) or {})
        email = payload.pop("email", None)
        password = payload.pop("password", None)
        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False)
        enforce_rules_employee(patch)

        employee = employee_service.create_employee(
            g.tenant,
            name=patch["name"],
            email=email,
            password=password,
            role=patch["role"],
            store_id=patch["store_id"],
            phone=patch.get("phone"),
            salary_cents=patch.get("salary_cents"),
        )
        return jsonify({"employee": employee.to_dict()}), 201

    except (ValidationError, PasswordValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except EmployeeError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.get("/<int:employee_id>")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
def get_employee_route(employee_id: int):
    try:
        employee = employee_service.get_employee(g.tenant, employee_id)
        return jsonify({"employee": employee.to_dict()}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@employees_bp.patch("/<int:employee_id>")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
def update_employee_route(employee_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=True)
        enforce_rules_employee(patch)
        employee = employee_service.update_employee(g.tenant, employee_id, patch)
        return jsonify({"employee": employee.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except EmployeeError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.delete("/<int:employee_id>")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
def delete_employee_route(employee_id: int):
    try:
        employee_service.delete_employee(g.tenant, employee_id)
        return jsonify({"message": "Employee deleted"}), 200

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete employee")
        return jsonify({"error": "Internal server error"}), 500


@employees_bp.post("/<int:employee_id>/reset-password")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
def reset_employee_password_route(employee_id: int):
    try:
        data = request.get_json(silent=True) or {}
        password = data.get("password")
        if not password:
            return jsonify({"error": "password required"}), 400

        employee_service.reset_employee_password(g.tenant, employee_id, password)
        return jsonify({"message": "Password reset, sessions revoked"}), 200

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to reset employee password")
        return jsonify({"error": "Internal server error"}), 500
