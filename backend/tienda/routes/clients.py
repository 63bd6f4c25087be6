# Overview: Flask API routes for clients and their account movements;
# parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Client
from ..services import client_service
from ..services.client_service import ClientError
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_permission
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_client, validate_payload


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")

CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "discount_percentage", "balance_cents"},
    required_on_create={"name"},
)


@clients_bp.get("")
@require_auth
@require_permission("VIEW_CLIENTS")
def list_clients_route():
    clients = client_service.list_clients(g.tenant, search=request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in clients], "count": len(clients)}), 200


@clients_bp.post("")
@require_auth
@require_permission("MANAGE_CLIENTS")
def create_client_route():
    try:
        payload = request.get_json(silent=True) or {}
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
        enforce_rules_client(patch)
        client = client_service.create_client(g.tenant, patch)
        return jsonify({"client": client.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ClientError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>")
@require_auth
@require_permission("VIEW_CLIENTS")
def get_client_route(client_id: int):
    """Client with account movements."""
    try:
        client = client_service.get_client(g.tenant, client_id)
        payments = client_service.list_payments(g.tenant, client_id)
        return jsonify({
            "client": client.to_dict(),
            "payments": [p.to_dict() for p in payments],
        }), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@clients_bp.patch("/<int:client_id>")
@require_auth
@require_permission("MANAGE_CLIENTS")
def update_client_route(client_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
        enforce_rules_client(patch)
        client = client_service.update_client(g.tenant, client_id, patch)
        return jsonify({"client": client.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ClientError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.delete("/<int:client_id>")
@require_auth
@require_permission("MANAGE_CLIENTS")
def delete_client_route(client_id: int):
    try:
        client_service.delete_client(g.tenant, client_id)
        return jsonify({"message": "Client deleted"}), 200

    except ClientError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>/payments")
@require_auth
@require_permission("VIEW_CLIENTS")
def list_payments_route(client_id: int):
    try:
        payments = client_service.list_payments(g.tenant, client_id)
        return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@clients_bp.post("/<int:client_id>/payments")
@require_auth
@require_permission("MANAGE_CLIENTS")
def record_payment_route(client_id: int):
    """
    Record a payment (balance goes up) or charge (balance goes down).

    Body: {"type": "payment" | "charge", "amount_cents", "description"?}
    """
    try:
        data = request.get_json(silent=True) or {}
        movement = client_service.record_payment(
            g.tenant,
            client_id,
            data.get("type"),
            data.get("amount_cents"),
            data.get("description"),
        )
        client = client_service.get_client(g.tenant, client_id)
        return jsonify({"payment": movement.to_dict(), "client": client.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ClientError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to record client payment")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>/sales")
@require_auth
@require_permission("VIEW_CLIENTS")
def client_sales_route(client_id: int):
    try:
        sales = client_service.client_sales(g.tenant, client_id)
        return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
