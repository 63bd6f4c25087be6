# Overview: Flask API routes for locations (stores); parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import location_service, stock_service
from ..services.location_service import LocationError
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_permission


locations_bp = Blueprint("locations", __name__, url_prefix="/api/locations")


@locations_bp.get("")
@require_auth
@require_permission("VIEW_LOCATIONS")
def list_locations_route():
    """Locations of the business. Employees only see their own."""
    stores = location_service.list_locations(g.tenant)
    return jsonify({"items": [s.to_dict() for s in stores], "count": len(stores)}), 200


@locations_bp.post("")
@require_auth
@require_permission("MANAGE_LOCATIONS")
def create_location_route():
    try:
        data = request.get_json(silent=True) or {}
        store = location_service.create_location(g.tenant, data.get("name"), data.get("address"))
        return jsonify({"location": store.to_dict()}), 201

    except LocationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create location")
        return jsonify({"error": "Internal server error"}), 500


@locations_bp.get("/<int:store_id>")
@require_auth
@require_permission("VIEW_LOCATIONS")
def get_location_route(store_id: int):
    """Location with its inventory."""
    try:
        store = location_service.get_location(g.tenant, store_id)
        inventory = stock_service.list_location_inventory(g.tenant, store_id)
        return jsonify({"location": store.to_dict(), "inventory": inventory}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@locations_bp.get("/<int:store_id>/employees")
@require_auth
@require_permission("MANAGE_EMPLOYEES")
def location_employees_route(store_id: int):
    try:
        employees = location_service.list_location_employees(g.tenant, store_id)
        return jsonify({"items": [e.to_dict() for e in employees], "count": len(employees)}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@locations_bp.patch("/<int:store_id>")
@require_auth
@require_permission("MANAGE_LOCATIONS")
def update_location_route(store_id: int):
    try:
        data = request.get_json(silent=True) or {}
        store = location_service.update_location(
            g.tenant,
            store_id,
            name=data.get("name"),
            address=data.get("address"),
        )
        return jsonify({"location": store.to_dict()}), 200

    except LocationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update location")
        return jsonify({"error": "Internal server error"}), 500


@locations_bp.delete("/<int:store_id>")
@require_auth
@require_permission("MANAGE_LOCATIONS")
def delete_location_route(store_id: int):
    try:
        location_service.delete_location(g.tenant, store_id)
        return jsonify({"message": "Location deleted"}), 200

    except LocationError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete location")
        return jsonify({"error": "Internal server error"}), 500
