# Overview: Flask API routes for stock per location; parses input and
# returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import stock_service
from ..services.variant_service import VariantError
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_permission
from ..validation import ValidationError, coerce_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/locations/<int:store_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def location_inventory_route(store_id: int):
    """Every stock entry at a location with product names and variant attributes."""
    try:
        items = stock_service.list_location_inventory(g.tenant, store_id)
        return jsonify({"store_id": store_id, "items": items, "count": len(items)}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@inventory_bp.get("/stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_stock_route():
    """Stock of one variant at one location. Missing entries report quantity 0."""
    try:
        variant_id = coerce_int(request.args.get("variant_id"), "variant_id")
        store_id = coerce_int(request.args.get("store_id"), "store_id")

        entry = stock_service.get_stock(g.tenant, variant_id, store_id)
        if entry is None:
            return jsonify({
                "variant_id": variant_id,
                "store_id": store_id,
                "quantity": 0,
                "price_cents": None,
                "entry": None,
            }), 200
        return jsonify({
            "variant_id": variant_id,
            "store_id": store_id,
            "quantity": entry.quantity,
            "price_cents": entry.price_cents,
            "entry": entry.to_dict(),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@inventory_bp.post("/restock")
@require_auth
@require_permission("RECEIVE_STOCK")
def restock_route():
    """
    Receive stock of a (product, option set) at a location.

    Body: {"product_id", "option_ids": [..], "store_id", "quantity", "price_cents"?}
    The variant is resolved or created. An existing entry keeps its price.
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = coerce_int(data.get("product_id"), "product_id")
        store_id = coerce_int(data.get("store_id"), "store_id")

        entry, created = stock_service.restock(
            g.tenant,
            product_id,
            data.get("option_ids") or [],
            store_id,
            data.get("quantity"),
            data.get("price_cents"),
        )
        return jsonify({"entry": entry.to_dict(), "created": created}), 201 if created else 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except VariantError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to restock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.patch("/stock/<int:entry_id>/price")
@require_auth
@require_permission("UPDATE_PRICES")
def set_price_route(entry_id: int):
    try:
        data = request.get_json(silent=True) or {}
        if "price_cents" not in data:
            return jsonify({"error": "price_cents required"}), 400

        entry = stock_service.set_price(g.tenant, entry_id, data["price_cents"])
        return jsonify({"entry": entry.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to set price")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/stock/<int:entry_id>")
@require_auth
@require_permission("DELETE_STOCK")
def delete_stock_route(entry_id: int):
    try:
        stock_service.delete_stock_entry(g.tenant, entry_id)
        return jsonify({"message": "Stock entry deleted"}), 200

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete stock entry")
        return jsonify({"error": "Internal server error"}), 500
