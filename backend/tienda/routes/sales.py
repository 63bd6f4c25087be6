# Overview: Flask API routes for point-of-sale operations; parses input and
# returns JSON responses.

"""Sales API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import checkout_service
from ..services.checkout_service import CheckoutError
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_permission
from ..validation import ValidationError, coerce_int
from tienda.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _optional_int(value, field: str):
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def _checkout_error_response(e: CheckoutError):
    # Stock shortfalls and reused keys conflict with current state; everything else is bad input
    status = 409 if "items" in e.details or "idempotency_key" in e.details else 400
    return jsonify({"error": str(e), "details": e.details}), status


@sales_bp.post("/quote")
@require_auth
@require_permission("CREATE_SALE")
def quote_route():
    """
    Price a cart against current stock without committing anything.

    Body: {"store_id", "items": [{"variant_id", "quantity"}],
           "discount_percentage"?, "client_id"?}
    Quantities are clamped to what the location has.
    """
    try:
        data = request.get_json(silent=True) or {}
        store_id = coerce_int(data.get("store_id"), "store_id")
        items = data.get("items") or []
        if not isinstance(items, list):
            return jsonify({"error": "items must be a list"}), 400

        quantities = {}
        for item in items:
            if not isinstance(item, dict):
                return jsonify({"error": "Each item must be an object"}), 400
            quantities[coerce_int(item.get("variant_id"), "variant_id")] = coerce_int(item.get("quantity"), "quantity")

        cart = checkout_service.quote_cart(
            g.tenant,
            store_id,
            quantities,
            discount_percentage=data.get("discount_percentage"),
            client_id=_optional_int(data.get("client_id"), "client_id"),
        )
        return jsonify({"cart": cart.to_dict(), "lines": cart.to_checkout_lines()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CheckoutError as e:
        return _checkout_error_response(e)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to quote cart")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/checkout")
@require_auth
@require_permission("CREATE_SALE")
def checkout_route():
    """
    Commit a sale atomically.

    Body: {"store_id", "lines": [{"variant_id", "quantity"}],
           "discount_percentage"?, "client_id"?, "idempotency_key"?}
    The Idempotency-Key header takes precedence over the body field.

    Returns 201 for a new sale, 200 when the key replays an existing one,
    409 with per-line details when stock is insufficient. Prices come from
    the location's stock entries.
    """
    try:
        data = request.get_json(silent=True) or {}
        store_id = coerce_int(data.get("store_id"), "store_id")
        idempotency_key = request.headers.get("Idempotency-Key") or data.get("idempotency_key")

        result = checkout_service.commit_sale(
            g.tenant,
            store_id,
            data.get("lines") or [],
            discount_percentage=data.get("discount_percentage"),
            client_id=_optional_int(data.get("client_id"), "client_id"),
            idempotency_key=idempotency_key,
        )
        return jsonify({
            "sale": checkout_service.sale_details(g.tenant, result.sale),
            "replayed": result.replayed,
        }), 200 if result.replayed else 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CheckoutError as e:
        return _checkout_error_response(e)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    try:
        start = parse_iso_datetime(request.args.get("start")) if request.args.get("start") else None
        end = parse_iso_datetime(request.args.get("end")) if request.args.get("end") else None
        sales = checkout_service.list_sales(
            g.tenant,
            store_id=_optional_int(request.args.get("store_id"), "store_id"),
            client_id=_optional_int(request.args.get("client_id"), "client_id"),
            start=start,
            end=end,
        )
        return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200

    except (ValidationError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    """Sale with lines, variant names and attributes."""
    try:
        sale = checkout_service.get_sale(g.tenant, sale_id)
        return jsonify({"sale": checkout_service.sale_details(g.tenant, sale)}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_permission("DELETE_SALE")
def delete_sale_route(sale_id: int):
    """Delete a sale, returning its quantities to stock and reversing client statistics."""
    try:
        checkout_service.delete_sale(g.tenant, sale_id)
        return jsonify({"message": "Sale deleted"}), 200

    except CheckoutError as e:
        return _checkout_error_response(e)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
