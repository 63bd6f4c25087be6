# Overview: Flask API routes for the product builder and variants; parses
# input and returns JSON responses.

"""
Product API routes with permission enforcement

MULTI-TENANT: Every route passes g.tenant to the catalog and variant
services; rows of other businesses answer 404.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import Product
from ..services import catalog_service, variant_service, stock_service
from ..services.catalog_service import CatalogError
from ..services.variant_service import VariantError
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth, require_permission
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category", "image_url", "is_active"},
    required_on_create={"name"},
)


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products_route():
    products = catalog_service.list_products(
        g.tenant,
        include_inactive=_flag("include_inactive"),
        category=request.args.get("category"),
        search=request.args.get("search"),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a product with its characteristics and options.

    Body: {"name", "description"?, "category"?, "image_url"?,
           "characteristics"?: [{"name": "Size", "options": ["S", "M"]}]}
    """
    try:
        payload = dict(request.get_json(silent=True) or {})
        characteristics = payload.pop("characteristics", None) or []
        if not isinstance(characteristics, list):
            return jsonify({"error": "characteristics must be a list"}), 400

        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        product = catalog_service.create_product(g.tenant, patch=patch, characteristics=characteristics)
        return jsonify({"product": product.to_dict(include_characteristics=True)}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    """Product with characteristics, options, variants and stock per location."""
    try:
        product = catalog_service.get_product(g.tenant, product_id)
        return jsonify({
            "product": product.to_dict(include_characteristics=True),
            "variants": variant_service.list_variants(g.tenant, product_id),
            "stock": stock_service.list_product_stock(g.tenant, product_id),
        }), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        product = catalog_service.update_product(g.tenant, product_id, patch)
        return jsonify({"product": product.to_dict(include_characteristics=True)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("DELETE_STOCK")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(g.tenant, product_id)
        return jsonify({"message": "Product deleted"}), 200

    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/characteristics")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def add_characteristic_route(product_id: int):
    try:
        data = request.get_json(silent=True) or {}
        characteristic = catalog_service.add_characteristic(g.tenant, product_id, data)
        return jsonify({"characteristic": characteristic.to_dict()}), 201

    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to add characteristic")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/characteristics/<int:characteristic_id>/options")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def add_option_route(product_id: int, characteristic_id: int):
    try:
        data = request.get_json(silent=True) or {}
        option = catalog_service.add_option(g.tenant, product_id, characteristic_id, data.get("value"))
        return jsonify({"option": option.to_dict()}), 201

    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to add option")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>/characteristics/<int:characteristic_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_characteristic_route(product_id: int, characteristic_id: int):
    try:
        catalog_service.delete_characteristic(g.tenant, product_id, characteristic_id)
        return jsonify({"message": "Characteristic deleted"}), 200

    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete characteristic")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/variants")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_variants_route(product_id: int):
    try:
        variants = variant_service.list_variants(g.tenant, product_id)
        return jsonify({"items": variants, "count": len(variants)}), 200
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.post("/<int:product_id>/variants")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def resolve_variant_route(product_id: int):
    """
    Resolve the variant for a set of options, creating it if absent.

    Body: {"option_ids": [..]}. Returns 201 when created, 200 when it existed.
    """
    try:
        data = request.get_json(silent=True) or {}
        variant, created = variant_service.resolve_or_create_variant(
            g.tenant, product_id, data.get("option_ids") or []
        )
        attributes = variant_service.get_variant_attributes(g.tenant, [variant.id]).get(variant.id, {})
        return jsonify({
            "variant": {**variant.to_dict(), "attributes": attributes},
            "created": created,
        }), 201 if created else 200

    except VariantError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to resolve variant")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/variants/<int:variant_id>")
@require_auth
@require_permission("DELETE_STOCK")
def delete_variant_route(variant_id: int):
    try:
        variant_service.delete_variant(g.tenant, variant_id)
        return jsonify({"message": "Variant deleted"}), 200

    except VariantError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete variant")
        return jsonify({"error": "Internal server error"}), 500
