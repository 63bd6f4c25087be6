# Overview: Service-layer operations for the product builder; products,
# characteristics and their options.

"""
Catalog Service (Product Builder)

WHY: A product is defined once per business, together with its
characteristics ("Size", "Color") and each characteristic's allowed
options ("S", "M", "L"). Buyable configurations (variants) are resolved
later from chosen options (see variant_service).

MULTI-TENANT: Every operation takes an explicit TenantContext and only
sees rows of ctx's organization.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import (
    Product,
    Characteristic,
    CharacteristicOption,
    Variant,
    VariantOption,
    StockEntry,
    SaleLine,
)
from .tenant_service import TenantContext, scoped_query, get_scoped_or_404, require_tenant

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "description", "category", "image_url", "is_active"}


class CatalogError(Exception):
    """Raised for product builder errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _clean_name(value, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CatalogError(f"{label} is required")
    return value.strip()


def _build_characteristic(spec: dict) -> Characteristic:
    if not isinstance(spec, dict):
        raise CatalogError("Each characteristic must be an object with name and options")

    name = _clean_name(spec.get("name"), "Characteristic name")
    raw_options = spec.get("options") or []
    if not isinstance(raw_options, list):
        raise CatalogError(f"Options of {name!r} must be a list")

    characteristic = Characteristic(name=name)
    seen: set[str] = set()
    for raw in raw_options:
        value = _clean_name(raw, f"Option of {name!r}")
        if value in seen:
            raise CatalogError(f"Duplicate option {value!r} in {name!r}")
        seen.add(value)
        characteristic.options.append(CharacteristicOption(value=value))
    return characteristic


def apply_product_patch(product: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(product, k, v)


def create_product(ctx: TenantContext, *, patch: dict, characteristics: list[dict] | None = None) -> Product:
    """
    Create a product with its characteristics and options in one transaction.

    characteristics: [{"name": "Size", "options": ["S", "M"]}, ...]
    """
    org_id = require_tenant(ctx)
    name = _clean_name(patch.get("name"), "Product name")

    product = Product(org_id=org_id)
    apply_product_patch(product, patch)
    product.name = name

    seen: set[str] = set()
    for spec in characteristics or []:
        characteristic = _build_characteristic(spec)
        if characteristic.name in seen:
            raise CatalogError(f"Duplicate characteristic {characteristic.name!r}")
        seen.add(characteristic.name)
        product.characteristics.append(characteristic)

    db.session.add(product)
    db.session.commit()

    logger.info("Product %s created (org=%s, characteristics=%d)", product.id, org_id, len(seen))
    return product


def list_products(
    ctx: TenantContext,
    *,
    include_inactive: bool = False,
    category: str | None = None,
    search: str | None = None,
) -> list[Product]:
    query = scoped_query(Product, ctx)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(ctx: TenantContext, product_id: int) -> Product:
    return get_scoped_or_404(Product, product_id, ctx, label="Product")


def update_product(ctx: TenantContext, product_id: int, patch: dict) -> Product:
    product = get_product(ctx, product_id)
    if "name" in patch:
        patch = {**patch, "name": _clean_name(patch["name"], "Product name")}
    apply_product_patch(product, patch)
    db.session.commit()
    return product


def _get_characteristic(product: Product, characteristic_id: int) -> Characteristic:
    for characteristic in product.characteristics:
        if characteristic.id == characteristic_id:
            return characteristic
    raise CatalogError("Characteristic not found")


def add_characteristic(ctx: TenantContext, product_id: int, spec: dict) -> Characteristic:
    product = get_product(ctx, product_id)
    characteristic = _build_characteristic(spec)
    if any(c.name == characteristic.name for c in product.characteristics):
        raise CatalogError(f"Duplicate characteristic {characteristic.name!r}")

    product.characteristics.append(characteristic)
    db.session.commit()
    return characteristic


def add_option(ctx: TenantContext, product_id: int, characteristic_id: int, value: str) -> CharacteristicOption:
    product = get_product(ctx, product_id)
    characteristic = _get_characteristic(product, characteristic_id)
    value = _clean_name(value, "Option value")
    if any(o.value == value for o in characteristic.options):
        raise CatalogError(f"Duplicate option {value!r} in {characteristic.name!r}")

    option = CharacteristicOption(value=value)
    characteristic.options.append(option)
    db.session.commit()
    return option


def delete_characteristic(ctx: TenantContext, product_id: int, characteristic_id: int) -> None:
    """
    Remove a characteristic and its options.

    Refused while any variant links to one of its options: removing it
    would change the identity of those variants.
    """
    product = get_product(ctx, product_id)
    characteristic = _get_characteristic(product, characteristic_id)

    option_ids = [o.id for o in characteristic.options]
    if option_ids:
        in_use = db.session.query(VariantOption.id).filter(
            VariantOption.option_id.in_(option_ids)
        ).first()
        if in_use:
            raise CatalogError(
                "Characteristic is used by existing variants",
                details={"characteristic_id": characteristic_id},
            )

    product.characteristics.remove(characteristic)
    db.session.commit()


def delete_product(ctx: TenantContext, product_id: int) -> None:
    """
    Delete a product with its variants and their stock entries.

    Refused if any committed sale references one of its variants.
    """
    product = get_product(ctx, product_id)

    variant_ids = [
        row.id for row in db.session.query(Variant.id).filter(Variant.product_id == product.id).all()
    ]
    if variant_ids:
        sold = db.session.query(SaleLine.id).filter(SaleLine.variant_id.in_(variant_ids)).first()
        if sold:
            raise CatalogError(
                "Product has sales and cannot be deleted",
                details={"product_id": product_id},
            )

        db.session.query(StockEntry).filter(
            StockEntry.variant_id.in_(variant_ids)
        ).delete(synchronize_session=False)
        db.session.query(VariantOption).filter(
            VariantOption.variant_id.in_(variant_ids)
        ).delete(synchronize_session=False)
        db.session.query(Variant).filter(
            Variant.id.in_(variant_ids)
        ).delete(synchronize_session=False)
        db.session.expire(product, ["variants"])

    db.session.delete(product)
    db.session.commit()

    logger.info("Product %s deleted (org=%s, variants=%d)", product_id, ctx.org_id, len(variant_ids))
