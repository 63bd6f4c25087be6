# Overview: Service-layer operations for sales; transactional checkout,
# sale deletion and sale queries.

"""
Sale Committer

WHY: A sale is several writes: the header, one line per variant, one
stock decrement per line and the client's purchase statistics. They are
committed in ONE database transaction: either the whole sale exists or
nothing changed.

commit_sale:
1. Empty carts are rejected before anything is written.
2. An idempotency key that already produced a sale at the same location
   returns that sale (replayed=True) without writing; a key used at
   another location is rejected. The key is unique per organization
   (uq_sales_org_idempotency_key), so two racing submissions cannot both
   commit: the loser's INSERT fails, it rolls back and returns the winner.
3. Unit prices come from the location's stock entries, never the caller.
4. Stock is decremented with conditional UPDATEs (stock_service). If any
   line is short, the whole transaction is rolled back and CheckoutError
   lists every short line (variant_id, requested_quantity, available).

delete_sale reverses a sale in one transaction: stock is re-incremented,
client statistics are reduced (clamped at zero), lines and header removed.

MULTI-TENANT: Sales belong to one organization and one location. Employees
only see and sell at their own location.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sale, SaleLine, Variant, Client, Store
from ..validation import ValidationError, coerce_int, validate_discount_percentage
from .cart import Cart, CartError, discount_amount, sale_total
from .client_service import apply_purchase, reverse_purchase, get_client
from .concurrency import run_with_retry
from .stock_service import StockError, decrement_stock, increment_stock, lookup_entry
from .tenant_service import (
    TenantContext,
    TenantAccessError,
    scoped_query,
    get_scoped_or_404,
    require_store_access,
    require_tenant,
)
from .variant_service import describe_variants

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Raised when a sale cannot be committed or deleted."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class CheckoutResult:
    sale: Sale
    replayed: bool = False


def _normalize_lines(lines) -> list[dict]:
    if not lines:
        raise CheckoutError("Cart is empty")
    if not isinstance(lines, list):
        raise CheckoutError("lines must be a list")

    normalized = []
    seen: set[int] = set()
    for raw in lines:
        if not isinstance(raw, dict):
            raise CheckoutError("Each line must be an object with variant_id and quantity")
        try:
            variant_id = coerce_int(raw.get("variant_id"), "variant_id")
            quantity = coerce_int(raw.get("quantity"), "quantity")
        except ValidationError as e:
            raise CheckoutError(str(e))

        if quantity <= 0:
            raise CheckoutError("quantity must be a positive integer", details={"variant_id": variant_id})
        if variant_id in seen:
            raise CheckoutError("Duplicate variant in cart", details={"variant_id": variant_id})
        seen.add(variant_id)

        normalized.append({"variant_id": variant_id, "quantity": quantity})
    return normalized


def _find_by_idempotency_key(org_id: int, key: str | None) -> Sale | None:
    if not key:
        return None
    return db.session.query(Sale).filter_by(org_id=org_id, idempotency_key=key).first()


def _check_replay_store(sale: Sale, store: Store, key: str) -> None:
    # A key replays only at the location that committed it.
    if sale.store_id != store.id:
        raise CheckoutError(
            "Idempotency key already used at another location",
            details={"idempotency_key": key},
        )


def commit_sale(
    ctx: TenantContext,
    store_id: int,
    lines,
    discount_percentage=None,
    client_id: int | None = None,
    idempotency_key: str | None = None,
) -> CheckoutResult:
    """
    Commit a sale atomically.

    lines: [{"variant_id", "quantity"}]
    Unit prices are always read from the location's stock entries at
    commit time; any price sent by the caller is ignored.
    discount_percentage defaults to the client's discount (0 without a
    client).

    Raises:
        CheckoutError: empty cart, unknown variant, missing price, insufficient stock
        TenantAccessError: store or client outside ctx's reach
    """
    org_id = require_tenant(ctx)
    normalized = _normalize_lines(lines)

    key = (idempotency_key or "").strip() or None
    if key is not None and len(key) > 128:
        raise CheckoutError("Idempotency key is too long")

    store = require_store_access(store_id, ctx)

    replay = _find_by_idempotency_key(org_id, key)
    if replay is not None:
        _check_replay_store(replay, store, key)
        logger.info("Checkout replayed for idempotency key %r (sale %s)", key, replay.id)
        return CheckoutResult(sale=replay, replayed=True)

    client = get_client(ctx, client_id) if client_id is not None else None
    if discount_percentage is None:
        discount_percentage = client.discount_percentage if client is not None else 0
    try:
        pct = validate_discount_percentage(discount_percentage)
    except ValidationError as e:
        raise CheckoutError(str(e))

    variant_ids = [line["variant_id"] for line in normalized]

    def _op() -> CheckoutResult:
        known = {
            row.id for row in scoped_query(Variant, ctx)
            .filter(Variant.id.in_(variant_ids))
            .with_entities(Variant.id)
        }
        unknown = [v for v in variant_ids if v not in known]
        if unknown:
            raise CheckoutError("Unknown variants", details={"variant_ids": unknown})

        priced = []
        unpriced = []
        for line in normalized:
            entry = lookup_entry(line["variant_id"], store.id)
            unit_price = entry.price_cents if entry is not None else None
            if unit_price is None:
                unpriced.append(line["variant_id"])
            priced.append({**line, "unit_price_cents": unit_price})
        if unpriced:
            raise CheckoutError("Variants have no price at this location", details={"variant_ids": unpriced})

        subtotal = sum(line["unit_price_cents"] * line["quantity"] for line in priced)
        discount = discount_amount(subtotal, pct)
        total = sale_total(subtotal, discount)

        sale = Sale(
            org_id=org_id,
            store_id=store.id,
            client_id=client.id if client is not None else None,
            created_by_user_id=ctx.user_id,
            subtotal_cents=subtotal,
            discount_percentage=pct,
            discount_cents=discount,
            total_cents=total,
            idempotency_key=key,
        )
        db.session.add(sale)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            winner = _find_by_idempotency_key(org_id, key)
            if winner is None:
                raise
            _check_replay_store(winner, store, key)
            return CheckoutResult(sale=winner, replayed=True)

        short = []
        for line in priced:
            db.session.add(SaleLine(
                sale_id=sale.id,
                variant_id=line["variant_id"],
                quantity_sold=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                line_total_cents=line["unit_price_cents"] * line["quantity"],
            ))
            try:
                decrement_stock(line["variant_id"], store.id, line["quantity"])
            except StockError as e:
                short.append(e.details)

        if short:
            raise CheckoutError("Insufficient stock", details={"items": short})

        if client is not None:
            apply_purchase(client.id, total)

        db.session.commit()
        return CheckoutResult(sale=sale, replayed=False)

    try:
        result = run_with_retry(_op)
    except CheckoutError as e:
        db.session.rollback()
        logger.warning("Checkout rejected at store %s: %s %s", store_id, e, e.details)
        raise
    except Exception:
        db.session.rollback()
        raise

    if not result.replayed:
        logger.info(
            "Sale %s committed at store %s: %d lines, total=%d cents",
            result.sale.id, store.id, len(normalized), result.sale.total_cents,
        )
    return result


def delete_sale(ctx: TenantContext, sale_id: int) -> None:
    """
    Delete a sale and reverse its effects in one transaction.

    Every line's quantity goes back to stock (recreating the entry if it was
    deleted meanwhile) and the client's statistics are reduced.
    """
    sale = get_scoped_or_404(Sale, sale_id, ctx, label="Sale")
    sale_pk = sale.id

    def _op():
        current = db.session.query(Sale).filter_by(id=sale_pk).first()
        if current is None:
            raise CheckoutError("Sale not found")

        for line in current.lines:
            increment_stock(
                current.org_id,
                line.variant_id,
                current.store_id,
                line.quantity_sold,
                price_cents=line.unit_price_cents,
            )

        if current.client_id is not None:
            reverse_purchase(current.client_id, current.total_cents)

        total = current.total_cents
        db.session.delete(current)
        db.session.commit()
        return total

    try:
        total = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    logger.info("Sale %s deleted, stock and client statistics reversed (total=%d cents)", sale_pk, total)


def list_sales(
    ctx: TenantContext,
    store_id: int | None = None,
    client_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Sale]:
    """Sales of the organization, newest first. Employees only see their location."""
    query = scoped_query(Sale, ctx)
    if store_id is not None:
        require_store_access(store_id, ctx)
        query = query.filter(Sale.store_id == store_id)
    elif ctx.is_employee:
        query = query.filter(Sale.store_id == ctx.store_id)
    if client_id is not None:
        query = query.filter(Sale.client_id == client_id)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def get_sale(ctx: TenantContext, sale_id: int) -> Sale:
    return get_scoped_or_404(Sale, sale_id, ctx, label="Sale")


def sale_details(ctx: TenantContext, sale: Sale) -> dict:
    """Sale header with its lines, display names, attributes, store and client."""
    described = describe_variants(ctx, [line.variant_id for line in sale.lines])
    lines = []
    for line in sale.lines:
        info = described.get(line.variant_id, {})
        lines.append({
            **line.to_dict(),
            "product_id": info.get("product_id"),
            "product_name": info.get("product_name"),
            "attributes": info.get("attributes", {}),
            "name": info.get("name"),
        })

    store = db.session.get(Store, sale.store_id)
    client = db.session.get(Client, sale.client_id) if sale.client_id else None
    return {
        **sale.to_dict(),
        "store_name": store.name if store else None,
        "client_name": client.name if client else None,
        "lines": lines,
    }


def quote_cart(
    ctx: TenantContext,
    store_id: int,
    quantities: dict[int, int],
    discount_percentage=None,
    client_id: int | None = None,
) -> Cart:
    """
    Build a cart from current stock at a location without writing anything.

    Quantities are clamped to availability; variants without stock or
    price are reported as CheckoutError.
    """
    require_store_access(store_id, ctx)
    if discount_percentage is None and client_id is not None:
        discount_percentage = get_client(ctx, client_id).discount_percentage
    try:
        pct = validate_discount_percentage(discount_percentage or 0)
    except ValidationError as e:
        raise CheckoutError(str(e))

    described = describe_variants(ctx, quantities.keys())
    entries = []
    for variant_id in quantities:
        if variant_id not in described:
            raise TenantAccessError("Variant not found")
        entry = lookup_entry(variant_id, store_id)
        entries.append({
            "variant_id": variant_id,
            "name": described[variant_id]["name"],
            "quantity": entry.quantity if entry else 0,
            "price_cents": entry.price_cents if entry else None,
        })

    try:
        return Cart.from_stock(entries, quantities, discount_percentage=pct)
    except CartError as e:
        raise CheckoutError(str(e))
