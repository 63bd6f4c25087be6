# Overview: Service-layer operations for clients; records, account
# movements and purchase statistics.

"""
Client Service

MULTI-TENANT: Clients belong to one organization and are visible from all
of its locations.

BALANCE: balance_cents ("saldo") only moves together with a ClientPayment
ledger row, in the same transaction:
- payment: balance += amount
- charge:  balance -= amount (may go negative: the client owes money)

PURCHASE STATISTICS: purchase_count and purchase_total_cents are changed
only by the sale committer (apply_purchase on commit, reverse_purchase on
delete). Reversal never takes them below zero.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, update

from ..extensions import db
from ..models import Client, ClientPayment, Sale
from ..validation import validate_price_cents
from .tenant_service import TenantContext, scoped_query, get_scoped_or_404, require_tenant

logger = logging.getLogger(__name__)

PAYMENT_TYPE_PAYMENT = "payment"
PAYMENT_TYPE_CHARGE = "charge"
PAYMENT_TYPES = (PAYMENT_TYPE_PAYMENT, PAYMENT_TYPE_CHARGE)

CLIENT_MUTABLE_FIELDS = {"name", "phone", "discount_percentage", "balance_cents"}


class ClientError(Exception):
    """Raised for client operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def apply_client_patch(client: Client, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CLIENT_MUTABLE_FIELDS:
            continue
        setattr(client, k, v)


def create_client(ctx: TenantContext, patch: dict) -> Client:
    """Create a client. patch is validated by the route (validate_payload + enforce_rules_client)."""
    org_id = require_tenant(ctx)
    if not (patch.get("name") or "").strip():
        raise ClientError("Client name is required")

    client = Client(org_id=org_id)
    apply_client_patch(client, patch)
    db.session.add(client)
    db.session.commit()
    return client


def list_clients(ctx: TenantContext, search: str | None = None) -> list[Client]:
    query = scoped_query(Client, ctx)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(db.or_(Client.name.ilike(term), Client.phone.ilike(term)))
    return query.order_by(Client.name.asc(), Client.id.asc()).all()


def get_client(ctx: TenantContext, client_id: int) -> Client:
    return get_scoped_or_404(Client, client_id, ctx, label="Client")


def update_client(ctx: TenantContext, client_id: int, patch: dict) -> Client:
    client = get_client(ctx, client_id)
    if "name" in patch and not (patch["name"] or "").strip():
        raise ClientError("Client name is required")
    apply_client_patch(client, patch)
    db.session.commit()
    return client


def delete_client(ctx: TenantContext, client_id: int) -> None:
    """Delete a client and its account ledger. Refused while sales reference it."""
    client = get_client(ctx, client_id)
    has_sales = db.session.query(Sale.id).filter_by(client_id=client.id).first()
    if has_sales:
        raise ClientError("Client has sales and cannot be deleted", details={"client_id": client_id})

    db.session.query(ClientPayment).filter_by(client_id=client.id).delete(synchronize_session=False)
    db.session.expire(client, ["payments"])
    db.session.delete(client)
    db.session.commit()


def record_payment(
    ctx: TenantContext,
    client_id: int,
    payment_type: str,
    amount_cents,
    description: str | None = None,
) -> ClientPayment:
    """
    Record a payment or charge and move the client's balance with it.

    The balance UPDATE and the ledger row are committed together.
    """
    if payment_type not in PAYMENT_TYPES:
        raise ClientError(f"type must be one of: {', '.join(PAYMENT_TYPES)}")
    amount_cents = validate_price_cents(amount_cents, "amount_cents")
    if amount_cents <= 0:
        raise ClientError("amount_cents must be > 0")

    client = get_client(ctx, client_id)
    delta = amount_cents if payment_type == PAYMENT_TYPE_PAYMENT else -amount_cents

    db.session.execute(
        update(Client)
        .where(Client.id == client.id)
        .values(balance_cents=Client.balance_cents + delta)
    )
    movement = ClientPayment(
        org_id=client.org_id,
        client_id=client.id,
        type=payment_type,
        amount_cents=amount_cents,
        description=(description or "").strip() or None,
        created_by_user_id=ctx.user_id,
    )
    db.session.add(movement)
    db.session.commit()

    logger.info("Client %s %s of %d cents recorded", client.id, payment_type, amount_cents)
    return movement


def list_payments(ctx: TenantContext, client_id: int) -> list[ClientPayment]:
    client = get_client(ctx, client_id)
    return (
        db.session.query(ClientPayment)
        .filter_by(client_id=client.id)
        .order_by(ClientPayment.created_at.desc(), ClientPayment.id.desc())
        .all()
    )


def client_sales(ctx: TenantContext, client_id: int) -> list[Sale]:
    client = get_client(ctx, client_id)
    query = scoped_query(Sale, ctx).filter(Sale.client_id == client.id)
    if ctx.is_employee:
        query = query.filter(Sale.store_id == ctx.store_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def apply_purchase(client_id: int, total_cents: int) -> None:
    """purchase_count += 1, purchase_total_cents += total. Does not commit."""
    db.session.execute(
        update(Client)
        .where(Client.id == client_id)
        .values(
            purchase_count=Client.purchase_count + 1,
            purchase_total_cents=Client.purchase_total_cents + total_cents,
        )
    )


def reverse_purchase(client_id: int, total_cents: int) -> None:
    """Undo apply_purchase, clamping both statistics at zero. Does not commit."""
    db.session.execute(
        update(Client)
        .where(Client.id == client_id)
        .values(
            purchase_count=case(
                (Client.purchase_count > 0, Client.purchase_count - 1),
                else_=0,
            ),
            purchase_total_cents=case(
                (Client.purchase_total_cents > total_cents, Client.purchase_total_cents - total_cents),
                else_=0,
            ),
        )
    )
