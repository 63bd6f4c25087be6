from __future__ import annotations

from ..extensions import db
from tienda.time_utils import to_utc_z


class Client(db.Model):
    """
    Customer record with running purchase statistics and an account balance.

    MULTI-TENANT: Clients are scoped to organizations via org_id.

    Denormalized aggregates (purchase_count, purchase_total_cents) are
    changed only inside the checkout transaction (commit adds, delete
    subtracts, clamped at zero).
    balance_cents ("saldo") moves with ClientPayment rows.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_org_name", "org_id", "name"),
        db.CheckConstraint("purchase_count >= 0", name="ck_clients_purchase_count_non_negative"),
        db.CheckConstraint("purchase_total_cents >= 0", name="ck_clients_purchase_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    # Default checkout discount for this client
    discount_percentage = db.Column(db.Numeric(7, 2), nullable=False, default=0)

    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    purchase_count = db.Column(db.Integer, nullable=False, default=0)
    purchase_total_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "phone": self.phone,
            "discount_percentage": str(self.discount_percentage) if self.discount_percentage is not None else None,
            "balance_cents": self.balance_cents,
            "purchase_count": self.purchase_count,
            "purchase_total_cents": self.purchase_total_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ClientPayment(db.Model):
    """
    Append-only ledger of client account movements.

    TYPES:
    - payment: money received from the client (balance goes up)
    - charge: amount charged to the client (balance goes down)
    """
    __tablename__ = "client_payments"
    __table_args__ = (
        db.Index("ix_client_payments_client_created", "client_id", "created_at"),
        db.CheckConstraint("amount_cents > 0", name="ck_client_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    client = db.relationship("Client", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
