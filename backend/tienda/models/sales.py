from __future__ import annotations

from ..extensions import db
from tienda.time_utils import to_utc_z

class Sale(db.Model):
    """
    Committed point-of-sale transaction (sale header).

    WHY: A sale, its lines, the stock decrements and the client statistics
    are written in ONE database transaction by checkout_service.commit_sale.
    Either all of it exists or none of it does.

    IMMUTABLE: Never updated after commit. delete_sale removes it and
    reverses its stock and client effects in one transaction.

    IDEMPOTENCY: idempotency_key (client supplied, optional) is unique per
    organization. Re-submitting a checkout with the same key returns the
    already-committed sale instead of selling twice.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("org_id", "idempotency_key", name="uq_sales_org_idempotency_key"),
        db.Index("ix_sales_org_created", "org_id", "created_at"),
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_percentage = db.Column(db.Numeric(7, 2), nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    client = db.relationship("Client", backref=db.backref("sales", lazy=True))
    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        order_by="SaleLine.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "store_id": self.store_id,
            "client_id": self.client_id,
            "created_by_user_id": self.created_by_user_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_percentage": str(self.discount_percentage) if self.discount_percentage is not None else None,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
        }

class SaleLine(db.Model):
    """Individual line items on a sale. Created at commit time, never updated."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity_sold > 0", name="ck_sale_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    quantity_sold = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    variant = db.relationship("Variant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "variant_id": self.variant_id,
            "quantity_sold": self.quantity_sold,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }
