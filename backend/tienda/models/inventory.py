from __future__ import annotations

from ..extensions import db
from tienda.time_utils import to_utc_z

class StockEntry(db.Model):
    """
    Quantity and unit price of one Variant at one Location.

    KEY: (variant_id, store_id) - UniqueConstraint makes "at most one entry
    per pair" a storage guarantee rather than a check-then-insert habit.

    INVARIANTS:
    - quantity is a non-negative integer (CHECK constraint). Decrements are
      conditional UPDATEs that match zero rows instead of going negative.
    - price_cents is integer cents. The first price set for an entry is kept
      by restocks; only stock_service.set_price changes it.

    Quantity columns are mutated with single atomic UPDATE statements
    (quantity = quantity +/- n), never read-modify-write from Python.
    """
    __tablename__ = "stock_entries"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "store_id", name="uq_stock_variant_store"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        db.CheckConstraint("price_cents IS NULL OR price_cents >= 0", name="ck_stock_price_non_negative"),
        db.Index("ix_stock_org_store", "org_id", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    price_cents = db.Column(db.Integer, nullable=True)

    added_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variant = db.relationship("Variant", backref=db.backref("stock_entries", lazy=True))
    store = db.relationship("Store", backref=db.backref("stock_entries", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<StockEntry id={self.id} variant_id={self.variant_id} "
            f"store_id={self.store_id} quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "variant_id": self.variant_id,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "added_at": to_utc_z(self.added_at),
            "updated_at": to_utc_z(self.updated_at),
        }
