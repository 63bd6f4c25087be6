from __future__ import annotations

from ..extensions import db
from tienda.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data, defined once through the product builder.

    MULTI-TENANT: Products are org-scoped (org_id). A product is not tied
    to a location; stock per location lives on StockEntry rows of its variants.

    A product has zero or more Characteristics (e.g. "Size"), each with
    allowed CharacteristicOptions (e.g. "S", "M"). Buyable configurations
    are Variants, identified by the set of options they link to.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_org_name", "org_id", "name"),
        db.Index("ix_products_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True, index=True)
    image_url = db.Column(db.String(512), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    characteristics = db.relationship(
        "Characteristic",
        backref="product",
        lazy=True,
        order_by="Characteristic.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self, *, include_characteristics: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "image_url": self.image_url,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_characteristics:
            data["characteristics"] = [c.to_dict() for c in self.characteristics]
        return data


class Characteristic(db.Model):
    """A named attribute of a product (e.g. "Color")."""
    __tablename__ = "characteristics"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_characteristics_product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)

    options = db.relationship(
        "CharacteristicOption",
        backref="characteristic",
        lazy=True,
        order_by="CharacteristicOption.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "options": [o.to_dict() for o in self.options],
        }


class CharacteristicOption(db.Model):
    """One allowed value of a characteristic (e.g. "Red")."""
    __tablename__ = "characteristic_options"
    __table_args__ = (
        db.UniqueConstraint("characteristic_id", "value", name="uq_options_characteristic_value"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    characteristic_id = db.Column(db.Integer, db.ForeignKey("characteristics.id"), nullable=False, index=True)
    value = db.Column(db.String(120), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "characteristic_id": self.characteristic_id,
            "value": self.value,
        }


class Variant(db.Model):
    """
    One buyable configuration of a product.

    IDENTITY: A variant is identified by the SET of options it links to.
    option_key is the canonical form of that set: option ids deduplicated,
    sorted ascending and comma-joined ("" for attribute-less products).

    INVARIANT: UniqueConstraint("product_id", "option_key") makes
    "no two variants of one product with the same option set" a storage
    guarantee. Lookup and insert-if-absent both key on it
    (see variant_service.resolve_or_create_variant).
    """
    __tablename__ = "variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "option_key", name="uq_variants_product_option_key"),
        db.Index("ix_variants_org_product", "org_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    option_key = db.Column(db.String(512), nullable=False, default="")

    sku = db.Column(db.String(64), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))
    option_links = db.relationship(
        "VariantOption",
        backref="variant",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def option_ids(self) -> list[int]:
        if not self.option_key:
            return []
        return [int(part) for part in self.option_key.split(",")]

    def __repr__(self) -> str:
        return f"<Variant id={self.id} product_id={self.product_id} option_key={self.option_key!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "option_ids": self.option_ids,
            "sku": self.sku,
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
        }


class VariantOption(db.Model):
    """Link row: variant <-> characteristic option."""
    __tablename__ = "variant_options"
    __table_args__ = (
        db.UniqueConstraint("variant_id", "option_id", name="uq_variant_options_variant_option"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)
    option_id = db.Column(db.Integer, db.ForeignKey("characteristic_options.id"), nullable=False, index=True)

    option = db.relationship("CharacteristicOption")
