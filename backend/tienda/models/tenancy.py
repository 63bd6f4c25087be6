from __future__ import annotations

from ..extensions import db
from tienda.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: every business ("negocio") is an Organization.

    WHY: Shared-database multi-tenancy with strict isolation.
    Locations, products, stock, sales, clients and employees all belong
    to exactly one organization. No data may cross organization boundaries.

    DESIGN:
    - Organizations are the tenant boundary
    - Every tenant-owned table carries org_id directly, so the data-access
      layer can filter on it without joins (see tenant_service.scoped_query)
    - Superadmins manage organizations but do not belong to one
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Platform billing (managed by superadmins)
    billing_day = db.Column(db.Integer, nullable=True)
    billing_amount_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "billing_day": self.billing_day,
            "billing_amount_cents": self.billing_amount_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Store(db.Model):
    """
    Location ("sucursal") within an organization.

    MULTI-TENANT: Stores are scoped to organizations via org_id.
    Store names are unique within an organization, not globally.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("org_id", "name", name="uq_stores_org_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("stores", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "address": self.address,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
