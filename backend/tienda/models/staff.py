from __future__ import annotations

from ..extensions import db
from tienda.time_utils import to_utc_z

# Location-scoped sub-roles for employees
EMPLOYEE_ROLE_INVENTORY = "inventario"
EMPLOYEE_ROLE_SALES = "ventas"
EMPLOYEE_ROLES = (EMPLOYEE_ROLE_INVENTORY, EMPLOYEE_ROLE_SALES)


class Employee(db.Model):
    """
    Staff member assigned to exactly one location.

    Each employee owns a login User (role="employee"). The sub-role here
    (inventario / ventas) selects the employee's capability set in
    permissions.roles; store_id pins every session of that user to the
    location.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_employees_user"),
        db.Index("ix_employees_org_store", "org_id", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    salary_cents = db.Column(db.Integer, nullable=True)

    role = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("employees", lazy=True))
    user = db.relationship("User", backref=db.backref("employee", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "salary_cents": self.salary_cents,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
