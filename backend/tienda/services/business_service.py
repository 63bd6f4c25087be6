# Overview: Service-layer operations for businesses (tenants); platform
# management by superadmins.

"""
Business Service

WHY: A business ("negocio") is a tenant: an Organization with its own
admin account, locations, catalog, stock, clients, staff and sales.
Superadmins create, bill, suspend and delete businesses; they never act
inside one (they hold no tenant capabilities).

DELETE: delete_business removes every tenant-owned row in dependency
order in one transaction. Security events are kept (they carry plain ids).
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import (
    Organization,
    Store,
    User,
    SessionToken,
    Employee,
    Product,
    Characteristic,
    CharacteristicOption,
    Variant,
    VariantOption,
    StockEntry,
    Sale,
    SaleLine,
    Client,
    ClientPayment,
)
from ..models.auth import ROLE_ADMIN
from .auth_service import AccountError, create_user, reset_password
from .session_service import revoke_all_user_sessions

logger = logging.getLogger(__name__)

BUSINESS_MUTABLE_FIELDS = {"name", "code", "billing_day", "billing_amount_cents"}


class BusinessError(Exception):
    """Raised for business management errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class BusinessNotFoundError(BusinessError):
    """Raised when a business (or its admin) does not exist."""
    pass


def create_business(
    name: str,
    admin_email: str,
    admin_password: str,
    *,
    admin_name: str | None = None,
    code: str | None = None,
    billing_day: int | None = None,
    billing_amount_cents: int | None = None,
) -> tuple[Organization, User]:
    """
    Create an organization and its admin account in one transaction.

    Raises BusinessError (blank name, duplicate code or email) or
    PasswordValidationError (weak admin password).
    """
    name = (name or "").strip()
    if not name:
        raise BusinessError("Business name is required")
    code = (code or "").strip() or None
    if code and db.session.query(Organization.id).filter_by(code=code).first():
        raise BusinessError("Business code already exists")

    try:
        org = Organization(
            name=name,
            code=code,
            billing_day=billing_day,
            billing_amount_cents=billing_amount_cents,
            is_active=True,
        )
        db.session.add(org)
        db.session.flush()

        admin = create_user(admin_email, admin_password, ROLE_ADMIN, org_id=org.id, name=admin_name, commit=False)
        db.session.commit()
    except AccountError as e:
        db.session.rollback()
        raise BusinessError(str(e))
    except Exception:
        db.session.rollback()
        raise

    logger.info("Business %s created with admin %s", org.id, admin.email)
    return org, admin


def get_business(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if org is None:
        raise BusinessNotFoundError("Business not found")
    return org


def get_business_admins(org_id: int) -> list[User]:
    return (
        db.session.query(User)
        .filter_by(org_id=org_id, role=ROLE_ADMIN)
        .order_by(User.id.asc())
        .all()
    )


def business_summary(org: Organization) -> dict:
    admins = get_business_admins(org.id)
    return {
        **org.to_dict(),
        "admin_email": admins[0].email if admins else None,
        "store_count": db.session.query(Store.id).filter_by(org_id=org.id).count(),
        "employee_count": db.session.query(Employee.id).filter_by(org_id=org.id).count(),
    }


def list_businesses(include_inactive: bool = True) -> list[Organization]:
    query = db.session.query(Organization)
    if not include_inactive:
        query = query.filter(Organization.is_active.is_(True))
    return query.order_by(Organization.name.asc(), Organization.id.asc()).all()


def update_business(org_id: int, patch: dict) -> Organization:
    org = get_business(org_id)
    if "name" in patch and not (patch["name"] or "").strip():
        raise BusinessError("Business name is required")
    if patch.get("code"):
        taken = db.session.query(Organization.id).filter(
            Organization.code == patch["code"], Organization.id != org.id
        ).first()
        if taken:
            raise BusinessError("Business code already exists")

    for k, v in patch.items():
        if k in BUSINESS_MUTABLE_FIELDS:
            setattr(org, k, v)
    db.session.commit()
    return org


def set_business_active(org_id: int, active: bool) -> Organization:
    """Suspend or reactivate a business. Suspension revokes every session of its users."""
    org = get_business(org_id)
    org.is_active = bool(active)
    db.session.commit()

    if not org.is_active:
        for (user_id,) in db.session.query(User.id).filter_by(org_id=org.id).all():
            revoke_all_user_sessions(user_id, reason="Organization deactivated")
    logger.info("Business %s %s", org.id, "activated" if org.is_active else "deactivated")
    return org


def reset_admin_password(org_id: int, new_password: str, admin_user_id: int | None = None) -> User:
    """Reset the password of a business admin (the first admin when no id is given)."""
    get_business(org_id)
    query = db.session.query(User).filter_by(org_id=org_id, role=ROLE_ADMIN)
    if admin_user_id is not None:
        query = query.filter(User.id == admin_user_id)
    admin = query.order_by(User.id.asc()).first()
    if admin is None:
        raise BusinessNotFoundError("Admin not found")

    reset_password(admin, new_password)
    logger.info("Admin password reset for business %s (user %s)", org_id, admin.id)
    return admin


def delete_business(org_id: int) -> None:
    """Delete a business and everything it owns, in one transaction."""
    org = get_business(org_id)

    def ids(query) -> list[int]:
        return [row[0] for row in query.all()]

    sale_ids = ids(db.session.query(Sale.id).filter_by(org_id=org.id))
    product_ids = ids(db.session.query(Product.id).filter_by(org_id=org.id))
    variant_ids = ids(db.session.query(Variant.id).filter_by(org_id=org.id))
    characteristic_ids = ids(
        db.session.query(Characteristic.id).filter(Characteristic.product_id.in_(product_ids))
    )
    user_ids = ids(db.session.query(User.id).filter_by(org_id=org.id))

    try:
        def purge(model, *criteria) -> None:
            db.session.query(model).filter(*criteria).delete(synchronize_session=False)

        purge(SaleLine, SaleLine.sale_id.in_(sale_ids))
        purge(Sale, Sale.org_id == org.id)
        purge(ClientPayment, ClientPayment.org_id == org.id)
        purge(Client, Client.org_id == org.id)
        purge(StockEntry, StockEntry.org_id == org.id)
        purge(VariantOption, VariantOption.variant_id.in_(variant_ids))
        purge(Variant, Variant.org_id == org.id)
        purge(CharacteristicOption, CharacteristicOption.characteristic_id.in_(characteristic_ids))
        purge(Characteristic, Characteristic.id.in_(characteristic_ids))
        purge(Product, Product.org_id == org.id)
        purge(SessionToken, SessionToken.user_id.in_(user_ids))
        purge(Employee, Employee.org_id == org.id)
        purge(User, User.org_id == org.id)
        purge(Store, Store.org_id == org.id)
        purge(Organization, Organization.id == org.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Business %s deleted", org_id)
