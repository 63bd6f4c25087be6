from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Store, Employee, StockEntry, Sale, SessionToken
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import TenantContext, scoped_query, get_scoped_or_404, require_store_access, require_tenant


class LocationError(Exception):
    """Raised when location operations fail."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _name_taken(org_id: int, name: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Store.id).filter(Store.org_id == org_id, Store.name == name)
    if exclude_id is not None:
        query = query.filter(Store.id != exclude_id)
    return query.first() is not None


def create_location(ctx: TenantContext, name: str, address: str | None = None) -> Store:
    org_id = require_tenant(ctx)
    name = _clean(name)
    if not name:
        raise LocationError("Location name is required")

    def _op():
        if _name_taken(org_id, name):
            raise LocationError("A location with this name already exists")

        store = Store(org_id=org_id, name=name, address=_clean(address))
        db.session.add(store)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise LocationError("A location with this name already exists")
        return store

    return run_with_retry(_op)


def update_location(
    ctx: TenantContext,
    store_id: int,
    *,
    name: str | None = None,
    address: str | None = None,
) -> Store:
    require_store_access(store_id, ctx)

    def _op():
        store = lock_for_update(scoped_query(Store, ctx).filter(Store.id == store_id)).first()
        if not store:
            raise LocationError("Location not found")

        if name is not None:
            new_name = _clean(name)
            if not new_name:
                raise LocationError("Location name is required")
            if _name_taken(store.org_id, new_name, exclude_id=store.id):
                raise LocationError("A location with this name already exists")
            store.name = new_name
        if address is not None:
            store.address = _clean(address)

        db.session.commit()
        return store

    return run_with_retry(_op)


def get_location(ctx: TenantContext, store_id: int) -> Store:
    return require_store_access(store_id, ctx)


def list_locations(ctx: TenantContext) -> list[Store]:
    query = scoped_query(Store, ctx)
    if ctx.is_employee:
        query = query.filter(Store.id == ctx.store_id)
    return query.order_by(Store.name.asc()).all()


def list_location_employees(ctx: TenantContext, store_id: int) -> list[Employee]:
    store = require_store_access(store_id, ctx)
    return (
        scoped_query(Employee, ctx)
        .filter(Employee.store_id == store.id)
        .order_by(Employee.name.asc())
        .all()
    )


def delete_location(ctx: TenantContext, store_id: int) -> None:
    """Delete a location. Refused while employees, stock or sales reference it."""
    store = get_scoped_or_404(Store, store_id, ctx, label="Location")

    blockers = {
        "employees": db.session.query(Employee.id).filter_by(store_id=store.id).count(),
        "stock_entries": db.session.query(StockEntry.id).filter_by(store_id=store.id).count(),
        "sales": db.session.query(Sale.id).filter_by(store_id=store.id).count(),
    }
    blockers = {k: v for k, v in blockers.items() if v}
    if blockers:
        raise LocationError("Location is still in use", details=blockers)

    # Only revoked sessions of former employees can still point here
    db.session.query(SessionToken).filter_by(store_id=store.id).delete(synchronize_session=False)
    db.session.delete(store)
    db.session.commit()
