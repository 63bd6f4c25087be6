"""
Multi-Tenant Service: Tenant Context and Scoping Helpers

WHY: Every data access is scoped to a tenant (organization). Instead of
each call site remembering to filter by "the current business", callers
pass an explicit TenantContext and the helpers here apply the filter at
the data-access boundary.

SECURITY INVARIANTS:
1. Every authenticated tenant request has a TenantContext (g.tenant)
2. Every tenant-owned table has org_id; scoped_query filters on it
3. Store IDs from client input are validated with require_store_access
4. Employees are pinned to their own store
5. Cross-tenant access attempts are logged and answered as "not found"

USAGE:
    from tienda.services.tenant_service import scoped_query, get_scoped_or_404

    products = scoped_query(Product, ctx).filter_by(is_active=True).all()
    sale = get_scoped_or_404(Sale, sale_id, ctx)
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import g, has_request_context, request
from ..extensions import db
from ..models import Store
from ..models.auth import ROLE_ADMIN, ROLE_EMPLOYEE
from .permission_service import log_security_event


class TenantAccessError(Exception):
    """Raised when a row is missing or belongs to another tenant."""
    pass


@dataclass(frozen=True)
class TenantContext:
    """
    Who is acting, and inside which tenant.

    org_id is None only for superadmins, who cannot touch tenant data.
    store_id is set for employees (their single location) and None for
    admins (all locations of the org).
    """
    user_id: int | None
    org_id: int | None
    role: str
    employee_role: str | None = None
    store_id: int | None = None

    @property
    def is_employee(self) -> bool:
        return self.role == ROLE_EMPLOYEE

    @classmethod
    def for_admin(cls, org_id: int, user_id: int | None = None) -> "TenantContext":
        """Context with full tenant access, for CLI and background tasks."""
        return cls(user_id=user_id, org_id=org_id, role=ROLE_ADMIN)


def require_tenant(ctx: TenantContext) -> int:
    if ctx is None or ctx.org_id is None:
        raise TenantAccessError("Tenant context not established")
    return ctx.org_id


def scoped_query(model, ctx: TenantContext):
    """
    Base query for a tenant-owned model, filtered to ctx's organization.

    Usage:
        clients = scoped_query(Client, ctx).order_by(Client.name).all()
    """
    org_id = require_tenant(ctx)
    return db.session.query(model).filter(model.org_id == org_id)


def get_scoped_or_404(model, row_id: int, ctx: TenantContext, *, label: str | None = None):
    """
    Fetch one tenant-owned row by id.

    Raises TenantAccessError("<Label> not found") both when the row does
    not exist and when it belongs to another tenant.
    """
    label = label or model.__name__
    row = scoped_query(model, ctx).filter(model.id == row_id).first()
    if row is None:
        raise TenantAccessError(f"{label} not found")

    store_id = getattr(row, "store_id", None)
    if ctx.is_employee and store_id is not None and store_id != ctx.store_id:
        _log_cross_tenant_attempt(
            f"{label} {row_id} is at store {store_id}, employee is pinned to {ctx.store_id}",
            org_id=ctx.org_id,
            attempted_store_id=store_id,
            event_type="STORE_ACCESS_DENIED",
        )
        raise TenantAccessError(f"{label} not found")

    return row


def require_store_in_org(store_id: int, org_id: int) -> Store:
    """
    Validate that a store belongs to the specified organization.

    Raises:
        TenantAccessError if store doesn't exist or belongs to different org
    """
    store = db.session.query(Store).filter_by(id=store_id).first()

    if not store:
        _log_cross_tenant_attempt(
            f"Store {store_id} not found",
            org_id=org_id
        )
        raise TenantAccessError("Store not found")

    if store.org_id != org_id:
        # CRITICAL: Cross-tenant access attempt
        _log_cross_tenant_attempt(
            f"Store {store_id} belongs to org {store.org_id}, not {org_id}",
            org_id=org_id,
            attempted_store_id=store_id
        )
        raise TenantAccessError("Store not found")  # Don't reveal it exists in another org

    return store


def require_store_access(store_id: int, ctx: TenantContext) -> Store:
    """
    Validate that ctx may act on a store.

    The store must belong to ctx's organization; employees may only act
    on the store they are assigned to.
    """
    if store_id is None:
        raise TenantAccessError("Store not found")

    org_id = require_tenant(ctx)
    store = require_store_in_org(store_id, org_id)

    if ctx.is_employee and ctx.store_id != store.id:
        _log_cross_tenant_attempt(
            f"Employee pinned to store {ctx.store_id} attempted store {store.id}",
            org_id=org_id,
            attempted_store_id=store.id,
            event_type="STORE_ACCESS_DENIED",
        )
        raise TenantAccessError("Store not found")

    return store


def get_org_stores(org_id: int) -> list[Store]:
    """All stores for an organization, ordered by name."""
    return db.session.query(Store).filter_by(org_id=org_id).order_by(Store.name).all()


def _log_cross_tenant_attempt(
    reason: str,
    org_id: int | None = None,
    attempted_store_id: int | None = None,
    event_type: str = "CROSS_TENANT_ACCESS_DENIED",
) -> None:
    """Log a denied cross-tenant (or cross-store) access attempt."""
    in_request = has_request_context()
    ctx = getattr(g, "tenant", None) if in_request else None

    log_security_event(
        user_id=ctx.user_id if ctx else None,
        event_type=event_type,
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        org_id=org_id,
        store_id=attempted_store_id
    )
