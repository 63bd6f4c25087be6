# Overview: Service-layer operations for authorization; encapsulates the
# capability policy and the security event log.

"""
Authorization Policy and Security Event Logging

WHY: One server-side policy decides what each account may do. The UI only
presents what this policy already permits (see GET /api/auth/me); it is
never the source of truth.

POLICY: Capabilities come from a fixed table keyed by role
(permissions.roles.DEFAULT_ROLE_PERMISSIONS):
- admin                -> every tenant capability
- employee:inventario  -> inventory work at the employee's location
- employee:ventas      -> point of sale and clients at the employee's location
- superadmin           -> business (tenant) management only

DESIGN PRINCIPLES:
- Fail closed: unknown roles get no capabilities
- Log denials only: grants are not logged
- Tenant isolation: events carry org_id/store_id
"""

from ..extensions import db
from ..models import SecurityEvent
from ..models.auth import ROLE_EMPLOYEE
from ..permissions import DEFAULT_ROLE_PERMISSIONS
from tienda.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the caller lacks a required capability."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
    store_id: int | None = None
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - CROSS_TENANT_ACCESS_DENIED
    - STORE_ACCESS_DENIED
    - TENANT_CONTEXT_MISSING

    NOTE: Commits the session. Callers check access before writing anything.
    """
    event = SecurityEvent(
        user_id=user_id,
        org_id=org_id,
        store_id=store_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    db.session.commit()

    return event


def role_key(role: str | None, employee_role: str | None = None) -> str | None:
    """Map an account role (and employee sub-role) to its policy key."""
    if role == ROLE_EMPLOYEE:
        if not employee_role:
            return None
        return f"{ROLE_EMPLOYEE}:{employee_role}"
    return role


def get_role_permissions(role: str | None, employee_role: str | None = None) -> frozenset[str]:
    key = role_key(role, employee_role)
    if key is None:
        return frozenset()
    return DEFAULT_ROLE_PERMISSIONS.get(key, frozenset())


def get_context_permissions(ctx) -> frozenset[str]:
    """Capability codes granted to a TenantContext."""
    return get_role_permissions(ctx.role, ctx.employee_role)


def context_has_permission(ctx, permission_code: str) -> bool:
    return permission_code in get_context_permissions(ctx)


def require_permission(
    ctx,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Require a capability or raise PermissionDeniedError.

    Denials are written to security_events with the caller's tenant context.
    """
    if context_has_permission(ctx, permission_code):
        return

    log_security_event(
        user_id=ctx.user_id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=permission_code,
        reason=f"Missing permission: {permission_code}",
        ip_address=ip_address,
        user_agent=user_agent,
        org_id=ctx.org_id,
        store_id=ctx.store_id,
    )
    raise PermissionDeniedError(f"Missing permission: {permission_code}")
