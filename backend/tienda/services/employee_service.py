# Overview: Service-layer operations for employees and their login accounts.

"""
Employee Service

WHY: An employee is a person working at exactly one location of a
business, with a sub-role that decides what they may do there:
- inventario: product builder and stock receipts
- ventas: point of sale and clients

Every employee has a login account (User, role "employee"). The account
and the Employee row are created in one transaction, and removed together.

Changing an employee's role or location revokes their sessions: the
session pins its store and capabilities are read per request, so a fresh
login picks up the new assignment.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Employee, User, SessionToken, Sale, ClientPayment
from ..models.auth import ROLE_EMPLOYEE
from ..models.staff import EMPLOYEE_ROLES
from .auth_service import AccountError, create_user, reset_password
from .session_service import revoke_all_user_sessions
from .tenant_service import TenantContext, scoped_query, get_scoped_or_404, require_store_access, require_tenant

logger = logging.getLogger(__name__)

EMPLOYEE_MUTABLE_FIELDS = {"name", "phone", "salary_cents", "role", "store_id"}


class EmployeeError(Exception):
    """Raised for employee operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _check_role(role: str) -> None:
    if role not in EMPLOYEE_ROLES:
        raise EmployeeError(f"role must be one of: {', '.join(EMPLOYEE_ROLES)}")


def create_employee(
    ctx: TenantContext,
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    store_id: int,
    phone: str | None = None,
    salary_cents: int | None = None,
) -> Employee:
    """
    Create an employee together with its login account.

    Raises EmployeeError (bad role, duplicate email), PasswordValidationError
    (weak password) or TenantAccessError (store outside the business).
    """
    org_id = require_tenant(ctx)
    if not (name or "").strip():
        raise EmployeeError("Employee name is required")
    _check_role(role)
    store = require_store_access(store_id, ctx)

    try:
        user = create_user(email, password, ROLE_EMPLOYEE, org_id=org_id, name=name.strip(), commit=False)
        employee = Employee(
            org_id=org_id,
            store_id=store.id,
            user_id=user.id,
            name=name.strip(),
            email=user.email,
            phone=phone,
            salary_cents=salary_cents,
            role=role,
        )
        db.session.add(employee)
        db.session.commit()
    except AccountError as e:
        db.session.rollback()
        raise EmployeeError(str(e))
    except Exception:
        db.session.rollback()
        raise

    logger.info("Employee %s (%s) created at store %s", employee.id, role, store.id)
    return employee


def list_employees(ctx: TenantContext, store_id: int | None = None) -> list[Employee]:
    query = scoped_query(Employee, ctx)
    if store_id is not None:
        require_store_access(store_id, ctx)
        query = query.filter(Employee.store_id == store_id)
    return query.order_by(Employee.name.asc(), Employee.id.asc()).all()


def get_employee(ctx: TenantContext, employee_id: int) -> Employee:
    return get_scoped_or_404(Employee, employee_id, ctx, label="Employee")


def update_employee(ctx: TenantContext, employee_id: int, patch: dict) -> Employee:
    employee = get_employee(ctx, employee_id)

    if "role" in patch:
        _check_role(patch["role"])
    if "store_id" in patch:
        require_store_access(patch["store_id"], ctx)
    if "name" in patch and not (patch["name"] or "").strip():
        raise EmployeeError("Employee name is required")

    reassigned = (
        ("role" in patch and patch["role"] != employee.role)
        or ("store_id" in patch and patch["store_id"] != employee.store_id)
    )

    for k, v in patch.items():
        if k in EMPLOYEE_MUTABLE_FIELDS:
            setattr(employee, k, v.strip() if k == "name" else v)
    if "name" in patch:
        employee.user.name = employee.name

    db.session.commit()

    if reassigned:
        revoked = revoke_all_user_sessions(employee.user_id, reason="Employee reassigned")
        logger.info("Employee %s reassigned, %d sessions revoked", employee.id, revoked)
    return employee


def delete_employee(ctx: TenantContext, employee_id: int) -> None:
    """
    Remove an employee and its login account.

    Sales and client movements they recorded are kept without attribution.
    """
    employee = get_employee(ctx, employee_id)
    user_id = employee.user_id

    db.session.query(Sale).filter_by(created_by_user_id=user_id).update(
        {"created_by_user_id": None}, synchronize_session=False
    )
    db.session.query(ClientPayment).filter_by(created_by_user_id=user_id).update(
        {"created_by_user_id": None}, synchronize_session=False
    )
    db.session.query(SessionToken).filter_by(user_id=user_id).delete(synchronize_session=False)
    db.session.delete(employee)
    db.session.flush()
    db.session.query(User).filter_by(id=user_id).delete(synchronize_session=False)
    db.session.commit()

    logger.info("Employee %s and user %s deleted", employee_id, user_id)


def reset_employee_password(ctx: TenantContext, employee_id: int, new_password: str) -> Employee:
    employee = get_employee(ctx, employee_id)
    reset_password(employee.user, new_password)
    return employee
