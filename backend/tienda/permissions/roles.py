# Overview: Fixed capability policy per account role.
#
# Keys are role names as resolved by permission_service.role_key():
# "admin", "superadmin", "employee:inventario", "employee:ventas".

from .definitions import PLATFORM_PERMISSIONS, PERMISSION_DEFINITIONS

_TENANT_CODES = frozenset(
    perm[0] for perm in PERMISSION_DEFINITIONS if perm not in PLATFORM_PERMISSIONS
)

DEFAULT_ROLE_PERMISSIONS = {
    "admin": _TENANT_CODES,
    "employee:inventario": frozenset({
        "VIEW_INVENTORY",
        "MANAGE_PRODUCTS",
        "RECEIVE_STOCK",
        "VIEW_LOCATIONS",
    }),
    "employee:ventas": frozenset({
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "VIEW_CLIENTS",
        "MANAGE_CLIENTS",
        "VIEW_LOCATIONS",
    }),
    "superadmin": frozenset({
        "MANAGE_BUSINESSES",
    }),
}
