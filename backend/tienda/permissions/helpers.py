# Overview: Lookups over the permission catalog (codes, categories and
# labelled definitions).

from .definitions import PERMISSION_DEFINITIONS

_FIELDS = ("code", "name", "description", "category")


def get_all_permission_codes():
    """Every permission code in the catalog, in definition order."""
    return [code for code, *_ in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    """Catalog tuples belonging to one PermissionCategory."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    """
    Catalog entry for code as a dict (code, name, description, category),
    or None when the code is unknown. Labels the capabilities returned by
    /api/auth/me.
    """
    match = next((perm for perm in PERMISSION_DEFINITIONS if perm[0] == code), None)
    return dict(zip(_FIELDS, match)) if match is not None else None


def validate_permission_code(code):
    return code in get_all_permission_codes()
