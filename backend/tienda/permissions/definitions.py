# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View products, variants and stock per location",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create and edit products, characteristics, options and variants",
        PermissionCategory.INVENTORY,
    ),
    (
        "RECEIVE_STOCK",
        "Receive Stock",
        "Add stock entries and restock existing ones",
        PermissionCategory.INVENTORY,
    ),
    (
        "UPDATE_PRICES",
        "Update Prices",
        "Change the unit price of an existing stock entry",
        PermissionCategory.INVENTORY,
    ),
    (
        "DELETE_STOCK",
        "Delete Stock",
        "Remove stock entries and products",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Check out carts at the point of sale",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "List sales and view sale details",
        PermissionCategory.SALES,
    ),
    (
        "DELETE_SALE",
        "Delete Sale",
        "Delete a sale, returning its stock and reversing client totals",
        PermissionCategory.SALES,
    ),
]


# -- CLIENTS --

CLIENT_PERMISSIONS = [
    (
        "VIEW_CLIENTS",
        "View Clients",
        "View client records, balances and purchase history",
        PermissionCategory.CLIENTS,
    ),
    (
        "MANAGE_CLIENTS",
        "Manage Clients",
        "Create and edit clients, record payments and charges",
        PermissionCategory.CLIENTS,
    ),
]


# -- STAFF --

STAFF_PERMISSIONS = [
    (
        "MANAGE_EMPLOYEES",
        "Manage Employees",
        "Create, edit and remove employees and reset their passwords",
        PermissionCategory.STAFF,
    ),
]


# -- LOCATIONS --

LOCATION_PERMISSIONS = [
    (
        "VIEW_LOCATIONS",
        "View Locations",
        "List the business locations",
        PermissionCategory.LOCATIONS,
    ),
    (
        "MANAGE_LOCATIONS",
        "Manage Locations",
        "Create, edit and remove locations",
        PermissionCategory.LOCATIONS,
    ),
]


# -- PLATFORM --

PLATFORM_PERMISSIONS = [
    (
        "MANAGE_BUSINESSES",
        "Manage Businesses",
        "Create, suspend and remove tenant businesses and their admins",
        PermissionCategory.PLATFORM,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + CLIENT_PERMISSIONS
    + STAFF_PERMISSIONS
    + LOCATION_PERMISSIONS
    + PLATFORM_PERMISSIONS
)
