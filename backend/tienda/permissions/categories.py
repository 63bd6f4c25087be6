# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    CLIENTS = "CLIENTS"
    STAFF = "STAFF"
    LOCATIONS = "LOCATIONS"
    PLATFORM = "PLATFORM"
