"""
Permission Constants and Role Mapping

WHY: Centralized permission definitions ensure consistency across the
application. Routes ask for a permission code; this module decides which
roles hold it.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Two fixed roles; the mapping is static and lives in code, not the database
- Admin has all permissions
- Shopkeepers never hold VIEW_COSTS: purchase prices and profit stay hidden
"""

from __future__ import annotations

from .models.auth import ROLE_ADMIN, ROLE_SHOPKEEPER


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# (code, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_PRODUCTS", "Browse and search the catalog"),
    ("MANAGE_PRODUCTS", "Create and edit products"),
    ("DELETE_PRODUCTS", "Remove products from the catalog"),
    ("VIEW_COSTS", "See purchase prices and profit figures"),
    ("CREATE_SALE", "Check out a cart"),
    ("VIEW_SALES", "View sales history (own sales only without VIEW_ALL_SALES)"),
    ("VIEW_ALL_SALES", "View every user's sales"),
    ("PROCESS_RETURN", "Return a sold item"),
    ("RECALCULATE_PRICES", "Rewrite historical prices for a product"),
    ("VIEW_REPORTS", "Stock valuation and profit reports"),
    ("VIEW_CHANGES", "Poll the change feed"),
]

ALL_PERMISSIONS = frozenset(code for code, _ in PERMISSION_DEFINITIONS)


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

ROLE_PERMISSIONS = {
    ROLE_ADMIN: ALL_PERMISSIONS,
    ROLE_SHOPKEEPER: frozenset({
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "CREATE_SALE",
        "VIEW_SALES",
        "PROCESS_RETURN",
        "VIEW_CHANGES",
    }),
}


def get_role_permissions(role: str | None) -> frozenset:
    return ROLE_PERMISSIONS.get(role or "", frozenset())


def has_permission(role: str | None, permission_code: str) -> bool:
    return permission_code in get_role_permissions(role)
