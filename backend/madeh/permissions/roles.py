# Overview: Default permission sets per admin role.

from ..models.auth import ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_CASHIER
from .definitions import PERMISSION_DEFINITIONS


_ALL = frozenset(code for code, _name, _desc in PERMISSION_DEFINITIONS)

DEFAULT_ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    ROLE_SUPER_ADMIN: _ALL,
    ROLE_ADMIN: _ALL - {"MANAGE_ADMINS"},
    ROLE_CASHIER: frozenset({
        "VIEW_PRODUCTS",
        "CREATE_PURCHASE",
        "VIEW_PURCHASES",
        "MARK_PAID",
        "VIEW_DASHBOARD",
    }),
}
