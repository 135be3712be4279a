# Overview: Permission system package.

from .definitions import (
    PERMISSION_DEFINITIONS,
    CATALOG_PERMISSIONS,
    SALES_PERMISSIONS,
    REPORT_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS


def get_role_permissions(role: str) -> frozenset[str]:
    """Permission codes granted to a role (empty for unknown roles)."""
    return DEFAULT_ROLE_PERMISSIONS.get(role, frozenset())


__all__ = [
    "PERMISSION_DEFINITIONS",
    "CATALOG_PERMISSIONS",
    "SALES_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_role_permissions",
]
