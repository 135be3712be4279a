# Overview: All permission definitions.
# Each permission is defined as: (code, name, description)


CATALOG_PERMISSIONS = [
    ("VIEW_PRODUCTS", "View Products", "View the product catalog and stock levels"),
    ("MANAGE_PRODUCTS", "Manage Products", "Create, edit and delete products"),
    ("IMPORT_PRODUCTS", "Import Products", "Bulk upload and bulk update products from CSV"),
]

SALES_PERMISSIONS = [
    ("CREATE_PURCHASE", "Create Purchase", "Check out a cart as a new purchase"),
    ("VIEW_PURCHASES", "View Purchases", "View purchases and their line items"),
    ("MARK_PAID", "Mark Paid", "Mark an unpaid purchase as paid"),
]

REPORT_PERMISSIONS = [
    ("VIEW_DASHBOARD", "View Dashboard", "View dashboard statistics"),
    ("VIEW_REPORTS", "View Reports", "View and export sales reports"),
]

SYSTEM_PERMISSIONS = [
    ("MANAGE_BACKUPS", "Manage Backups", "Create, list and restore data backups"),
    ("MANAGE_ADMINS", "Manage Admins", "Create admin accounts and change roles or status"),
]

PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + SALES_PERMISSIONS
    + REPORT_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
