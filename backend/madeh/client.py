# Overview: HTTP client for the Madeh API plus the client-side session and product state holders.

"""
Client-side helpers.

- MadehClient: one method per API operation; non-2xx responses raise ApiError
- SessionState: signed-in admin with persisted token, init/teardown and subscribers
- ProductCache: local product list kept in step with server responses
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx API response."""

    def __init__(self, status_code: int, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details or {}

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("error") or response.reason_phrase or "Request failed"
        details = body.get("details") or {k: v for k, v in body.items() if k != "error"}
        return cls(response.status_code, message, details)


class MadehClient:
    """
    HTTP client wrapper with bearer authentication.

    Pass transport=httpx.WSGITransport(app=flask_app) to talk to an
    in-process app.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:5000",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        token: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self.token = token

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, path: str, *, headers: Optional[Dict] = None, **kwargs) -> httpx.Response:
        response = self.client.request(method, path, headers=self._headers(headers), **kwargs)
        if response.is_error:
            raise ApiError.from_response(response)
        return response

    def _json(self, method: str, path: str, **kwargs) -> Any:
        return self._request(method, path, **kwargs).json()

    # Auth

    def login(self, identifier: str, password: str) -> Dict:
        """Authenticate and store the token; returns the login payload."""
        data = self._json("POST", "/api/auth/login", json={"email": identifier, "password": password})
        self.token = data.get("token")
        return data

    def logout(self) -> None:
        if not self.token:
            return
        try:
            self._request("POST", "/api/auth/logout")
        finally:
            self.token = None

    def me(self) -> Dict:
        return self._json("GET", "/api/auth/me")

    def update_profile(self, username: str) -> Dict:
        return self._json("PUT", "/api/auth/profile", json={"username": username})["admin"]

    def change_password(self, new_password: str, confirm_password: str) -> None:
        self._request("PUT", "/api/auth/password", json={
            "new_password": new_password,
            "confirm_password": confirm_password,
        })

    # Products

    def list_products(self, search: Optional[str] = None, category: Optional[str] = None) -> List[Dict]:
        params = {k: v for k, v in (("search", search), ("category", category)) if v}
        return self._json("GET", "/api/products", params=params)["items"]

    def list_categories(self) -> List[str]:
        return self._json("GET", "/api/products/categories")["categories"]

    def low_stock_products(self) -> List[Dict]:
        return self._json("GET", "/api/products/low-stock")["items"]

    def get_product(self, product_id: int) -> Dict:
        return self._json("GET", f"/api/products/{product_id}")

    def create_product(self, **fields) -> Dict:
        return self._json("POST", "/api/products", json=fields)

    def update_product(self, product_id: int, **fields) -> Dict:
        return self._json("PUT", f"/api/products/{product_id}", json=fields)

    def delete_product(self, product_id: int) -> None:
        self._request("DELETE", f"/api/products/{product_id}")

    def bulk_upload(self, csv_text: str) -> Dict:
        return self._json("POST", "/api/products/bulk-upload", content=csv_text.encode("utf-8"),
                          headers={"Content-Type": "text/csv"})

    def bulk_update(self, csv_text: str) -> Dict:
        return self._json("POST", "/api/products/bulk-update", content=csv_text.encode("utf-8"),
                          headers={"Content-Type": "text/csv"})

    # Purchases

    def checkout(
        self,
        items: List[Dict],
        payment_method: str = "Cash",
        payment_status: str = "Paid",
        customer_name: Optional[str] = None,
        customer_id_number: Optional[str] = None,
    ) -> Dict:
        payload = {
            "items": items,
            "payment_method": payment_method,
            "payment_status": payment_status,
            "customer_name": customer_name,
            "customer_id_number": customer_id_number,
        }
        return self._json("POST", "/api/purchases", json=payload)["purchase"]

    def list_purchases(self, payment_status: Optional[str] = None) -> List[Dict]:
        params = {"payment_status": payment_status} if payment_status else {}
        return self._json("GET", "/api/purchases", params=params)["items"]

    def get_purchase(self, purchase_id: int) -> Dict:
        return self._json("GET", f"/api/purchases/{purchase_id}")["purchase"]

    def mark_paid(self, purchase_id: int) -> Dict:
        return self._json("POST", f"/api/purchases/{purchase_id}/mark-paid")["purchase"]

    # Reports

    def dashboard(self) -> Dict:
        return self._json("GET", "/api/dashboard")

    def sales_report(self, date_filter: str = "all", payment_method: str = "all") -> Dict:
        return self._json("GET", "/api/reports/sales",
                          params={"date_filter": date_filter, "payment_method": payment_method})

    def sales_report_csv(self, date_filter: str = "all", payment_method: str = "all") -> str:
        return self._request("GET", "/api/reports/sales.csv",
                             params={"date_filter": date_filter, "payment_method": payment_method}).text

    def total_sales(self) -> int:
        return self._json("GET", "/api/reports/total-sales")["total_sales_cents"]

    # Backups

    def export_backup(self) -> Dict:
        return self._json("GET", "/api/backups/export")

    def restore_backup(self, document: Dict) -> Dict:
        return self._json("POST", "/api/backups/restore", json=document)["restored"]

    def list_backups(self) -> List[Dict]:
        return self._json("GET", "/api/backups")["items"]

    def save_backup(self) -> Dict:
        return self._json("POST", "/api/backups")["backup"]

    def restore_saved_backup(self, name: str) -> Dict:
        return self._json("POST", f"/api/backups/{name}/restore")["restored"]

    # Admins

    def list_admins(self) -> List[Dict]:
        return self._json("GET", "/api/admins")["admins"]

    def create_admin(self, username: str, email: str, password: str, role: str) -> Dict:
        return self._json("POST", "/api/admins", json={
            "username": username, "email": email, "password": password, "role": role,
        })["admin"]

    def update_admin(self, admin_id: int, **patch) -> Dict:
        return self._json("PUT", f"/api/admins/{admin_id}", json=patch)["admin"]

    def close(self):
        """Close the HTTP client."""
        self.client.close()


class SessionState:
    """
    Signed-in admin for a client process.

    The token is persisted to token_path (if given) so init() can resume a
    session. Subscribers are called with the state after login, logout and
    init.
    """

    def __init__(self, client: MadehClient, token_path: Optional[str | Path] = None):
        self.client = client
        self.token_path = Path(token_path) if token_path else None
        self.admin: Optional[Dict] = None
        self.permissions: frozenset = frozenset()
        self._subscribers: List[Callable[["SessionState"], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return self.admin is not None

    def has_permission(self, code: str) -> bool:
        return code in self.permissions

    def subscribe(self, callback: Callable[["SessionState"], None]) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)

    def _set(self, payload: Optional[Dict]) -> None:
        if payload is None:
            self.admin = None
            self.permissions = frozenset()
        else:
            self.admin = payload.get("admin")
            self.permissions = frozenset(payload.get("permissions") or ())

    def _read_token(self) -> Optional[str]:
        if not self.token_path or not self.token_path.is_file():
            return None
        return self.token_path.read_text(encoding="utf-8").strip() or None

    def _write_token(self, token: Optional[str]) -> None:
        if not self.token_path:
            return
        if token:
            self.token_path.parent.mkdir(parents=True, exist_ok=True)
            self.token_path.write_text(token, encoding="utf-8")
        elif self.token_path.exists():
            self.token_path.unlink()

    def init(self) -> Optional[Dict]:
        """Resume a persisted session; returns the admin or None."""
        token = self._read_token()
        if token:
            self.client.token = token
            try:
                self._set(self.client.me())
            except ApiError as e:
                if e.status_code != 401:
                    raise
                logger.info("Stored session is no longer valid")
                self.client.token = None
                self._write_token(None)
                self._set(None)
        self._notify()
        return self.admin

    def login(self, identifier: str, password: str) -> Dict:
        payload = self.client.login(identifier, password)
        self._write_token(self.client.token)
        self._set(payload)
        self._notify()
        return self.admin

    def logout(self) -> None:
        try:
            self.client.logout()
        except ApiError as e:
            # Already expired or revoked server-side
            if e.status_code != 401:
                raise
        finally:
            self._write_token(None)
            self._set(None)
        self._notify()

    def refresh(self) -> None:
        """Re-read the admin (e.g. after a profile change)."""
        self._set(self.client.me())
        self._notify()

    def teardown(self) -> None:
        self._subscribers.clear()
        self.client.close()


class ProductCache:
    """Local product list, updated from server responses instead of refetching."""

    def __init__(self, products: Optional[List[Dict]] = None):
        self._products: Dict[int, Dict] = {}
        for product in products or []:
            self._products[product["id"]] = dict(product)

    def __len__(self) -> int:
        return len(self._products)

    def get(self, product_id: int) -> Optional[Dict]:
        return self._products.get(product_id)

    def load(self, client: MadehClient) -> None:
        self._products = {p["id"]: dict(p) for p in client.list_products()}

    def apply_created(self, product: Dict) -> None:
        self._products[product["id"]] = dict(product)

    def apply_updated(self, product: Dict) -> None:
        self._products[product["id"]] = dict(product)

    def apply_deleted(self, product_id: int) -> None:
        self._products.pop(product_id, None)

    def apply_purchase(self, purchase: Dict) -> None:
        """Decrement cached stock by the quantities on a checked-out purchase."""
        for item in purchase.get("items", []):
            product = self._products.get(item["product_id"])
            if product is not None:
                product["stock"] = product["stock"] - item["quantity"]

    def categories(self) -> List[str]:
        return sorted({p["category"] for p in self._products.values()})

    def filtered(self, search: Optional[str] = None, category: Optional[str] = None) -> List[Dict]:
        """Products ordered by name; search matches name or category ignoring case."""
        needle = (search or "").strip().lower()
        result = []
        for product in self._products.values():
            if category and product["category"] != category:
                continue
            if needle and needle not in product["name"].lower() and needle not in product["category"].lower():
                continue
            result.append(product)
        return sorted(result, key=lambda p: (p["name"].lower(), p["id"]))
