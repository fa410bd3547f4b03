from __future__ import annotations

from typing import Any, Dict, List

import requests

DEFAULT_TIMEOUT = 20
ERROR_SNIPPET_CHARS = 1200


class SupabaseRestError(RuntimeError):
    pass


class SupabaseRestClient:
    """Minimal PostgREST client for the tables the advisor reads and writes.

    Filters use PostgREST operator strings, e.g. ``{"user_id": "eq.<id>"}`` or
    ``{"transaction_date": "gte.2026-01-01T00:00:00Z"}``.
    """

    def __init__(
        self,
        *,
        supabase_url: str | None = None,
        service_key: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        root = (supabase_url or "").strip().rstrip("/")
        self.service_key = (service_key or "").strip()
        self.rest_url = f"{root}/rest/v1" if root else ""
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.rest_url and self.service_key)

    def _headers(self, prefer: str | None = None) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _call(
        self,
        method: str,
        table: str,
        *,
        params: Dict[str, Any] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        if not self.configured:
            raise SupabaseRestError("Supabase is not configured. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
        try:
            response = requests.request(
                method=method,
                url=f"{self.rest_url}/{table}",
                params=params,
                json=body,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SupabaseRestError(f"Supabase {method} {table} request failed: {exc}") from exc
        return _decode(response, method, table)

    def fetch_rows(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
        page_size: int = 1000,
    ) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        while limit is None or len(rows) < limit:
            want = page_size if limit is None else min(page_size, limit - len(rows))
            params: Dict[str, Any] = {"select": select, "limit": want, "offset": len(rows)}
            if order:
                params["order"] = order
            params.update(filters or {})
            page = self._call("GET", table, params=params)
            if not isinstance(page, list):
                raise SupabaseRestError(f"Unexpected response type for table {table}")
            rows.extend(page)
            if len(page) < want:
                break
        return rows

    def fetch_one(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Dict[str, str] | None = None,
    ) -> Dict[str, Any] | None:
        rows = self.fetch_rows(table, select=select, filters=filters, limit=1)
        return rows[0] if rows else None

    def insert_row(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        created = self._call("POST", table, body=[row], prefer="return=representation")
        if not isinstance(created, list) or not created:
            raise SupabaseRestError(f"Insert into {table} returned no row")
        return created[0]

    def update_rows(
        self,
        table: str,
        values: Dict[str, Any],
        *,
        filters: Dict[str, str],
    ) -> List[Dict[str, Any]]:
        if not filters:
            raise SupabaseRestError(f"Refusing unfiltered update on {table}")
        updated = self._call("PATCH", table, params=dict(filters), body=values, prefer="return=representation")
        return updated if isinstance(updated, list) else []

    def delete_rows(self, table: str, *, filters: Dict[str, str]) -> None:
        if not filters:
            raise SupabaseRestError(f"Refusing unfiltered delete on {table}")
        self._call("DELETE", table, params=dict(filters), prefer="return=minimal")


def _decode(response: requests.Response, method: str, table: str) -> Any:
    if response.status_code >= 400:
        raise SupabaseRestError(
            f"Supabase {method} {table} failed ({response.status_code}): {response.text[:ERROR_SNIPPET_CHARS]}"
        )
    if not response.text or "application/json" not in response.headers.get("content-type", ""):
        return None
    return response.json()
