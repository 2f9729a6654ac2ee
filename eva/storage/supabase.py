"""Hosted backend store speaking PostgREST over HTTP."""

from typing import Any

import httpx

from eva.exceptions import StoreError
from eva.storage.base import Filter, Query, Row
from eva.utils.logging import get_logger

logger = get_logger(__name__)


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: Any) -> str:
    text = _format_value(value)
    if any(ch in text for ch in ',()"'):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def filter_params(filters: list[Filter]) -> list[tuple[str, str]]:
    """Translate filters into PostgREST query parameters."""
    params: list[tuple[str, str]] = []
    for flt in filters:
        match flt.op:
            case "in":
                params.append((flt.column, f"in.({','.join(_quote(v) for v in flt.value)})"))
            case "ilike":
                params.append((flt.column, f"ilike.{flt.value.replace('%', '*')}"))
            case "search":
                needle = str(flt.value).replace(",", " ").replace("(", " ").replace(")", " ")
                clauses = ",".join(f"{col}.ilike.*{needle}*" for col in flt.column.split(","))
                params.append(("or", f"({clauses})"))
            case "is_null":
                params.append((flt.column, "is.null"))
            case "not_null":
                params.append((flt.column, "not.is.null"))
            case _:
                params.append((flt.column, f"{flt.op}.{_format_value(flt.value)}"))
    return params


def query_params(query: Query | None) -> list[tuple[str, str]]:
    """Translate a full query (projection, filters, ordering, paging)."""
    if query is None:
        return [("select", "*")]

    params = [("select", query.columns)]
    params.extend(filter_params(query.filters))
    if query.orders:
        keys = []
        for order in query.orders:
            direction = "desc" if order.descending else "asc"
            nulls = "nullslast" if order.nulls_last else "nullsfirst"
            keys.append(f"{order.column}.{direction}.{nulls}")
        params.append(("order", ",".join(keys)))
    if query.limit_value is not None:
        params.append(("limit", str(query.limit_value)))
    if query.offset_value is not None:
        params.append(("offset", str(query.offset_value)))
    return params


class SupabaseStore:
    """Data store backed by the hosted Postgres REST API.

    Uses the service-role key, so every query must carry its own tenant filter.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the store.

        Args:
            url: Project URL (e.g. https://xyz.supabase.co)
            service_role_key: Service role key used for both auth headers
            timeout: Request timeout in seconds
            client: Optional preconfigured HTTP client (for tests)
        """
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.headers = {
            "Authorization": f"Bearer {service_role_key}",
            "apikey": service_role_key,
        }
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(
        self,
        method: str,
        table: str,
        params: list[tuple[str, str]],
        json: Row | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/{table}"
        try:
            response = await self.client.request(
                method, url, params=params, json=json, headers={**self.headers, **(headers or {})}
            )
        except httpx.HTTPError as e:
            logger.error(f"Store request to {table} failed: {e}", exc_info=True)
            raise StoreError(f"Falha de comunicação com o banco de dados: {e}", original_error=e) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("message", response.text) if isinstance(body, dict) else response.text
            logger.error(f"Store rejected {method} on {table} ({response.status_code}): {detail}")
            raise StoreError(str(detail))
        return response

    async def select(self, table: str, query: Query | None = None) -> list[Row]:
        """Return rows of `table` matching `query`."""
        response = await self._request("GET", table, query_params(query))
        return response.json()

    async def select_one(self, table: str, query: Query) -> Row | None:
        """Return the first matching row, or None."""
        rows = await self.select(table, query.limit(1))
        return rows[0] if rows else None

    async def insert(self, table: str, row: Row) -> Row:
        """Insert a row and return it as stored."""
        response = await self._request(
            "POST", table, [("select", "*")], json=row, headers={"Prefer": "return=representation"}
        )
        rows = response.json()
        if not rows:
            raise StoreError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, values: Row, query: Query) -> list[Row]:
        """Update matching rows and return them."""
        if not query.filters:
            raise StoreError("Refusing to update without filters")
        params = [("select", "*"), *filter_params(query.filters)]
        response = await self._request("PATCH", table, params, json=values, headers={"Prefer": "return=representation"})
        return response.json()

    async def count(self, table: str, query: Query | None = None) -> int:
        """Count matching rows using the exact-count header."""
        params = [("select", "id"), *filter_params(query.filters if query else [])]
        response = await self._request("HEAD", table, params, headers={"Prefer": "count=exact"})
        content_range = response.headers.get("content-range", "*/0")
        total = content_range.rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
