"""In-memory data store for development and tests."""

import copy
import re
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from eva.exceptions import StoreError
from eva.storage.base import Filter, Query, Row
from eva.utils.logging import get_logger

logger = get_logger(__name__)


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    parts = [re.escape(part) for part in pattern.split("%")]
    return re.compile("^" + ".*".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _matches(row: Row, flt: Filter) -> bool:
    value = row.get(flt.column)
    match flt.op:
        case "eq":
            return value == flt.value
        case "neq":
            return value != flt.value
        case "in":
            return value in flt.value
        case "ilike":
            return value is not None and bool(_like_to_regex(flt.value).match(str(value)))
        case "search":
            needle = str(flt.value).lower()
            return any(needle in str(row.get(col) or "").lower() for col in flt.column.split(","))
        case "gt":
            return value is not None and value > flt.value
        case "gte":
            return value is not None and value >= flt.value
        case "lt":
            return value is not None and value < flt.value
        case "lte":
            return value is not None and value <= flt.value
        case "is_null":
            return value is None
        case "not_null":
            return value is not None
    raise StoreError(f"Unsupported filter operator: {flt.op}")


def _project(row: Row, columns: str) -> Row:
    if columns.strip() == "*":
        return copy.deepcopy(row)
    wanted = [col.strip() for col in columns.split(",") if col.strip()]
    return {col: copy.deepcopy(row.get(col)) for col in wanted}


class InMemoryDataStore:
    """Table store kept in process memory.

    Rows get a uuid `id` and ISO-8601 `created_at`/`updated_at` when absent.
    Generated timestamps are strictly increasing so ordering by them matches
    insertion order, as with a database clock.
    """

    def __init__(self, tables: dict[str, list[Row]] | None = None):
        """Initialize the store, optionally seeded with rows per table."""
        self.tables: dict[str, list[Row]] = {}
        self._last_timestamp = datetime.now(UTC)
        for table, rows in (tables or {}).items():
            for row in rows:
                self._insert_sync(table, row)

    def _now(self) -> str:
        now = datetime.now(UTC)
        if now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()

    def _insert_sync(self, table: str, row: Row) -> Row:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        timestamp = self._now()
        stored.setdefault("created_at", timestamp)
        stored.setdefault("updated_at", stored["created_at"])
        self.tables.setdefault(table, []).append(stored)
        return stored

    def _filter(self, table: str, query: Query | None) -> list[Row]:
        rows = self.tables.get(table, [])
        if query is None:
            return list(rows)
        result = [row for row in rows if all(_matches(row, flt) for flt in query.filters)]

        # Apply sort keys last-to-first so the first key is the primary one
        for order in reversed(query.orders):
            present = [row for row in result if row.get(order.column) is not None]
            missing = [row for row in result if row.get(order.column) is None]
            present.sort(key=lambda row, col=order.column: row[col], reverse=order.descending)
            result = present + missing if order.nulls_last else missing + present

        start = query.offset_value or 0
        end = start + query.limit_value if query.limit_value is not None else None
        return result[start:end]

    async def select(self, table: str, query: Query | None = None) -> list[Row]:
        """Return copies of the matching rows."""
        columns = query.columns if query else "*"
        return [_project(row, columns) for row in self._filter(table, query)]

    async def select_one(self, table: str, query: Query) -> Row | None:
        """Return the first matching row, or None."""
        rows = await self.select(table, query.limit(1))
        return rows[0] if rows else None

    async def insert(self, table: str, row: Row) -> Row:
        """Insert a row and return a copy of it as stored."""
        stored = self._insert_sync(table, row)
        logger.debug(f"Inserted row {stored['id']} into {table}")
        return copy.deepcopy(stored)

    async def update(self, table: str, values: Row, query: Query) -> list[Row]:
        """Update matching rows in place and return copies."""
        targets = self._filter(table, Query(filters=query.filters))
        updated: list[Row] = []
        for row in targets:
            row.update(copy.deepcopy(values))
            if "updated_at" not in values:
                row["updated_at"] = self._now()
            updated.append(copy.deepcopy(row))
        return updated

    async def count(self, table: str, query: Query | None = None) -> int:
        """Count matching rows."""
        return len(self._filter(table, Query(filters=query.filters) if query else None))

    def rows(self, table: str, **equals: Any) -> list[Row]:
        """Synchronous helper returning rows whose columns equal the given values."""
        return [row for row in self.tables.get(table, []) if all(row.get(k) == v for k, v in equals.items())]
