"""Data store interface and query builder."""

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

Row = dict[str, Any]

FilterOp = Literal["eq", "neq", "in", "ilike", "search", "gt", "gte", "lt", "lte", "is_null", "not_null"]


@dataclass(frozen=True)
class Filter:
    """A single column predicate."""

    op: FilterOp
    column: str
    value: Any = None


@dataclass(frozen=True)
class Order:
    """Sort key for a query."""

    column: str
    descending: bool = False
    nulls_last: bool = True


@dataclass
class Query:
    """Table query with chainable filters, ordering and paging.

    Mirrors the subset of PostgREST the service relies on so the same query can
    run against the hosted backend or the in-memory store.
    """

    columns: str = "*"
    filters: list[Filter] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)
    limit_value: int | None = None
    offset_value: int | None = None

    def select(self, columns: str) -> "Query":
        self.columns = columns
        return self

    def eq(self, column: str, value: Any) -> "Query":
        self.filters.append(Filter("eq", column, value))
        return self

    def neq(self, column: str, value: Any) -> "Query":
        self.filters.append(Filter("neq", column, value))
        return self

    def in_(self, column: str, values: list[Any]) -> "Query":
        self.filters.append(Filter("in", column, list(values)))
        return self

    def ilike(self, column: str, pattern: str) -> "Query":
        """Case-insensitive match; `%` is the wildcard."""
        self.filters.append(Filter("ilike", column, pattern))
        return self

    def search(self, columns: list[str], text: str) -> "Query":
        """Match rows where any of `columns` contains `text` (case-insensitive)."""
        self.filters.append(Filter("search", ",".join(columns), text))
        return self

    def gt(self, column: str, value: Any) -> "Query":
        self.filters.append(Filter("gt", column, value))
        return self

    def gte(self, column: str, value: Any) -> "Query":
        self.filters.append(Filter("gte", column, value))
        return self

    def lt(self, column: str, value: Any) -> "Query":
        self.filters.append(Filter("lt", column, value))
        return self

    def lte(self, column: str, value: Any) -> "Query":
        self.filters.append(Filter("lte", column, value))
        return self

    def is_null(self, column: str) -> "Query":
        self.filters.append(Filter("is_null", column))
        return self

    def not_null(self, column: str) -> "Query":
        self.filters.append(Filter("not_null", column))
        return self

    def order(self, column: str, descending: bool = False, nulls_last: bool = True) -> "Query":
        self.orders.append(Order(column, descending, nulls_last))
        return self

    def limit(self, value: int) -> "Query":
        self.limit_value = value
        return self

    def offset(self, value: int) -> "Query":
        self.offset_value = value
        return self


class DataStore(Protocol):
    """Relational store accessed through table-level read/insert/update operations."""

    async def select(self, table: str, query: Query | None = None) -> list[Row]:
        """Return rows of `table` matching `query`.

        Raises:
            StoreError: If the backend rejects the query
        """
        ...

    async def select_one(self, table: str, query: Query) -> Row | None:
        """Return the first matching row, or None."""
        ...

    async def insert(self, table: str, row: Row) -> Row:
        """Insert a row and return it as stored (with generated id and timestamps)."""
        ...

    async def update(self, table: str, values: Row, query: Query) -> list[Row]:
        """Update matching rows and return them."""
        ...

    async def count(self, table: str, query: Query | None = None) -> int:
        """Count rows matching `query`."""
        ...
