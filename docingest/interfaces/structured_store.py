"""Abstract base class for the structured (row) store.

The document processor persists ``documents`` and ``document_chunks`` rows
through this interface.  Filters are plain :class:`Filter` predicates that
every backend translates into its own query language, so the processor never
builds SQL (or REST query strings) itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

FilterOp = Literal["eq", "neq", "gt", "gte", "lt", "lte", "in", "contains", "ilike"]

Row = dict[str, Any]


class Filter(BaseModel):
    """A single column predicate.

    ``contains`` tests JSON containment on a JSON column: *value* is a dict
    whose keys must all be present in the column with equal values.
    ``ilike`` is a case-insensitive SQL ``LIKE`` pattern (``%`` and ``_``
    wildcards, ``\\`` escapes); build literal fragments with
    :func:`like_escape`.
    """

    model_config = ConfigDict(frozen=True)

    column: str
    op: FilterOp = "eq"
    value: Any = None


def like_escape(text: str) -> str:
    """Escape LIKE wildcards in *text* so it matches literally inside an ``ilike`` pattern."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class OrderBy(BaseModel):
    model_config = ConfigDict(frozen=True)

    column: str
    descending: bool = False


# Concrete implementations: SQLiteStructuredStore
# Located in: docingest/providers/store/
class IStructuredStore(ABC):
    """Contract for table-oriented persistence.

    All filters passed to one call are ANDed together.  ``any_of`` groups on
    :meth:`select` are ORed with each other and ANDed with *filters*.
    """

    @abstractmethod
    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        """Insert *rows* into *table* in one statement and return them.

        Raises
        ------
        docingest.utils.errors.StorageError
            If the write fails; no row of the call is persisted.
        """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order_by: list[OrderBy] | None = None,
        limit: int | None = None,
        any_of: list[list[Filter]] | None = None,
    ) -> list[Row]:
        """Return rows of *table* matching *filters*."""

    @abstractmethod
    async def update(self, table: str, values: Row, filters: list[Filter]) -> int:
        """Set *values* on matching rows; return the number updated."""

    @abstractmethod
    async def delete(self, table: str, filters: list[Filter]) -> int:
        """Delete matching rows; return the number deleted."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
