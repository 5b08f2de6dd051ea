from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

Row = dict[str, Any]
Filters = Optional[dict[str, Any]]


class Storage(ABC):
    """Generic table store. Every failure surfaces as ``StorageError``.

    Filters are column-equality mappings. Table names are opaque strings
    supplied by configuration.
    """

    @abstractmethod
    def query(
        self,
        table: str,
        filters: Filters = None,
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: Optional[str] = None,
        descending: bool = False,
        columns: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        raise NotImplementedError

    @abstractmethod
    def count(self, table: str, filters: Filters = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def insert_many(self, table: str, rows: Sequence[Row]) -> int:
        """Insert all rows or none. Returns the inserted count."""
        raise NotImplementedError

    @abstractmethod
    def delete_many(self, table: str, filters: Filters = None) -> int:
        raise NotImplementedError

    def close(self) -> None:
        pass
