"""
Column statistics index access.

The column stats index stores one entry per (file, column) with min/max
values and null/value counts. For evaluation it is *transposed* into one
row per file:

    file_name | fare_min_value | fare_max_value | fare_null_count | fare_value_count | ...

restricted to the columns a query references.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, TypeVar

import polars as pl
import pyarrow as pa

from model.errors import IndexUnavailableError
from model.file_slice import ColumnRange, ColumnStatsEntry

from .predicates import max_column, min_column, null_count_column, value_count_column

logger = logging.getLogger(__name__)

FILE_NAME_COLUMN = "file_name"
DEFAULT_IN_MEMORY_PROJECTION_THRESHOLD = 100_000

T = TypeVar("T")


class TransposedColumnStats:
    """One row per indexed file with statistics of the requested columns."""

    def __init__(self, table: pa.Table, columns: Sequence[str]):
        self.table = table
        self.columns = list(columns)

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[ColumnStatsEntry],
        columns: Sequence[str],
    ) -> "TransposedColumnStats":
        """
        Transpose index entries for ``columns``.

        Files without an entry for any of ``columns`` are left out: they are
        not indexed as far as this query is concerned. A file indexed for
        some of the columns gets nulls (unknown) for the others.
        """
        wanted = set(columns)
        per_file: Dict[str, Dict[str, ColumnStatsEntry]] = {}
        for entry in entries:
            if entry.column_name in wanted:
                per_file.setdefault(entry.file_name, {})[entry.column_name] = entry

        file_names = sorted(per_file)
        data: Dict[str, Any] = {FILE_NAME_COLUMN: pa.array(file_names, type=pa.string())}
        for column in columns:
            found = [per_file[name].get(column) for name in file_names]
            data[min_column(column)] = pa.array([e.min_value if e else None for e in found])
            data[max_column(column)] = pa.array([e.max_value if e else None for e in found])
            data[null_count_column(column)] = pa.array(
                [e.null_count if e else None for e in found], type=pa.int64()
            )
            data[value_count_column(column)] = pa.array(
                [e.value_count if e else None for e in found], type=pa.int64()
            )
        return cls(pa.table(data), columns)

    @property
    def num_files(self) -> int:
        return self.table.num_rows

    def file_names(self) -> Set[str]:
        return set(self.table.column(FILE_NAME_COLUMN).to_pylist())

    def rows(self) -> Iterator[Tuple[str, Dict[str, ColumnRange]]]:
        """Yield (file name, column -> ColumnRange) per indexed file."""
        for row in self.table.to_pylist():
            stats = {
                column: ColumnRange(
                    min_value=row[min_column(column)],
                    max_value=row[max_column(column)],
                    null_count=row[null_count_column(column)],
                    value_count=row[value_count_column(column)],
                )
                for column in self.columns
            }
            yield row[FILE_NAME_COLUMN], stats

    def to_polars(self) -> pl.DataFrame:
        return pl.from_arrow(self.table)


class ColumnStatsProvider(ABC):
    """Access to an externally maintained column statistics index."""

    @abstractmethod
    def is_index_available(self) -> bool:
        ...

    @abstractmethod
    def should_read_in_memory(self, columns: Sequence[str], file_count: int) -> bool:
        """Whether the projected index is small enough to evaluate row by row."""

    @abstractmethod
    def load_transposed(
        self,
        columns: Sequence[str],
        in_memory: bool,
        callback: Callable[[TransposedColumnStats], T],
    ) -> T:
        """Load statistics for ``columns`` and hand them to ``callback``."""

    @abstractmethod
    def invalidate_caches(self) -> None:
        ...


class InMemoryColumnStatsProvider(ColumnStatsProvider):
    """
    Column stats index held in memory.

    Transposed tables are cached per requested column set until
    ``invalidate_caches`` is called.

    Example:
        provider = InMemoryColumnStatsProvider([
            ColumnStatsEntry("f1_1-0-1_001.parquet", "fare", 3.5, 80.0, 0, 120),
        ])
    """

    def __init__(
        self,
        entries: Iterable[ColumnStatsEntry] = (),
        in_memory_projection_threshold: int = DEFAULT_IN_MEMORY_PROJECTION_THRESHOLD,
        available: bool = True,
    ):
        self.entries: List[ColumnStatsEntry] = list(entries)
        self.in_memory_projection_threshold = in_memory_projection_threshold
        self.available = available
        self._cache: Dict[Tuple[str, ...], TransposedColumnStats] = {}

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]], **kwargs) -> "InMemoryColumnStatsProvider":
        """Build from dicts with ``file_name``, ``column`` and optional stats keys."""
        entries = [
            ColumnStatsEntry(
                file_name=r["file_name"],
                column_name=r.get("column_name", r.get("column")),
                min_value=r.get("min"),
                max_value=r.get("max"),
                null_count=r.get("null_count"),
                value_count=r.get("value_count"),
            )
            for r in records
        ]
        return cls(entries, **kwargs)

    def is_index_available(self) -> bool:
        return self.available

    def should_read_in_memory(self, columns: Sequence[str], file_count: int) -> bool:
        projected_rows = file_count * len(columns)
        return projected_rows < self.in_memory_projection_threshold

    def load_transposed(
        self,
        columns: Sequence[str],
        in_memory: bool,
        callback: Callable[[TransposedColumnStats], T],
    ) -> T:
        if not self.available:
            raise IndexUnavailableError("Column stats index is not available")

        key = tuple(sorted(columns))
        transposed = self._cache.get(key)
        if transposed is None:
            transposed = TransposedColumnStats.from_entries(self.entries, key)
            self._cache[key] = transposed
            logger.debug(
                f"[ColumnStats] Transposed {transposed.num_files} files for columns {list(key)}"
            )
        return callback(transposed)

    def invalidate_caches(self) -> None:
        self._cache.clear()

    @property
    def cached_column_sets(self) -> List[Tuple[str, ...]]:
        return list(self._cache)
