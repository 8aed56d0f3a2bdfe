"""
Engine-neutral predicates evaluated against per-file column statistics.

Every predicate answers one question for a file: can any row of this file
satisfy me, given the column's (min, max, null count, value count)? The
answer is conservative. ``may_match`` returns False only when the statistics
prove that no row matches; missing statistics, null bounds and
incomparable types all mean "may match".

Two evaluation forms share that logic:

- ``may_match(stats)``: row-wise, over a mapping of column -> ColumnRange
- ``to_stats_filter(schema)``: a polars expression over the transposed stats
  table, where null results count as "may match". Literals the stats
  dtypes cannot be compared with also count as "may match".

Filters can be written as pyarrow-style DNF tuples:

    parse_filters([("city", "=", "berlin"), ("fare", ">", 10)])          # AND
    parse_filters([[("city", "=", "berlin")], [("fare", ">", 10)]])      # OR of ANDs
"""
import datetime
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import polars as pl

from model.file_slice import ColumnRange

MIN_SUFFIX = "_min_value"
MAX_SUFFIX = "_max_value"
NULL_COUNT_SUFFIX = "_null_count"
VALUE_COUNT_SUFFIX = "_value_count"

StatsLookup = Mapping[str, ColumnRange]
StatsSchema = Mapping[str, Any]


def min_column(column: str) -> str:
    return f"{column}{MIN_SUFFIX}"


def max_column(column: str) -> str:
    return f"{column}{MAX_SUFFIX}"


def null_count_column(column: str) -> str:
    return f"{column}{NULL_COUNT_SUFFIX}"


def value_count_column(column: str) -> str:
    return f"{column}{VALUE_COUNT_SUFFIX}"


def _compare(fn: Callable[[], bool]) -> bool:
    try:
        return bool(fn())
    except TypeError:
        # Incomparable types prove nothing
        return True


def _maybe(expr: pl.Expr) -> pl.Expr:
    return expr.fill_null(True)


def _accepts_literal(dtype: Any, value: Any) -> bool:
    """Whether a stats column of polars ``dtype`` can be compared with ``value``."""
    if dtype is None or dtype == pl.Null:
        return False
    if isinstance(value, bool):
        return dtype == pl.Boolean
    if isinstance(value, (int, float)):
        return dtype.is_numeric()
    if isinstance(value, str):
        return dtype == pl.Utf8
    if isinstance(value, datetime.datetime):
        return dtype == pl.Datetime
    if isinstance(value, datetime.date):
        return dtype == pl.Date
    return False


class Predicate(ABC):
    """Base class for predicates over table columns."""

    @abstractmethod
    def references(self) -> Set[str]:
        """Columns referenced by this predicate."""

    @abstractmethod
    def may_match(self, stats: StatsLookup) -> bool:
        """False only if ``stats`` prove that no row can satisfy the predicate."""

    @abstractmethod
    def to_stats_filter(self, schema: Optional[StatsSchema] = None) -> pl.Expr:
        """
        Vectorized form of ``may_match`` over the transposed stats table.

        Args:
            schema: Column name -> polars dtype of the stats table. When
                given, comparisons the dtypes cannot support evaluate to
                "may match", as in ``may_match``.
        """

    def definitely_excludes(self, stats: StatsLookup) -> bool:
        return not self.may_match(stats)

    def __and__(self, other: "Predicate") -> "Predicate":
        return And((self, other))

    def __or__(self, other: "Predicate") -> "Predicate":
        return Or((self, other))


@dataclass(frozen=True)
class ColumnPredicate(Predicate):
    """Predicate on a single column compared against a literal."""
    column: str
    value: Any = None

    def references(self) -> Set[str]:
        return {self.column}

    def may_match(self, stats: StatsLookup) -> bool:
        col_stats = stats.get(self.column)
        if col_stats is None:
            return True
        return self._may_match(col_stats)

    def to_stats_filter(self, schema: Optional[StatsSchema] = None) -> pl.Expr:
        if schema is not None and not self._comparable_with(schema):
            return pl.lit(True)
        return _maybe(self._stats_expr())

    def _comparable_with(self, schema: StatsSchema) -> bool:
        return all(
            _accepts_literal(schema.get(name), self.value)
            for name in (min_column(self.column), max_column(self.column))
        )

    @abstractmethod
    def _may_match(self, stats: ColumnRange) -> bool:
        ...

    @abstractmethod
    def _stats_expr(self) -> pl.Expr:
        ...

    # Bounds are only trusted when both are present
    def _min(self) -> pl.Expr:
        return pl.when(pl.col(max_column(self.column)).is_not_null()).then(
            pl.col(min_column(self.column))
        )

    def _max(self) -> pl.Expr:
        return pl.when(pl.col(min_column(self.column)).is_not_null()).then(
            pl.col(max_column(self.column))
        )


@dataclass(frozen=True)
class Eq(ColumnPredicate):
    """``column == value``"""

    def _may_match(self, stats: ColumnRange) -> bool:
        if self.value is None or not stats.has_bounds:
            return True
        return _compare(lambda: stats.min_value <= self.value <= stats.max_value)

    def _stats_expr(self) -> pl.Expr:
        if self.value is None:
            return pl.lit(True)
        return (self._min() <= self.value) & (self._max() >= self.value)


@dataclass(frozen=True)
class NotEq(ColumnPredicate):
    """``column != value``; excludes only files holding nothing but ``value``."""

    def _may_match(self, stats: ColumnRange) -> bool:
        if self.value is None or not stats.has_bounds:
            return True
        return _compare(
            lambda: not (stats.min_value == self.value and stats.max_value == self.value)
        )

    def _stats_expr(self) -> pl.Expr:
        if self.value is None:
            return pl.lit(True)
        return ~((self._min() == self.value) & (self._max() == self.value))


@dataclass(frozen=True)
class Lt(ColumnPredicate):
    """``column < value``"""

    def _may_match(self, stats: ColumnRange) -> bool:
        if self.value is None or not stats.has_bounds:
            return True
        return _compare(lambda: stats.min_value < self.value)

    def _stats_expr(self) -> pl.Expr:
        if self.value is None:
            return pl.lit(True)
        return self._min() < self.value


@dataclass(frozen=True)
class Le(ColumnPredicate):
    """``column <= value``"""

    def _may_match(self, stats: ColumnRange) -> bool:
        if self.value is None or not stats.has_bounds:
            return True
        return _compare(lambda: stats.min_value <= self.value)

    def _stats_expr(self) -> pl.Expr:
        if self.value is None:
            return pl.lit(True)
        return self._min() <= self.value


@dataclass(frozen=True)
class Gt(ColumnPredicate):
    """``column > value``"""

    def _may_match(self, stats: ColumnRange) -> bool:
        if self.value is None or not stats.has_bounds:
            return True
        return _compare(lambda: stats.max_value > self.value)

    def _stats_expr(self) -> pl.Expr:
        if self.value is None:
            return pl.lit(True)
        return self._max() > self.value


@dataclass(frozen=True)
class Ge(ColumnPredicate):
    """``column >= value``"""

    def _may_match(self, stats: ColumnRange) -> bool:
        if self.value is None or not stats.has_bounds:
            return True
        return _compare(lambda: stats.max_value >= self.value)

    def _stats_expr(self) -> pl.Expr:
        if self.value is None:
            return pl.lit(True)
        return self._max() >= self.value


@dataclass(frozen=True)
class IsNull(ColumnPredicate):
    """``column IS NULL``"""

    def _may_match(self, stats: ColumnRange) -> bool:
        if stats.null_count is None:
            return True
        return stats.null_count > 0

    def _stats_expr(self) -> pl.Expr:
        return pl.col(null_count_column(self.column)) > 0

    def _comparable_with(self, schema: StatsSchema) -> bool:
        return null_count_column(self.column) in schema


@dataclass(frozen=True)
class IsNotNull(ColumnPredicate):
    """``column IS NOT NULL``; needs both counts to prune."""

    def _may_match(self, stats: ColumnRange) -> bool:
        if stats.null_count is None or stats.value_count is None:
            return True
        return stats.value_count > stats.null_count

    def _stats_expr(self) -> pl.Expr:
        return pl.col(value_count_column(self.column)) > pl.col(null_count_column(self.column))

    def _comparable_with(self, schema: StatsSchema) -> bool:
        return null_count_column(self.column) in schema and value_count_column(self.column) in schema


@dataclass(frozen=True)
class In(Predicate):
    """``column IN (values...)``"""
    column: str
    values: Tuple[Any, ...] = ()

    def references(self) -> Set[str]:
        return {self.column}

    def _members(self) -> List[Eq]:
        return [Eq(self.column, v) for v in self.values]

    def may_match(self, stats: StatsLookup) -> bool:
        return any(p.may_match(stats) for p in self._members())

    def to_stats_filter(self, schema: Optional[StatsSchema] = None) -> pl.Expr:
        members = self._members()
        if not members:
            return pl.lit(False)
        return pl.any_horizontal([p.to_stats_filter(schema) for p in members])


@dataclass(frozen=True)
class And(Predicate):
    children: Tuple[Predicate, ...] = ()

    def references(self) -> Set[str]:
        return set().union(*(c.references() for c in self.children))

    def may_match(self, stats: StatsLookup) -> bool:
        return all(c.may_match(stats) for c in self.children)

    def to_stats_filter(self, schema: Optional[StatsSchema] = None) -> pl.Expr:
        if not self.children:
            return pl.lit(True)
        return pl.all_horizontal([c.to_stats_filter(schema) for c in self.children])


@dataclass(frozen=True)
class Or(Predicate):
    children: Tuple[Predicate, ...] = ()

    def references(self) -> Set[str]:
        return set().union(*(c.references() for c in self.children))

    def may_match(self, stats: StatsLookup) -> bool:
        return any(c.may_match(stats) for c in self.children)

    def to_stats_filter(self, schema: Optional[StatsSchema] = None) -> pl.Expr:
        if not self.children:
            return pl.lit(False)
        return pl.any_horizontal([c.to_stats_filter(schema) for c in self.children])


_OPERATORS = {
    "=": Eq,
    "==": Eq,
    "!=": NotEq,
    "<": Lt,
    "<=": Le,
    ">": Gt,
    ">=": Ge,
}


def _parse_condition(condition: Any) -> Predicate:
    if isinstance(condition, Predicate):
        return condition
    if not isinstance(condition, tuple) or len(condition) not in (2, 3):
        raise ValueError(f"Unsupported filter condition: {condition!r}")

    column, op = condition[0], str(condition[1]).lower()
    value = condition[2] if len(condition) == 3 else None

    if op in _OPERATORS:
        return _OPERATORS[op](column, value)
    if op == "in":
        return In(column, tuple(value))
    if op == "is_null":
        return IsNull(column)
    if op == "is_not_null":
        return IsNotNull(column)
    raise ValueError(f"Unsupported operator: {op}")


def parse_filters(filters: Optional[Iterable[Any]]) -> List[Predicate]:
    """
    Convert filters into a list of predicates (an implicit conjunction).

    Args:
        filters: Predicates and/or DNF tuples. A flat list is an AND of its
            items; a list of lists is an OR of ANDs.

    Returns:
        List of predicates
    """
    if not filters:
        return []
    items = list(filters)
    if all(isinstance(item, list) for item in items):
        return [Or(tuple(And(tuple(_parse_condition(c) for c in group)) for group in items))]
    return [_parse_condition(item) for item in items]


def conjuncts(predicates: Sequence[Predicate]) -> List[Predicate]:
    """Flatten nested top-level ANDs."""
    flat: List[Predicate] = []
    for p in predicates:
        if isinstance(p, And):
            flat.extend(conjuncts(p.children))
        else:
            flat.append(p)
    return flat


def referenced_columns(predicates: Sequence[Predicate]) -> Set[str]:
    return set().union(*(p.references() for p in predicates)) if predicates else set()


def may_match_all(predicates: Sequence[Predicate], stats: StatsLookup) -> bool:
    return all(p.may_match(stats) for p in predicates)
