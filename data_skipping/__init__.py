"""Data skipping over secondary indexes."""
from .predicates import (
    Predicate,
    Eq,
    NotEq,
    In,
    Lt,
    Le,
    Gt,
    Ge,
    IsNull,
    IsNotNull,
    And,
    Or,
    parse_filters,
)
from .column_stats import ColumnStatsProvider, InMemoryColumnStatsProvider, TransposedColumnStats
from .record_index import RecordKeyIndexProvider, InMemoryRecordKeyIndex
from .coverage import with_unindexed_files, files_missing_from_index
from .metrics import SkippingStats, compute_skip_ratio
from .engine import DataSkippingEngine, resolve_lookup_failure

__all__ = [
    "Predicate",
    "Eq",
    "NotEq",
    "In",
    "Lt",
    "Le",
    "Gt",
    "Ge",
    "IsNull",
    "IsNotNull",
    "And",
    "Or",
    "parse_filters",
    "ColumnStatsProvider",
    "InMemoryColumnStatsProvider",
    "TransposedColumnStats",
    "RecordKeyIndexProvider",
    "InMemoryRecordKeyIndex",
    "with_unindexed_files",
    "files_missing_from_index",
    "SkippingStats",
    "compute_skip_ratio",
    "DataSkippingEngine",
    "resolve_lookup_failure",
]
