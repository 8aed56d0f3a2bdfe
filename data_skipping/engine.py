"""
Data skipping: narrow the file slices a query has to scan.

Candidate files are looked up in two secondary indexes:

1. Record index: exact, used when the filters pin the record key with
   equality/IN predicates. Takes precedence over column stats.
2. Column stats index: per-file min/max/null counts. A file is dropped only
   when its statistics prove that no row matches.

Whatever index answers, files it does not know about are added back
(coverage repair) before the candidate set is applied to the file slices.
A failing index either disables skipping for the call (fallback) or aborts
planning (strict).
"""
import logging
from typing import Callable, List, Optional, Sequence, Set, Tuple

import polars as pl

from config.config import FailureMode, SkippingConfig
from model.errors import BucketEncodingError, IndexLookupError, IndexUnavailableError
from model.file_slice import FileSlice, PartitionPath

from .column_stats import FILE_NAME_COLUMN, ColumnStatsProvider, TransposedColumnStats
from .coverage import with_unindexed_files
from .metrics import SkippingStats
from .predicates import Predicate, And, may_match_all, referenced_columns
from .record_index import RecordKeyIndexProvider

logger = logging.getLogger(__name__)

PartitionSlices = Tuple[PartitionPath, List[FileSlice]]
FilesSupplier = Callable[[], Sequence]


def resolve_lookup_failure(
    mode: FailureMode,
    error: Exception,
    predicates: Sequence[Predicate] = (),
) -> None:
    """
    Decide what an index lookup failure means for the current query.

    Returns None (skip nothing) under FALLBACK; raises under STRICT.

    Under STRICT the provider error is not re-raised bare: it is wrapped in
    an ``IndexLookupError`` carrying the predicates, with the provider error
    as ``__cause__``. Callers catch one planning error type and still reach
    the original through the chain.

    Raises:
        IndexLookupError: in STRICT mode, chained to ``error``
    """
    if mode is FailureMode.STRICT:
        if isinstance(error, IndexLookupError):
            raise error
        raise IndexLookupError(
            f"Failed to look up candidate files: {error}",
            predicate=list(predicates),
        ) from error
    logger.error(
        f"[DataSkippingEngine] Failed to look up candidate files, reading all files instead: {error}",
        exc_info=error,
    )
    return None


class DataSkippingEngine:
    """
    Combines the record index and column stats index into one candidate decision.

    Example:
        engine = DataSkippingEngine(config.skipping, column_stats=stats, record_index=keys)
        filtered, stats = engine.filter_file_slices(
            predicates, pruned_partitions, all_files_supplier=lambda: files,
        )
    """

    def __init__(
        self,
        config: SkippingConfig,
        column_stats: Optional[ColumnStatsProvider] = None,
        record_index: Optional[RecordKeyIndexProvider] = None,
        schema_columns: Optional[Sequence[str]] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Skipping configuration
            column_stats: Column stats index (None = not configured)
            record_index: Record key index (None = not configured)
            schema_columns: Data columns of the table; None accepts any column
        """
        self.config = config
        self.column_stats = column_stats
        self.record_index = record_index
        self.schema_columns = list(schema_columns) if schema_columns is not None else None
        self.last_index_used = "none"

    # Availability

    def is_column_stats_enabled(self) -> bool:
        return (
            self.config.column_stats_enabled
            and self.column_stats is not None
            and self.column_stats.is_index_available()
        )

    def is_record_index_enabled(self) -> bool:
        return (
            self.config.record_index_enabled
            and self.record_index is not None
            and self.record_index.is_index_available()
        )

    def is_index_enabled(self) -> bool:
        return self.is_column_stats_enabled() or self.is_record_index_enabled()

    def validate_config(self) -> None:
        """Warn when data skipping was requested but cannot run."""
        cfg = self.config
        if cfg.data_skipping_enabled and (not cfg.metadata_table_enabled or not self.is_index_enabled()):
            logger.warning(
                "[DataSkippingEngine] Data skipping requires the metadata table and at least one of "
                "the column stats index or the record index to be enabled "
                f"(metadata_table_enabled={cfg.metadata_table_enabled}, "
                f"column_stats_enabled={self.is_column_stats_enabled()}, "
                f"record_index_enabled={self.is_record_index_enabled()})"
            )

    def query_referenced_columns(self, predicates: Sequence[Predicate]) -> List[str]:
        """Referenced columns that exist in the table schema."""
        refs = referenced_columns(predicates)
        if self.schema_columns is None:
            return sorted(refs)
        return [c for c in self.schema_columns if c in refs]

    # Lookup

    def lookup_candidate_files(
        self,
        predicates: Sequence[Predicate],
        all_files_supplier: FilesSupplier,
    ) -> Optional[Set[str]]:
        """
        Compute candidate file names, or None when no skipping applies.

        The returned set always contains every file missing from the index
        that answered. Errors from the indexes propagate unchanged.

        Args:
            predicates: Data filters (implicit conjunction)
            all_files_supplier: Returns every file of the table (base files,
                plus log files when configured)

        Returns:
            Candidate file names or None
        """
        self.last_index_used = "none"
        cfg = self.config

        if not cfg.metadata_table_enabled or not cfg.data_skipping_enabled:
            self.validate_config()
            return None

        record_keys: Set[str] = set()
        if self.is_record_index_enabled():
            record_keys = self.record_index.extract_exact_match_keys(predicates)

        if record_keys:
            all_files = all_files_supplier()
            candidates = self.record_index.get_candidate_files(all_files, record_keys)
            indexed = self.record_index.indexed_file_names(all_files)
            self.last_index_used = "record_index"
            return with_unindexed_files(candidates, [f.name for f in all_files], indexed)

        query_columns = self.query_referenced_columns(predicates)
        if not self.is_column_stats_enabled() or not predicates or not query_columns:
            self.validate_config()
            return None

        all_files = all_files_supplier()
        all_file_names = [f.name for f in all_files]
        # Unknown columns get null stats, which never prune
        stats_columns = sorted(referenced_columns(predicates))
        in_memory = self.column_stats.should_read_in_memory(stats_columns, len(all_file_names))

        def evaluate(transposed: TransposedColumnStats) -> Set[str]:
            if in_memory:
                passing = self._evaluate_in_memory(predicates, transposed)
            else:
                passing = self._evaluate_vectorized(predicates, transposed)
            return with_unindexed_files(passing, all_file_names, transposed.file_names())

        candidates = self.column_stats.load_transposed(stats_columns, in_memory, evaluate)
        self.last_index_used = "column_stats"
        return candidates

    @staticmethod
    def _evaluate_in_memory(predicates: Sequence[Predicate], transposed: TransposedColumnStats) -> Set[str]:
        return {name for name, stats in transposed.rows() if may_match_all(predicates, stats)}

    @staticmethod
    def _evaluate_vectorized(predicates: Sequence[Predicate], transposed: TransposedColumnStats) -> Set[str]:
        frame = transposed.to_polars()
        stats_filter = And(tuple(predicates)).to_stats_filter(frame.schema)
        result = (
            frame
            .lazy()
            .filter(stats_filter)
            .select(pl.col(FILE_NAME_COLUMN))
            .collect()
        )
        return set(result[FILE_NAME_COLUMN].to_list())

    def _lookup_with_failure_mode(
        self,
        predicates: Sequence[Predicate],
        all_files_supplier: FilesSupplier,
    ) -> Optional[Set[str]]:
        try:
            return self.lookup_candidate_files(predicates, all_files_supplier)
        except BucketEncodingError:
            raise
        except IndexUnavailableError as e:
            logger.warning(f"[DataSkippingEngine] Index unavailable, skipping nothing: {e}")
            return None
        except Exception as e:
            return resolve_lookup_failure(self.config.failure_mode, e, predicates)

    # Slice filtering

    def filter_file_slices(
        self,
        predicates: Sequence[Predicate],
        partitions: Sequence[PartitionSlices],
        all_files_supplier: FilesSupplier,
        fully_cached: Callable[[], bool] = lambda: True,
    ) -> Tuple[List[PartitionSlices], SkippingStats]:
        """
        Drop file slices none of whose files is a candidate.

        Args:
            predicates: Data filters (implicit conjunction)
            partitions: Partition-pruned (partition, file slices) pairs
            all_files_supplier: Returns every file of the table
            fully_cached: Whether a full listing has been materialized,
                checked after the lookup

        Returns:
            Tuple of (filtered partitions, skipping stats)
        """
        candidates = self._lookup_with_failure_mode(predicates, all_files_supplier)
        if candidates is not None:
            logger.debug(f"[DataSkippingEngine] Candidate files from index: {sorted(candidates)}")

        stats = SkippingStats(index_used=self.last_index_used if candidates is not None else "none")
        filtered: List[PartitionSlices] = []
        for partition, slices in partitions:
            if candidates is None:
                kept = list(slices)
            else:
                # Log files always count: a log-only slice has no other name
                kept = [
                    s for s in slices
                    if any(name in candidates for name in s.file_names(include_log_files=True))
                ]
            stats.total_slices += len(slices)
            stats.candidate_slices += len(kept)
            filtered.append((partition, kept))

        stats.fully_cached = fully_cached()
        logger.info(
            f"[DataSkippingEngine] Total file slices: {stats.total_slices}; "
            f"candidate file slices after data skipping: {stats.candidate_slices}; "
            f"skipping ratio {stats.skip_ratio}"
        )
        return filtered, stats
