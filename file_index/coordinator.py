"""
File index: partition pruning plus data skipping for one table.

Listing files for a query takes two steps:

1. Partition pruning: the listing keeps the partitions whose values may
   satisfy the partition filters.
2. Data skipping: within those partitions, file slices are narrowed with
   the record index / column stats index (see ``data_skipping.engine``).

Non-partitioned tables are a single partition spanning the whole table.

Not thread-safe: one planning thread per instance.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from config.config import SkipLakeConfig
from data_skipping.column_stats import ColumnStatsProvider
from data_skipping.engine import DataSkippingEngine, PartitionSlices
from data_skipping.metrics import NOT_MEASURABLE, SkippingStats
from data_skipping.predicates import Predicate, parse_filters
from data_skipping.record_index import RecordKeyIndexProvider
from model.file_slice import BaseFile, FileSlice, PartitionPath

from .listing import PartitionListing

logger = logging.getLogger(__name__)


@dataclass
class PartitionDirectory:
    """Files to scan for one partition."""
    values: Tuple[Any, ...]
    files: List[Any] = field(default_factory=list)

    @property
    def size_in_bytes(self) -> int:
        return sum(f.size for f in self.files)


class PruningCoordinator:
    """
    Entry point for listing the files a query must read.

    Owns the full-listing cache and the data skipping engine (with its
    providers' caches). ``refresh()`` empties them.

    Example:
        coordinator = PruningCoordinator(config, listing, column_stats=stats)
        directories = coordinator.prune(
            partition_filters=[("date", ">=", "2024-01-01")],
            data_filters=[("fare", ">", 100)],
        )
    """

    def __init__(
        self,
        config: SkipLakeConfig,
        listing: PartitionListing,
        column_stats: Optional[ColumnStatsProvider] = None,
        record_index: Optional[RecordKeyIndexProvider] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            config: SkipLake configuration
            listing: Partition / file slice listing
            column_stats: Column stats index (optional)
            record_index: Record key index (optional)
        """
        self.config = config
        self.listing = listing
        self.engine = DataSkippingEngine(
            config.skipping,
            column_stats=column_stats,
            record_index=record_index,
            schema_columns=config.table.columns,
        )
        self.query_instant = config.query_instant
        self.include_log_files = config.skipping.include_log_files

        self._all_file_slices: Optional[Dict[PartitionPath, List[FileSlice]]] = None
        self._has_pushed_down_predicates = False
        self.last_skipping_stats: Optional[SkippingStats] = None

    # Listing cache

    def _load_all_file_slices(self) -> Dict[PartitionPath, List[FileSlice]]:
        if self._all_file_slices is None:
            self._all_file_slices = {
                partition: self.listing.get_latest_file_slices(partition.path, self.query_instant)
                for partition in self.listing.all_partitions()
            }
            logger.info(
                f"[PruningCoordinator] Listed {len(self._all_file_slices)} partitions, "
                f"{sum(len(s) for s in self._all_file_slices.values())} file slices"
            )
        return self._all_file_slices

    @property
    def is_cache_populated(self) -> bool:
        return self._all_file_slices is not None

    def all_file_slices(self) -> List[FileSlice]:
        return [s for slices in self._load_all_file_slices().values() for s in slices]

    @property
    def all_base_files(self) -> List[BaseFile]:
        return [s.base_file for s in self.all_file_slices() if s.base_file is not None]

    def all_files(self) -> List[Any]:
        """Base files, plus log files when configured."""
        return [f for s in self.all_file_slices() for f in s.files(self.include_log_files)]

    @property
    def input_files(self) -> List[str]:
        return [f.path for f in self.all_files()]

    @property
    def size_in_bytes(self) -> int:
        return sum(f.size for f in self.all_files())

    # Pruning

    def should_read_as_partitioned_table(self) -> bool:
        fields = self.config.table.partition_fields
        if not fields:
            return False
        return all(len(p.values) == len(fields) for p in self.listing.all_partitions())

    def get_file_slices_for_pruned_partitions(
        self,
        partition_filters: Sequence[Predicate] = (),
    ) -> List[PartitionSlices]:
        """Latest file slices of the partitions matching ``partition_filters``."""
        partitions = self.listing.list_partitions(partition_filters, self.query_instant)
        cached = self._all_file_slices
        result = []
        for partition in partitions:
            if cached is not None and partition in cached:
                slices = cached[partition]
            else:
                slices = self.listing.get_latest_file_slices(partition.path, self.query_instant)
            result.append((partition, list(slices)))
        return result

    def filter_file_slices(
        self,
        data_filters: Iterable[Any] = (),
        partition_filters: Iterable[Any] = (),
    ) -> List[PartitionSlices]:
        """
        Prune partitions, then drop file slices data skipping proves irrelevant.

        Args:
            data_filters: Predicates or DNF tuples on data columns
            partition_filters: Predicates or DNF tuples on partition columns

        Returns:
            List of (partition, file slices)
        """
        data_predicates = parse_filters(data_filters)
        partition_predicates = parse_filters(partition_filters)
        # Stats describe the latest pass only
        self.last_skipping_stats = None

        pruned = self.get_file_slices_for_pruned_partitions(partition_predicates)
        if not pruned or not data_predicates:
            return pruned

        filtered, stats = self.engine.filter_file_slices(
            data_predicates,
            pruned,
            all_files_supplier=self.all_files,
            fully_cached=lambda: self.is_cache_populated,
        )
        self.last_skipping_stats = stats
        return filtered

    def prune(
        self,
        partition_filters: Iterable[Any] = (),
        data_filters: Iterable[Any] = (),
    ) -> List[PartitionDirectory]:
        """
        List the files to scan for a query.

        Args:
            partition_filters: Predicates or DNF tuples on partition columns
            data_filters: Predicates or DNF tuples on data columns

        Returns:
            One PartitionDirectory per retained partition, or a single one
            with empty values for non-partitioned tables
        """
        pruned = self.filter_file_slices(data_filters, partition_filters)
        directories = [
            PartitionDirectory(
                values=partition.values,
                files=[f for s in slices for f in s.files(self.include_log_files)],
            )
            for partition, slices in pruned
        ]

        self._has_pushed_down_predicates = True

        if self.should_read_as_partitioned_table():
            return directories
        return [PartitionDirectory(values=(), files=[f for d in directories for f in d.files])]

    @property
    def has_predicates_pushed_down(self) -> bool:
        return self._has_pushed_down_predicates

    @property
    def skip_ratio(self) -> float:
        if self.last_skipping_stats is None or not self.is_cache_populated:
            return NOT_MEASURABLE
        return self.last_skipping_stats.skip_ratio

    def refresh(self) -> None:
        """Drop all cached listings and index state."""
        self._all_file_slices = None
        self.last_skipping_stats = None
        if self.engine.column_stats is not None:
            self.engine.column_stats.invalidate_caches()
        if self.engine.record_index is not None:
            self.engine.record_index.invalidate_caches()
        self._has_pushed_down_predicates = False
        logger.debug("[PruningCoordinator] Caches invalidated")
