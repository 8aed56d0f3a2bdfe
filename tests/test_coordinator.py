"""Tests for the pruning coordinator (partition pruning + data skipping)."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import FailureMode, SkipLakeConfig
from data_skipping.column_stats import InMemoryColumnStatsProvider
from data_skipping.predicates import Eq
from data_skipping.record_index import InMemoryRecordKeyIndex
from file_index import InMemoryPartitionListing, PruningCoordinator
from model import ColumnStatsEntry, IndexLookupError

from conftest import make_slice

DAYS = ["date=2024-01-01", "date=2024-01-02", "date=2024-01-03"]


@pytest.fixture
def listing():
    """Three daily partitions with two file groups each."""
    listing = InMemoryPartitionListing(partition_fields=["date"])
    for day_idx, day in enumerate(DAYS):
        for group in range(2):
            listing.add_file_slice(
                make_slice(day, f"d{day_idx}g{group}", instant="001", size=100, log_versions=(1,))
            )
    return listing


def base_name(file_id, instant="001"):
    return f"{file_id}_1-0-1_{instant}.parquet"


@pytest.fixture
def column_stats():
    # d2g1 not indexed yet
    entries = []
    fares = {"d0g0": (1, 10), "d0g1": (11, 20), "d1g0": (21, 30), "d1g1": (31, 40), "d2g0": (41, 50)}
    for file_id, (lo, hi) in fares.items():
        entries.append(ColumnStatsEntry(base_name(file_id), "fare", lo, hi, 0, 10))
    return InMemoryColumnStatsProvider(entries)


def file_ids(directories):
    return sorted(f.file_id for d in directories for f in d.files)


def test_prune_partitions_only(skipping_config, listing):
    """Test partition filters without data filters."""
    coordinator = PruningCoordinator(skipping_config, listing)
    directories = coordinator.prune(partition_filters=[("date", ">=", "2024-01-02")])
    assert [d.values for d in directories] == [("2024-01-02",), ("2024-01-03",)]
    assert file_ids(directories) == ["d1g0", "d1g1", "d2g0", "d2g1"]
    assert coordinator.has_predicates_pushed_down is True
    assert coordinator.last_skipping_stats is None


def test_prune_with_column_stats(skipping_config, listing, column_stats):
    """Test column stats narrow slices; unindexed files stay."""
    coordinator = PruningCoordinator(skipping_config, listing, column_stats=column_stats)
    directories = coordinator.prune(
        partition_filters=[("date", ">=", "2024-01-02")],
        data_filters=[("fare", ">", 35)],
    )
    assert file_ids(directories) == ["d1g1", "d2g0", "d2g1"]
    stats = coordinator.last_skipping_stats
    assert stats.total_slices == 4
    assert stats.candidate_slices == 3
    assert coordinator.skip_ratio == pytest.approx(0.25)


def test_base_files_only_unless_log_files_included(skipping_config, listing):
    """Test include_log_files controls the returned files."""
    coordinator = PruningCoordinator(skipping_config, listing)
    directories = coordinator.prune()
    assert all(f.name.endswith(".parquet") for d in directories for f in d.files)

    skipping_config.skipping.include_log_files = True
    coordinator = PruningCoordinator(skipping_config, listing)
    directories = coordinator.prune()
    assert sum(len(d.files) for d in directories) == 12


def test_record_key_lookup_end_to_end(skipping_config, listing):
    """Test key == 'k1' keeps the owning file plus files missing from the index."""
    record_index = InMemoryRecordKeyIndex(
        {"k1": "d0g0", "k2": "d0g1", "k3": "d1g0", "k4": "d1g1"},
        record_key_field="key",
    )
    coordinator = PruningCoordinator(skipping_config, listing, record_index=record_index)
    directories = coordinator.prune(data_filters=[("key", "=", "k1")])
    # d2g0 and d2g1 own no indexed keys
    assert file_ids(directories) == ["d0g0", "d2g0", "d2g1"]
    assert coordinator.last_skipping_stats.index_used == "record_index"


def test_skip_ratio_not_measurable_before_full_listing(skipping_config, listing):
    """Test ratio is -1 until a full listing has been materialized."""
    skipping_config.skipping.data_skipping_enabled = False
    coordinator = PruningCoordinator(skipping_config, listing)
    coordinator.prune(data_filters=[("fare", ">", 35)])
    assert coordinator.is_cache_populated is False
    assert coordinator.last_skipping_stats.skip_ratio == -1
    assert coordinator.skip_ratio == -1


def test_refresh_invalidates_caches(skipping_config, listing, column_stats):
    """Test refresh empties listing and provider caches and resets the flag."""
    coordinator = PruningCoordinator(skipping_config, listing, column_stats=column_stats)
    coordinator.prune(data_filters=[("fare", ">", 35)])
    assert coordinator.is_cache_populated is True
    assert column_stats.cached_column_sets == [("fare",)]

    coordinator.refresh()
    assert coordinator.is_cache_populated is False
    assert coordinator.has_predicates_pushed_down is False
    assert column_stats.cached_column_sets == []
    assert coordinator.skip_ratio == -1


def test_skip_ratio_reflects_latest_prune(skipping_config, listing, column_stats):
    """Test an unfiltered prune clears the previous query's skipping stats."""
    coordinator = PruningCoordinator(skipping_config, listing, column_stats=column_stats)
    coordinator.prune(data_filters=[("fare", ">", 31)])
    assert coordinator.last_skipping_stats is not None
    assert coordinator.skip_ratio == pytest.approx(0.5)

    coordinator.prune()
    assert coordinator.last_skipping_stats is None
    assert coordinator.skip_ratio == -1

    coordinator.prune(
        partition_filters=[("date", "=", "2024-12-31")],
        data_filters=[("fare", ">", 31)],
    )
    assert coordinator.last_skipping_stats is None


def test_refresh_picks_up_new_slices(skipping_config, listing):
    """Test new file slices appear after refresh."""
    coordinator = PruningCoordinator(skipping_config, listing)
    assert len(coordinator.all_file_slices()) == 6
    listing.add_file_slice(make_slice(DAYS[0], "d0g2"))
    assert len(coordinator.all_file_slices()) == 6
    coordinator.refresh()
    assert len(coordinator.all_file_slices()) == 7


def test_strict_failure_aborts_prune(skipping_config, listing):
    """Test strict mode propagates provider failures from prune."""

    class BrokenStats(InMemoryColumnStatsProvider):
        def load_transposed(self, columns, in_memory, callback):
            raise IOError("stats partition unreadable")

    skipping_config.skipping.failure_mode = FailureMode.STRICT
    coordinator = PruningCoordinator(skipping_config, listing, column_stats=BrokenStats())
    with pytest.raises(IndexLookupError):
        coordinator.prune(data_filters=[("fare", ">", 35)])

    skipping_config.skipping.failure_mode = FailureMode.FALLBACK
    coordinator = PruningCoordinator(skipping_config, listing, column_stats=BrokenStats())
    directories = coordinator.prune(data_filters=[("fare", ">", 35)])
    assert len(file_ids(directories)) == 6


def test_non_partitioned_table(listing):
    """Test tables without partition columns collapse into one directory."""
    flat = InMemoryPartitionListing()
    for group in range(3):
        flat.add_file_slice(make_slice("", f"g{group}"))
    coordinator = PruningCoordinator(SkipLakeConfig(), flat)
    directories = coordinator.prune(partition_filters=[Eq("date", "2024-01-01")])
    assert len(directories) == 1
    assert directories[0].values == ()
    assert file_ids(directories) == ["g0", "g1", "g2"]


def test_time_travel(skipping_config, listing):
    """Test the query instant selects older slices."""
    listing.add_file_slice(make_slice(DAYS[0], "d0g0", instant="005", size=999))
    latest = PruningCoordinator(skipping_config, listing)
    assert 999 in [f.size for f in latest.all_base_files]

    skipping_config.query_instant = "003"
    as_of = PruningCoordinator(skipping_config, listing)
    assert 999 not in [f.size for f in as_of.all_base_files]
    assert len(as_of.all_base_files) == 6


def test_input_files_and_size(skipping_config, listing):
    """Test aggregate accessors over the whole table."""
    coordinator = PruningCoordinator(skipping_config, listing)
    assert len(coordinator.input_files) == 6
    assert all(p.startswith("date=") for p in coordinator.input_files)
    assert coordinator.size_in_bytes == 600
    directories = coordinator.prune()
    assert sum(d.size_in_bytes for d in directories) == 600
