"""Tests for the bucket location index."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from bucket_index import BucketLocationIndex, bucket_id_str
from file_index import InMemoryPartitionListing
from model import BucketConsistencyError, BucketEncodingError, RecordKey, RecordLocation

from conftest import make_slice

PARTITION = "2024-01-01"


def bucket_file_id(bucket_id, suffix="aaaa"):
    return f"{bucket_id_str(bucket_id)}-{suffix}-0"


@pytest.fixture
def listing():
    """Partition with file groups for buckets 0, 1 and 2 of 4."""
    listing = InMemoryPartitionListing(partition_fields=["date"])
    for bucket_id in (0, 1, 2):
        listing.add_file_slice(make_slice(PARTITION, bucket_file_id(bucket_id), instant="001"))
    return listing


def test_load_for_partition(listing):
    """Test one entry per bucket file group."""
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    bucket_map = index.load_for_partition(PARTITION)
    assert sorted(bucket_map) == [0, 1, 2]
    assert bucket_map[1] == RecordLocation("001", bucket_file_id(1))


def test_load_uses_latest_slice_per_file_group(listing):
    """Test older slices of the same file group are not duplicates."""
    listing.add_file_slice(make_slice(PARTITION, bucket_file_id(1), instant="002"))
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    bucket_map = index.load_for_partition(PARTITION)
    assert len(bucket_map) == 3
    assert bucket_map[1].instant_time == "002"


def test_duplicate_bucket_raises(listing):
    """Test two file groups in one bucket are a consistency error."""
    listing.add_file_slice(make_slice(PARTITION, bucket_file_id(2, suffix="bbbb")))
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    with pytest.raises(BucketConsistencyError) as exc_info:
        index.load_for_partition(PARTITION)
    assert exc_info.value.partition == PARTITION
    assert exc_info.value.bucket_id == 2


def test_malformed_file_id_raises(listing):
    """Test non-bucket file ids are fatal."""
    listing.add_file_slice(make_slice(PARTITION, "not-a-bucket-file"))
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    with pytest.raises(BucketEncodingError):
        index.load_for_partition(PARTITION)


def test_bucket_id_out_of_range_raises(listing):
    """Test file ids encoding a bucket beyond num_buckets are rejected."""
    listing.add_file_slice(make_slice(PARTITION, bucket_file_id(9)))
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    with pytest.raises(BucketEncodingError) as exc_info:
        index.load_for_partition(PARTITION)
    assert exc_info.value.bucket_id == 9


def test_get_record_location(listing):
    """Test insert vs update routing."""
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    index.load([PARTITION])

    # "d" hashes to bucket 3: empty -> insert
    assert index.get_bucket_id(RecordKey("d", PARTITION)) == 3
    assert index.get_record_location(RecordKey("d", PARTITION)) is None

    # "b" hashes to bucket 1: update the stored file group
    location = index.get_record_location(RecordKey("b", PARTITION))
    assert location == RecordLocation("001", bucket_file_id(1))

    # Unseen partition -> insert
    assert index.get_record_location(RecordKey("b", "2024-01-02")) is None


def test_load_rebuilds_wholesale(listing):
    """Test reloading drops partitions no longer requested."""
    listing.add_file_slice(make_slice("2024-01-02", bucket_file_id(0)))
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    index.load([PARTITION, "2024-01-02"])
    assert index.loaded_partitions == [PARTITION, "2024-01-02"]

    index.load(["2024-01-02"])
    assert index.loaded_partitions == ["2024-01-02"]
    assert index.get_record_location(RecordKey("b", PARTITION)) is None


def test_tag_locations_and_mapper(listing):
    """Test batch tagging and the per-call mapper agree."""
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
    index.load([PARTITION])
    keys = [RecordKey(k, PARTITION) for k in ("a", "b", "c", "d")]
    tagged = dict(index.tag_locations(keys))
    mapper = index.location_mapper([PARTITION])
    for key in keys:
        assert mapper.get_record_location(key) == tagged[key]
    assert tagged[keys[3]] is None
    assert tagged[keys[0]].file_id == bucket_file_id(0)


def test_time_travel_hides_newer_file_groups(listing):
    """Test query instant filters slices written later."""
    listing.add_file_slice(make_slice(PARTITION, bucket_file_id(3), instant="005"))
    index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"], query_instant="003")
    assert 3 not in index.load_for_partition(PARTITION)


def test_rejects_non_positive_buckets(listing):
    with pytest.raises(ValueError):
        BucketLocationIndex(listing, num_buckets=0, index_key_fields=["id"])
