"""
Simple bucket index: record key -> bucket id -> file group.

Each partition holds at most one file group per bucket, so routing an
upsert needs no index lookup. The key's bucket id is computed, and the
partition's latest slice for that bucket (if any) is the update target.
An empty bucket means the record is a new insert.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from file_index.listing import PartitionListing
from model.errors import BucketConsistencyError, BucketEncodingError
from model.file_slice import RecordKey, RecordLocation

from .identifier import bucket_id_from_file_id, get_bucket_id

logger = logging.getLogger(__name__)

BucketMap = Dict[int, RecordLocation]


class BucketLocationIndex:
    """
    Bucket id -> file location maps for the partitions of a bucketed table.

    Maps are rebuilt wholesale from the latest listing on every load.

    Example:
        index = BucketLocationIndex(listing, num_buckets=4, index_key_fields=["id"])
        index.load(["2024-01-01"])
        location = index.get_record_location(RecordKey("id:42", "2024-01-01"))
        if location is None:
            ...  # insert into a new file group for the key's bucket
    """

    # Log files are not indexed by bucket id
    can_index_log_files = False

    def __init__(
        self,
        listing: PartitionListing,
        num_buckets: int,
        index_key_fields: Sequence[str],
        query_instant: Optional[str] = None,
    ):
        if num_buckets <= 0:
            raise ValueError(f"num_buckets must be positive, got {num_buckets}")
        self.listing = listing
        self.num_buckets = num_buckets
        self.index_key_fields = list(index_key_fields)
        self.query_instant = query_instant
        self._partition_maps: Dict[str, BucketMap] = {}

    def get_bucket_id(self, key: RecordKey) -> int:
        return get_bucket_id(key, self.index_key_fields, self.num_buckets)

    def load_for_partition(self, partition_path: str) -> BucketMap:
        """
        Build the bucket id -> location map of one partition.

        Args:
            partition_path: Partition to load

        Returns:
            Mapping of bucket id to (instant time, file id)

        Raises:
            BucketConsistencyError: two latest slices share a bucket id
            BucketEncodingError: a file id carries no valid bucket id
        """
        bucket_map: BucketMap = {}
        for file_slice in self.listing.get_latest_file_slices(partition_path, self.query_instant):
            file_id = file_slice.file_id
            bucket_id = bucket_id_from_file_id(file_id)
            if bucket_id >= self.num_buckets:
                raise BucketEncodingError(
                    f"File id {file_id} at partition path={partition_path} encodes bucket id "
                    f"{bucket_id}, outside the table's {self.num_buckets} buckets",
                    partition=partition_path,
                    file_id=file_id,
                    bucket_id=bucket_id,
                )
            if bucket_id in bucket_map:
                raise BucketConsistencyError(
                    f"Found multiple files at partition path={partition_path} belonging to the "
                    f"same bucket id = {bucket_id} ({bucket_map[bucket_id].file_id}, {file_id})",
                    partition=partition_path,
                    file_id=file_id,
                    bucket_id=bucket_id,
                )
            bucket_map[bucket_id] = RecordLocation(file_slice.base_instant_time, file_id)
        return bucket_map

    def load(self, partitions: Iterable[str]) -> None:
        """Replace all loaded maps with fresh ones for ``partitions``."""
        maps = {p: self.load_for_partition(p) for p in partitions}
        self._partition_maps = maps
        logger.info(
            f"[BucketLocationIndex] Loaded {len(maps)} partitions, "
            f"{sum(len(m) for m in maps.values())} bucket locations"
        )

    @property
    def loaded_partitions(self) -> List[str]:
        return sorted(self._partition_maps)

    def get_record_location(self, key: RecordKey) -> Optional[RecordLocation]:
        """Location of the key's bucket, or None for an unseen partition or empty bucket."""
        bucket_map = self._partition_maps.get(key.partition_path)
        if bucket_map is None:
            return None
        return bucket_map.get(self.get_bucket_id(key))

    def tag_locations(self, keys: Iterable[RecordKey]) -> List[Tuple[RecordKey, Optional[RecordLocation]]]:
        """Pair every key with its current location (None = insert)."""
        return [(key, self.get_record_location(key)) for key in keys]

    def location_mapper(self, partitions: Iterable[str]) -> "BucketIndexLocationMapper":
        return BucketIndexLocationMapper(self, partitions)


class BucketIndexLocationMapper:
    """Locations for a fixed set of partitions, loaded once at construction."""

    def __init__(self, index: BucketLocationIndex, partitions: Iterable[str]):
        self.index = index
        self.partition_maps: Dict[str, BucketMap] = {
            p: index.load_for_partition(p) for p in partitions
        }

    def get_record_location(self, key: RecordKey) -> Optional[RecordLocation]:
        bucket_map = self.partition_maps.get(key.partition_path)
        if bucket_map is None:
            return None
        return bucket_map.get(self.index.get_bucket_id(key))
