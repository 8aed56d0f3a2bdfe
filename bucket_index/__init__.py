"""Fixed-cardinality bucket index."""
from .identifier import (
    get_bucket_id,
    bucket_id_from_file_id,
    bucket_id_str,
    new_bucket_file_id_prefix,
    is_bucket_file_id,
)
from .location_index import BucketLocationIndex, BucketIndexLocationMapper

__all__ = [
    "get_bucket_id",
    "bucket_id_from_file_id",
    "bucket_id_str",
    "new_bucket_file_id_prefix",
    "is_bucket_file_id",
    "BucketLocationIndex",
    "BucketIndexLocationMapper",
]
