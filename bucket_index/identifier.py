"""
Bucket id computation and decoding.

Bucket file ids carry their bucket id as a zero-padded 8-digit prefix
(``00000003-5f1c...``). Record keys are routed with the JVM list/string hash
used by the write path, so ids computed here match the ids embedded in
existing file names bit-for-bit.
"""
import re
import uuid
from typing import List, Optional, Sequence

from model.errors import BucketEncodingError
from model.file_slice import RecordKey

BUCKET_ID_WIDTH = 8
_BUCKET_FILE_ID = re.compile(r"^(\d{8})(?:-|$)")

_INT_MASK = 0xFFFFFFFF
_INT_MAX = 0x7FFFFFFF


def _to_int32(value: int) -> int:
    value &= _INT_MASK
    return value - (1 << 32) if value > _INT_MAX else value


def java_string_hash(value: str) -> int:
    """String hash over UTF-16 code units, with 32-bit signed overflow."""
    h = 0
    data = value.encode("utf-16-be")
    for i in range(0, len(data), 2):
        h = (31 * h + ((data[i] << 8) | data[i + 1])) & _INT_MASK
    return _to_int32(h)


def java_list_hash(values: Sequence[Optional[str]]) -> int:
    """Ordered list hash; a null element contributes 0."""
    h = 1
    for v in values:
        h = (31 * h + (0 if v is None else java_string_hash(v))) & _INT_MASK
    return _to_int32(h)


def hash_keys(record_key: str, index_key_fields: Sequence[str]) -> List[Optional[str]]:
    """
    Extract the ordered values hashed into a bucket id.

    A simple key (no ``field:value`` pairs) hashes as itself. A complex key
    ``f1:v1,f2:v2`` contributes the values of ``index_key_fields`` in order;
    a field absent from the key contributes a null.
    """
    if ":" not in record_key:
        return [record_key]
    pairs = {}
    for part in record_key.split(","):
        name, _, value = part.partition(":")
        pairs[name] = value
    return [pairs.get(f) for f in index_key_fields]


def get_bucket_id(
    key,
    index_key_fields: Sequence[str],
    num_buckets: int,
) -> int:
    """
    Compute the bucket id owning a record key.

    Args:
        key: RecordKey or raw record key string
        index_key_fields: Ordered fields hashed into the bucket id
        num_buckets: Fixed bucket count of the table

    Returns:
        Bucket id in [0, num_buckets)
    """
    if num_buckets <= 0:
        raise ValueError(f"num_buckets must be positive, got {num_buckets}")
    record_key = key.record_key if isinstance(key, RecordKey) else key
    values = hash_keys(record_key, index_key_fields)
    return (java_list_hash(values) & _INT_MAX) % num_buckets


def bucket_id_str(bucket_id: int) -> str:
    return f"{bucket_id:0{BUCKET_ID_WIDTH}d}"


def new_bucket_file_id_prefix(bucket_id: int) -> str:
    """Random file id prefix whose first 8 characters encode ``bucket_id``."""
    return bucket_id_str(bucket_id) + str(uuid.uuid4())[BUCKET_ID_WIDTH:]


def is_bucket_file_id(file_id: str) -> bool:
    return _BUCKET_FILE_ID.match(file_id) is not None


def bucket_id_from_file_id(file_id: str) -> int:
    """
    Decode the bucket id embedded in a file id.

    Raises:
        BucketEncodingError: file id does not follow the bucket naming scheme
    """
    match = _BUCKET_FILE_ID.match(file_id or "")
    if match is None:
        raise BucketEncodingError(
            f"File id {file_id!r} does not carry a bucket id prefix",
            file_id=file_id,
        )
    return int(match.group(1))
