"""Errors raised by the bucket index and data-skipping layers."""
from typing import Any, Optional


class SkipLakeError(Exception):
    """
    Base error carrying diagnostic context.

    Attributes:
        partition: Partition path involved (if any)
        file_id: File group id or file name involved (if any)
        bucket_id: Bucket id involved (if any)
        predicate: Offending predicate(s) (if any)
    """

    def __init__(
        self,
        message: str,
        partition: Optional[str] = None,
        file_id: Optional[str] = None,
        bucket_id: Optional[int] = None,
        predicate: Any = None,
    ):
        super().__init__(message)
        self.partition = partition
        self.file_id = file_id
        self.bucket_id = bucket_id
        self.predicate = predicate


class BucketConsistencyError(SkipLakeError):
    """Two latest file slices of one partition decode to the same bucket id.

    The table needs repair (or compaction) before any further writes.
    """


class BucketEncodingError(SkipLakeError, ValueError):
    """A file id does not carry a valid bucket id prefix."""


class IndexUnavailableError(SkipLakeError):
    """A secondary index is absent or disabled."""


class IndexLookupError(SkipLakeError):
    """An index provider failed while looking up candidate files."""
