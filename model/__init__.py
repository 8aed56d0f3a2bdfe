"""Table data model and errors."""
from .errors import (
    SkipLakeError,
    BucketConsistencyError,
    BucketEncodingError,
    IndexUnavailableError,
    IndexLookupError,
)
from .file_slice import (
    PartitionPath,
    BaseFile,
    LogFile,
    FileSlice,
    RecordKey,
    RecordLocation,
    ColumnStatsEntry,
    RecordIndexEntry,
    ColumnRange,
    base_file_name,
    log_file_name,
    file_id_from_name,
)

__all__ = [
    "SkipLakeError",
    "BucketConsistencyError",
    "BucketEncodingError",
    "IndexUnavailableError",
    "IndexLookupError",
    "PartitionPath",
    "BaseFile",
    "LogFile",
    "FileSlice",
    "RecordKey",
    "RecordLocation",
    "ColumnStatsEntry",
    "RecordIndexEntry",
    "ColumnRange",
    "base_file_name",
    "log_file_name",
    "file_id_from_name",
]
