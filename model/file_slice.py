"""
Table data model: partitions, files and file slices.

File names follow the table's naming scheme:

- base file: ``{file_id}_{write_token}_{instant_time}.parquet``
- log file:  ``.{file_id}_{base_instant_time}.log.{version}_{write_token}``
"""
import posixpath
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

BASE_FILE_EXTENSION = ".parquet"
LOG_FILE_MARKER = ".log."


def base_file_name(
    file_id: str,
    instant_time: str,
    write_token: str = "1-0-1",
    extension: str = BASE_FILE_EXTENSION,
) -> str:
    """Build a base file name for a file group at an instant."""
    return f"{file_id}_{write_token}_{instant_time}{extension}"


def log_file_name(
    file_id: str,
    base_instant_time: str,
    version: int = 1,
    write_token: str = "1-0-1",
) -> str:
    """Build a log file name appended to the slice starting at ``base_instant_time``."""
    return f".{file_id}_{base_instant_time}{LOG_FILE_MARKER}{version}_{write_token}"


def is_log_file_name(name: str) -> bool:
    return name.startswith(".") and LOG_FILE_MARKER in name


def file_id_from_name(name: str) -> str:
    """
    Extract the file group id from a base or log file name.

    Args:
        name: File name (not a full path)

    Returns:
        File group id
    """
    name = posixpath.basename(name)
    if is_log_file_name(name):
        return name[1:].split("_", 1)[0]
    return name.split("_", 1)[0]


@dataclass(frozen=True)
class PartitionPath:
    """Partition path plus its ordered partition-column values."""
    path: str
    values: Tuple[Any, ...] = ()

    @property
    def is_root(self) -> bool:
        return self.path == ""

    def __str__(self) -> str:
        return self.path or "<root>"


@dataclass(frozen=True)
class BaseFile:
    """Columnar base file of a file slice."""
    path: str
    size: int = 0

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def file_id(self) -> str:
        return file_id_from_name(self.name)

    @property
    def commit_time(self) -> str:
        stem = self.name.rsplit(".", 1)[0]
        return stem.rsplit("_", 1)[-1]


@dataclass(frozen=True)
class LogFile:
    """Incremental log file appended to a file slice."""
    path: str
    size: int = 0

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def file_id(self) -> str:
        return file_id_from_name(self.name)

    @property
    def base_commit_time(self) -> str:
        head = self.name[1:].split(LOG_FILE_MARKER, 1)[0]
        return head.split("_", 1)[1] if "_" in head else ""

    @property
    def version(self) -> int:
        tail = self.name.split(LOG_FILE_MARKER, 1)[1]
        return int(tail.split("_", 1)[0])


@dataclass
class FileSlice:
    """
    One versioned state of a file group within a partition.

    A slice holds an optional base file plus zero or more log files written
    on top of it since ``base_instant_time``.
    """
    partition_path: str
    file_id: str
    base_instant_time: str
    base_file: Optional[BaseFile] = None
    log_files: List[LogFile] = field(default_factory=list)

    def files(self, include_log_files: bool = True) -> List[Any]:
        """Return the base file (if any) followed by the log files ordered by version."""
        files: List[Any] = []
        if self.base_file is not None:
            files.append(self.base_file)
        if include_log_files:
            files.extend(sorted(self.log_files, key=lambda f: f.version))
        return files

    def file_names(self, include_log_files: bool = True) -> List[str]:
        return [f.name for f in self.files(include_log_files)]

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files())

    def is_empty(self) -> bool:
        return self.base_file is None and not self.log_files


@dataclass(frozen=True)
class RecordKey:
    """Record key plus owning partition path."""
    record_key: str
    partition_path: str = ""


@dataclass(frozen=True)
class RecordLocation:
    """Where a record currently lives: file group id and the slice's base instant."""
    instant_time: str
    file_id: str


@dataclass(frozen=True)
class ColumnStatsEntry:
    """Per-file, per-column statistics as stored in the column stats index."""
    file_name: str
    column_name: str
    min_value: Any = None
    max_value: Any = None
    null_count: Optional[int] = None
    value_count: Optional[int] = None


@dataclass(frozen=True)
class RecordIndexEntry:
    """Record key to owning file group id."""
    record_key: str
    file_id: str
    partition_path: str = ""


@dataclass(frozen=True)
class ColumnRange:
    """
    Statistics of one column within one file, as seen by predicates.

    ``None`` bounds or counts mean "unknown".
    """
    min_value: Any = None
    max_value: Any = None
    null_count: Optional[int] = None
    value_count: Optional[int] = None

    @classmethod
    def point(cls, value: Any) -> "ColumnRange":
        """Exact statistics of a single known value (e.g. a partition value)."""
        if value is None:
            return cls(None, None, null_count=1, value_count=1)
        return cls(value, value, null_count=0, value_count=1)

    @property
    def has_bounds(self) -> bool:
        return self.min_value is not None and self.max_value is not None
