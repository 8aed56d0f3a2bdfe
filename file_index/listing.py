"""
Partition and file slice listing.

Physical listing (directories, timeline) belongs to the table's storage
layer; this module defines the interface the file index consumes plus an
in-memory implementation used by tests and the CLI.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from data_skipping.predicates import Predicate, may_match_all
from model.file_slice import BaseFile, ColumnRange, FileSlice, LogFile, PartitionPath

logger = logging.getLogger(__name__)


def parse_partition_values(path: str, partition_fields: Sequence[str]) -> Tuple[Any, ...]:
    """
    Map a partition path onto the partition columns.

    - ``date=2024-01-01/hour=3`` or ``2024-01-01/3`` with two columns: one
      value per path segment
    - ``2024/01/01`` with a single column: the whole path is the value
    - anything else: no values (the table is read as non-partitioned)
    """
    if not partition_fields or not path:
        return ()
    segments = path.strip("/").split("/")
    if len(segments) == len(partition_fields):
        values = []
        for field_name, segment in zip(partition_fields, segments):
            prefix = f"{field_name}="
            values.append(segment[len(prefix):] if segment.startswith(prefix) else segment)
        return tuple(values)
    if len(partition_fields) == 1:
        return (path.strip("/"),)
    return ()


def latest_file_slices(slices: Iterable[FileSlice], as_of_instant: Optional[str] = None) -> List[FileSlice]:
    """
    Keep the latest slice of every file group.

    Args:
        slices: All known slices of one partition
        as_of_instant: Ignore slices starting after this instant (time travel)

    Returns:
        Latest slices ordered by file id
    """
    latest: Dict[str, FileSlice] = {}
    for s in slices:
        if as_of_instant is not None and s.base_instant_time > as_of_instant:
            continue
        current = latest.get(s.file_id)
        if current is None or s.base_instant_time > current.base_instant_time:
            latest[s.file_id] = s
    return [latest[file_id] for file_id in sorted(latest)]


class PartitionListing(ABC):
    """Lists partitions and their latest file slices."""

    @abstractmethod
    def all_partitions(self) -> List[PartitionPath]:
        ...

    @abstractmethod
    def list_partitions(
        self,
        partition_filters: Sequence[Predicate] = (),
        as_of_instant: Optional[str] = None,
    ) -> List[PartitionPath]:
        """Partitions that may satisfy ``partition_filters``."""

    @abstractmethod
    def get_latest_file_slices(
        self,
        partition_path: str,
        as_of_instant: Optional[str] = None,
    ) -> List[FileSlice]:
        ...


class InMemoryPartitionListing(PartitionListing):
    """
    Listing backed by an in-memory {partition path: [FileSlice]} mapping.

    Example:
        listing = InMemoryPartitionListing(
            partition_fields=["date"],
            slices={"date=2024-01-01": [FileSlice("date=2024-01-01", "00000000-a1", "001", ...)]},
        )
    """

    def __init__(
        self,
        partition_fields: Sequence[str] = (),
        slices: Optional[Dict[str, List[FileSlice]]] = None,
    ):
        self.partition_fields = list(partition_fields)
        self.slices: Dict[str, List[FileSlice]] = dict(slices or {})

    def add_file_slice(self, file_slice: FileSlice) -> None:
        self.slices.setdefault(file_slice.partition_path, []).append(file_slice)

    def all_partitions(self) -> List[PartitionPath]:
        return [
            PartitionPath(path, parse_partition_values(path, self.partition_fields))
            for path in sorted(self.slices)
        ]

    def list_partitions(
        self,
        partition_filters: Sequence[Predicate] = (),
        as_of_instant: Optional[str] = None,
    ) -> List[PartitionPath]:
        partitions = self.all_partitions()
        if not partition_filters:
            return partitions

        matched = []
        for partition in partitions:
            if len(partition.values) != len(self.partition_fields):
                # Values unknown: cannot prune
                matched.append(partition)
                continue
            stats = {
                name: ColumnRange.point(value)
                for name, value in zip(self.partition_fields, partition.values)
            }
            if may_match_all(partition_filters, stats):
                matched.append(partition)
        logger.debug(f"[PartitionListing] {len(matched)}/{len(partitions)} partitions match filters")
        return matched

    def get_latest_file_slices(
        self,
        partition_path: str,
        as_of_instant: Optional[str] = None,
    ) -> List[FileSlice]:
        return latest_file_slices(self.slices.get(partition_path, []), as_of_instant)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryPartitionListing":
        """
        Build from a YAML-friendly description.

        Args:
            data: {"partition_fields": [...], "partitions": {path: [slice, ...]}}
                where each slice is {"file_id", "base_instant_time",
                "base_file": {"path", "size"} | None, "log_files": [{"path", "size"}]}

        Returns:
            InMemoryPartitionListing
        """
        listing = cls(partition_fields=data.get("partition_fields") or [])
        for path, slices in (data.get("partitions") or {}).items():
            path = "" if path in (None, ".", "/") else str(path)
            listing.slices.setdefault(path, [])
            for s in slices or []:
                base = s.get("base_file")
                listing.add_file_slice(
                    FileSlice(
                        partition_path=path,
                        file_id=str(s["file_id"]),
                        base_instant_time=str(s["base_instant_time"]),
                        base_file=BaseFile(base["path"], int(base.get("size", 0))) if base else None,
                        log_files=[
                            LogFile(lf["path"], int(lf.get("size", 0)))
                            for lf in s.get("log_files") or []
                        ],
                    )
                )
        return listing
