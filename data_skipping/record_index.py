"""
Record-key index access.

The record index maps every record key to the file group owning it. It only
helps queries that pin the record key exactly (``key = 'k'`` or
``key IN (...)``) at the top level of the filter conjunction.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Mapping, Sequence, Set, Union

from model.errors import IndexUnavailableError
from model.file_slice import RecordIndexEntry

from .predicates import Eq, In, Predicate, conjuncts

logger = logging.getLogger(__name__)

DEFAULT_RECORD_KEY_FIELD = "_hoodie_record_key"


class RecordKeyIndexProvider(ABC):
    """Access to an externally maintained record key -> file group index."""

    @abstractmethod
    def is_index_available(self) -> bool:
        ...

    @abstractmethod
    def extract_exact_match_keys(self, predicates: Sequence[Predicate]) -> Set[str]:
        """Record keys pinned by top-level equality/IN predicates on the key field."""

    @abstractmethod
    def get_candidate_files(self, all_files: Sequence, keys: Set[str]) -> Set[str]:
        """Names of the files (from ``all_files``) owning any of ``keys``."""

    @abstractmethod
    def indexed_file_names(self, all_files: Sequence) -> Set[str]:
        """Names of the files (from ``all_files``) known to the index."""

    def invalidate_caches(self) -> None:
        pass


class InMemoryRecordKeyIndex(RecordKeyIndexProvider):
    """
    Record index held in memory.

    Args:
        entries: RecordIndexEntry items or a {record_key: file_id} mapping
        record_key_field: Column holding the record key in queries
        available: Whether the index is usable
    """

    def __init__(
        self,
        entries: Union[Iterable[RecordIndexEntry], Mapping[str, str]] = (),
        record_key_field: str = DEFAULT_RECORD_KEY_FIELD,
        available: bool = True,
    ):
        if isinstance(entries, Mapping):
            entries = [RecordIndexEntry(k, v) for k, v in entries.items()]
        self.key_to_file_id: Dict[str, str] = {e.record_key: e.file_id for e in entries}
        self.record_key_field = record_key_field
        self.available = available

    def is_index_available(self) -> bool:
        return self.available

    def extract_exact_match_keys(self, predicates: Sequence[Predicate]) -> Set[str]:
        keys: Set[str] = set()
        for p in conjuncts(predicates):
            if isinstance(p, Eq) and p.column == self.record_key_field and p.value is not None:
                keys.add(str(p.value))
            elif isinstance(p, In) and p.column == self.record_key_field:
                keys.update(str(v) for v in p.values if v is not None)
        return keys

    def get_candidate_files(self, all_files: Sequence, keys: Set[str]) -> Set[str]:
        if not self.available:
            raise IndexUnavailableError("Record index is not available")
        file_ids = {self.key_to_file_id[k] for k in keys if k in self.key_to_file_id}
        logger.debug(f"[RecordIndex] {len(keys)} keys resolved to file groups {sorted(file_ids)}")
        return {f.name for f in all_files if f.file_id in file_ids}

    def indexed_file_names(self, all_files: Sequence) -> Set[str]:
        indexed_ids = set(self.key_to_file_id.values())
        return {f.name for f in all_files if f.file_id in indexed_ids}
