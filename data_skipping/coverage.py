"""
Coverage repair for partially maintained indexes.

Indexes are updated asynchronously and may not know about every file of the
table yet. Files the index has never seen cannot be proven irrelevant, so
they are added back strictly after the predicate has been evaluated, never
inside the evaluation itself.
"""
from typing import Iterable, Set


def files_missing_from_index(all_file_names: Iterable[str], indexed_file_names: Iterable[str]) -> Set[str]:
    return set(all_file_names) - set(indexed_file_names)


def with_unindexed_files(
    candidate_file_names: Iterable[str],
    all_file_names: Iterable[str],
    indexed_file_names: Iterable[str],
) -> Set[str]:
    """
    Final candidate set: files passing the predicate plus files missing from the index.

    Args:
        candidate_file_names: Files that passed predicate evaluation
        all_file_names: Every file of the table
        indexed_file_names: Files the index has an entry for

    Returns:
        Candidate file names
    """
    return set(candidate_file_names) | files_missing_from_index(all_file_names, indexed_file_names)
