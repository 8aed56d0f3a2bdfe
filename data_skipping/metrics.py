"""Data skipping effectiveness metrics."""
from dataclasses import dataclass

NOT_MEASURABLE = -1.0


def compute_skip_ratio(total_slices: int, candidate_slices: int, fully_cached: bool = True) -> float:
    """
    Fraction of file slices eliminated by data skipping.

    Args:
        total_slices: File slices in the partition-pruned partitions
        candidate_slices: File slices kept after data skipping
        fully_cached: Whether a full (unfiltered) listing has been materialized

    Returns:
        -1 when not measurable yet, 0 for an empty table, otherwise
        (total - candidate) / total
    """
    if not fully_cached:
        return NOT_MEASURABLE
    if total_slices <= 0:
        return 0.0
    return (total_slices - candidate_slices) / float(total_slices)


@dataclass
class SkippingStats:
    """Statistics from one data skipping pass."""
    total_slices: int = 0
    candidate_slices: int = 0
    fully_cached: bool = False
    index_used: str = "none"  # 'none' | 'record_index' | 'column_stats'

    @property
    def skipped_slices(self) -> int:
        return self.total_slices - self.candidate_slices

    @property
    def skip_ratio(self) -> float:
        return compute_skip_ratio(self.total_slices, self.candidate_slices, self.fully_cached)

    def __str__(self) -> str:
        return (
            f"SkippingStats(total={self.total_slices}, "
            f"candidates={self.candidate_slices}, "
            f"ratio={self.skip_ratio:.3f}, index={self.index_used})"
        )
