"""File index: partition pruning and file slice listing."""
from .listing import PartitionListing, InMemoryPartitionListing, latest_file_slices, parse_partition_values
from .coordinator import PruningCoordinator, PartitionDirectory

__all__ = [
    "PartitionListing",
    "InMemoryPartitionListing",
    "latest_file_slices",
    "parse_partition_values",
    "PruningCoordinator",
    "PartitionDirectory",
]
