#!/usr/bin/env python
"""
List the files a query would scan, and route record keys to buckets.

The table is described by a YAML snapshot:

    partition_fields: [date]
    partitions:
      date=2024-01-01:
        - file_id: 00000000-7d2b-4c4e-9a3e-1f0e6c1a2b3c-0
          base_instant_time: "20240101000000"
          base_file: {path: date=2024-01-01/00000000-..._1-0-1_20240101000000.parquet, size: 1024}
    column_stats:
      - {file_name: 00000000-..._1-0-1_20240101000000.parquet, column: fare, min: 1.5, max: 80.0, null_count: 0}
    record_index:
      trip-1: 00000000-7d2b-4c4e-9a3e-1f0e6c1a2b3c-0

Usage:
    python scripts/prune_table.py table.yaml --filter "fare > 50"
    python scripts/prune_table.py table.yaml --partition-filter "date >= 2024-01-02" --filter "city in berlin,paris"
    python scripts/prune_table.py table.yaml --key trip-1 --key-partition date=2024-01-01
"""
import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Any, List, Tuple

import yaml

# Add project root to path so we can import project packages
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from config import SkipLakeConfig, load_config
from bucket_index import BucketLocationIndex
from data_skipping import InMemoryColumnStatsProvider, InMemoryRecordKeyIndex
from file_index import InMemoryPartitionListing, PruningCoordinator
from model import RecordKey

logger = logging.getLogger(__name__)

_EXPRESSION = re.compile(r"^\s*(\w+)\s*(==|=|!=|>=|<=|>|<|\bin\b|\bis_null\b|\bis_not_null\b)\s*(.*)$")


def parse_expression(text: str) -> Tuple[Any, ...]:
    """
    Parse ``column op value`` into a filter tuple.

    Values are typed with YAML rules (``10`` -> int, ``1.5`` -> float,
    ``berlin`` -> str); ``in`` takes a comma separated list.
    """
    match = _EXPRESSION.match(text)
    if match is None:
        raise ValueError(f"Cannot parse filter expression: {text!r}")
    column, op, raw = match.groups()
    if op in ("is_null", "is_not_null"):
        return (column, op)
    if op == "in":
        return (column, op, [yaml.safe_load(v.strip()) for v in raw.split(",")])
    return (column, op, yaml.safe_load(raw.strip()))


def main():
    parser = argparse.ArgumentParser(
        description="List files to scan for a query using partition pruning and data skipping."
    )

    parser.add_argument(
        "table",
        type=str,
        help="Path to the YAML table snapshot"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config YAML (default: built-in defaults with data skipping enabled)"
    )

    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        help="Data filter 'column op value' (repeatable, ANDed)"
    )

    parser.add_argument(
        "--partition-filter",
        action="append",
        default=[],
        help="Partition filter 'column op value' (repeatable, ANDed)"
    )

    parser.add_argument(
        "--key",
        action="append",
        default=[],
        help="Record key to route through the bucket index (repeatable)"
    )

    parser.add_argument(
        "--key-partition",
        type=str,
        default="",
        help="Partition path of the --key records"
    )

    args = parser.parse_args()

    if args.config:
        config = load_config(args.config)
    else:
        config = SkipLakeConfig()
        config.skipping.data_skipping_enabled = True

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=config.log_format,
    )

    with open(args.table, 'r') as f:
        snapshot = yaml.safe_load(f) or {}

    snapshot.setdefault("partition_fields", config.table.partition_fields)
    listing = InMemoryPartitionListing.from_dict(snapshot)
    column_stats = InMemoryColumnStatsProvider.from_records(
        snapshot.get("column_stats") or [],
        in_memory_projection_threshold=config.skipping.in_memory_projection_threshold,
    )
    record_index = InMemoryRecordKeyIndex(
        {str(k): str(v) for k, v in (snapshot.get("record_index") or {}).items()},
        record_key_field=config.table.record_key_field,
    )

    coordinator = PruningCoordinator(config, listing, column_stats=column_stats, record_index=record_index)

    data_filters = [parse_expression(e) for e in args.filter]
    partition_filters = [parse_expression(e) for e in args.partition_filter]

    logger.info("=" * 80)
    logger.info(f"Table: {args.table}")
    logger.info(f"  Partition filters: {partition_filters}")
    logger.info(f"  Data filters: {data_filters}")
    logger.info("=" * 80)

    directories = coordinator.prune(partition_filters, data_filters)
    for directory in directories:
        logger.info(f"Partition {directory.values or '<all>'}: {len(directory.files)} files")
        for f in directory.files:
            logger.info(f"  {f.path} ({f.size} bytes)")

    if coordinator.last_skipping_stats is not None:
        logger.info(f"Skipping: {coordinator.last_skipping_stats}")

    if args.key:
        index = BucketLocationIndex(
            listing,
            num_buckets=config.table.num_buckets,
            index_key_fields=config.table.bucket_key_fields(),
            query_instant=config.query_instant,
        )
        index.load([args.key_partition])
        keys: List[RecordKey] = [RecordKey(k, args.key_partition) for k in args.key]
        for key, location in index.tag_locations(keys):
            bucket_id = index.get_bucket_id(key)
            if location is None:
                logger.info(f"Key {key.record_key}: bucket {bucket_id} -> insert (no file group)")
            else:
                logger.info(
                    f"Key {key.record_key}: bucket {bucket_id} -> update {location.file_id} "
                    f"@ {location.instant_time}"
                )


if __name__ == "__main__":
    main()
