"""Configuration management for SkipLake."""
import os
import yaml
from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field


class FailureMode(str, Enum):
    """How index lookup failures are handled during data skipping."""
    FALLBACK = "fallback"  # Log, then read everything for this query
    STRICT = "strict"  # Abort planning with the error


class TableConfig(BaseModel):
    """Table layout: keys, partitioning and bucketing."""
    name: str = "table"
    record_key_field: str = "_hoodie_record_key"
    partition_fields: list[str] = Field(default_factory=list)
    # Fields hashed into bucket ids. Empty means "the record key field".
    index_key_fields: list[str] = Field(default_factory=list)
    # Fixed for the table's lifetime
    num_buckets: int = Field(4, gt=0)
    # Data schema used to resolve referenced columns. None means unknown.
    columns: Optional[list[str]] = None

    def bucket_key_fields(self) -> list[str]:
        return list(self.index_key_fields) or [self.record_key_field]


class SkippingConfig(BaseModel):
    """Data skipping configuration."""
    metadata_table_enabled: bool = True
    data_skipping_enabled: bool = False
    column_stats_enabled: bool = True
    record_index_enabled: bool = True
    failure_mode: FailureMode = FailureMode.FALLBACK
    include_log_files: bool = False
    # Projected stats rows (files x columns) below which stats are evaluated row by row
    in_memory_projection_threshold: int = Field(100_000, gt=0)


class SkipLakeConfig(BaseModel):
    """Root configuration for SkipLake."""
    table: TableConfig = Field(default_factory=TableConfig)
    skipping: SkippingConfig = Field(default_factory=SkippingConfig)

    # Time travel: read the table as of this instant (None = latest)
    query_instant: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_config(config_path: Optional[str] = None) -> SkipLakeConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, looks for:
            1. SKIPLAKE_CONFIG environment variable
            2. ./config/config.yaml
            3. ~/.skiplake/config.yaml

    Returns:
        SkipLakeConfig instance
    """
    if config_path is None:
        config_path = os.environ.get("SKIPLAKE_CONFIG")

        if config_path is None:
            candidates = [
                Path("./config/config.yaml"),
                Path.home() / ".skiplake" / "config.yaml",
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = str(candidate)
                    break

    if config_path is None:
        raise FileNotFoundError(
            "No config file found. Set SKIPLAKE_CONFIG or create config/config.yaml"
        )

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        yaml_data = yaml.safe_load(f) or {}

    return SkipLakeConfig(**yaml_data)


def save_example_config(output_path: str = "./config/config.example.yaml") -> Path:
    """
    Save an example configuration file.

    Args:
        output_path: Where to save the example config

    Returns:
        Path of the written file
    """
    example = {
        "table": {
            "name": "trips",
            "record_key_field": "trip_id",
            "partition_fields": ["date"],
            "index_key_fields": ["trip_id"],
            "num_buckets": 8,
        },
        "skipping": {
            "metadata_table_enabled": True,
            "data_skipping_enabled": True,
            "column_stats_enabled": True,
            "record_index_enabled": True,
            "failure_mode": "fallback",
            "include_log_files": False,
            "in_memory_projection_threshold": 100000,
        },
        "log_level": "INFO",
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        yaml.dump(example, f, default_flow_style=False, sort_keys=False)

    return output_path
