"""Test configuration fixtures."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import SkipLakeConfig
from model import BaseFile, FileSlice, LogFile, base_file_name, log_file_name


def make_slice(partition, file_id, instant="001", size=100, log_versions=(), with_base=True):
    """Build a file slice with a base file and optional log files."""
    prefix = f"{partition}/" if partition else ""
    base = BaseFile(f"{prefix}{base_file_name(file_id, instant)}", size) if with_base else None
    logs = [LogFile(f"{prefix}{log_file_name(file_id, instant, v)}", 10) for v in log_versions]
    return FileSlice(partition, file_id, instant, base_file=base, log_files=logs)


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for tests."""
    return tmp_path


@pytest.fixture
def skipping_config():
    """Config with data skipping fully enabled."""
    config = SkipLakeConfig(
        table={
            "record_key_field": "key",
            "partition_fields": ["date"],
            "num_buckets": 4,
        },
        skipping={"data_skipping_enabled": True},
    )
    return config


@pytest.fixture
def sample_config():
    """Sample YAML-style configuration."""
    return {
        "table": {
            "name": "trips",
            "record_key_field": "trip_id",
            "partition_fields": ["date"],
            "num_buckets": 8,
        },
        "skipping": {
            "data_skipping_enabled": True,
            "failure_mode": "strict",
        },
        "log_level": "DEBUG",
    }
