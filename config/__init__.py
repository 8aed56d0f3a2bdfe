"""Config package."""
from .config import (
    FailureMode,
    TableConfig,
    SkippingConfig,
    SkipLakeConfig,
    load_config,
    save_example_config,
)

__all__ = [
    "FailureMode",
    "TableConfig",
    "SkippingConfig",
    "SkipLakeConfig",
    "load_config",
    "save_example_config",
]
