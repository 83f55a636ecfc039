"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    AssetConfig,
    DiscoveryConfig,
    FetchConfig,
    FieldRule,
    HarvesterConfig,
    SelectorTable,
    StorageConfig,
)

__all__ = [
    "AssetConfig",
    "ConfigLocator",
    "ConfigRepository",
    "DiscoveryConfig",
    "FetchConfig",
    "FieldRule",
    "HarvesterConfig",
    "SelectorTable",
    "StorageConfig",
]
