"""Utility modules for the visibility tracker."""

from .config import (
    DEFAULT_LOCATION,
    BrandConfig,
    Settings,
    get_settings,
    load_brand_config,
)

__all__ = [
    "DEFAULT_LOCATION",
    "BrandConfig",
    "Settings",
    "get_settings",
    "load_brand_config",
]
