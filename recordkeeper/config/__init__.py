"""
Configuration module: settings, logging, constants.
"""

from recordkeeper.config.settings import Settings, get_settings, settings
from recordkeeper.config.logging import get_logger, setup_logging
from recordkeeper.config.constants import (
    CacheKeys,
    DatabaseEntityStatus,
    SearchOperator,
    SearchOrder,
)

__all__ = [
    # settings
    "Settings",
    "get_settings",
    "settings",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "CacheKeys",
    "DatabaseEntityStatus",
    "SearchOperator",
    "SearchOrder",
]
