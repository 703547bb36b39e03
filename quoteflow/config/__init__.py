"""
Configuration module for QuoteFlow
"""

from .settings import (
    Config,
    DataSourceConfig,
    MarketConfig,
    NotificationConfig,
    ProviderConfig,
    SystemConfig,
    get_config,
    load_config,
    reset_config,
)

__all__ = [
    "Config",
    "DataSourceConfig",
    "MarketConfig",
    "NotificationConfig",
    "ProviderConfig",
    "SystemConfig",
    "get_config",
    "load_config",
    "reset_config",
]
