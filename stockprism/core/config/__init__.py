"""Configuration management module."""

from stockprism.core.config.settings import (
    ConfigManager,
    FallbackConfig,
    LoggingConfig,
    ProviderConfig,
    StockPrismConfig,
    StorageConfig,
    get_default_config,
    load_config_from_env,
)

__all__ = [
    "ConfigManager",
    "StockPrismConfig",
    "ProviderConfig",
    "StorageConfig",
    "LoggingConfig",
    "FallbackConfig",
    "get_default_config",
    "load_config_from_env",
]
