"""
Configuration loaders.

App config:         reads config.yaml, PAPER_TRADER_USER may override the user.
Instrument catalog: reads instruments.default.json (or override), validates against JSON Schema.
"""

from config.loader import (
    AlertingConfig,
    AppConfig,
    ExecutionConfig,
    JournalConfig,
    MarketConfig,
    load_config,
)
from config.market_config import ConfigError, load_instruments

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "ExecutionConfig",
    "JournalConfig",
    "MarketConfig",
    "load_config",
    # Instrument catalog (JSON + schema)
    "ConfigError",
    "load_instruments",
]
