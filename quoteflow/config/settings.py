"""
Configuration management for QuoteFlow
Loads environment variables and provides centralized settings
"""

import os
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv
import logging

# Load environment variables
env_path = Path(__file__).parent.parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

KNOWN_SOURCES = ("eastmoney", "sina", "ths")


def _parse_clock(value: str) -> time:
    h, m = map(int, value.split(':'))
    return time(h, m)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DataSourceConfig:
    """Failover thresholds for a single named source"""
    source: str
    max_failures: int = 3
    failure_reset_interval: float = 300.0  # seconds
    enabled: bool = True


@dataclass
class ProviderConfig:
    """Quote provider selection and caching"""
    default_source: str = "eastmoney"
    failover_sources: List[str] = field(default_factory=lambda: ["eastmoney", "sina"])
    cache_ttl_minutes: float = 5
    request_timeout_seconds: float = 10.0
    data_sources: Dict[str, DataSourceConfig] = field(default_factory=dict)

    def __post_init__(self):
        for name in KNOWN_SOURCES:
            # THS is disabled unless explicitly switched on
            self.data_sources.setdefault(
                name, DataSourceConfig(source=name, enabled=(name != "ths"))
            )

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_minutes * 60

    def source_config(self, name: str) -> DataSourceConfig:
        """Get config for a source, creating defaults for unknown names"""
        if name not in self.data_sources:
            self.data_sources[name] = DataSourceConfig(source=name)
        return self.data_sources[name]


@dataclass
class MarketConfig:
    """Trading session timing (exchange local time)"""
    timezone: str = "Asia/Shanghai"
    market_open_time: str = "09:30"
    market_close_time: str = "15:00"
    lunch_break_start: str = "11:30"
    lunch_break_end: str = "13:00"
    poll_interval_minutes: float = 5

    def get_open_time(self) -> time:
        return _parse_clock(self.market_open_time)

    def get_close_time(self) -> time:
        return _parse_clock(self.market_close_time)

    def get_lunch_start(self) -> time:
        return _parse_clock(self.lunch_break_start)

    def get_lunch_end(self) -> time:
        return _parse_clock(self.lunch_break_end)


@dataclass
class NotificationConfig:
    """Price change notification rules"""
    threshold_pct: float = 1.0
    dedup_minutes: float = 30
    priority: int = 2


@dataclass
class SystemConfig:
    """System-level configuration"""
    log_level: str = "INFO"
    store_path: Path = field(default_factory=lambda: Path("data") / "investments.json")
    log_file: Optional[Path] = None


@dataclass
class Config:
    """Main configuration container"""
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    # Runtime overrides
    _overrides: Dict[str, Any] = field(default_factory=dict)

    def override(self, key: str, value: Any):
        """Override a configuration value at runtime"""
        self._overrides[key] = value

    def get(self, key: str, default=None):
        """Get configuration value with override support"""
        if key in self._overrides:
            return self._overrides[key]

        # Navigate nested attributes
        parts = key.split('.')
        obj = self
        for part in parts:
            if hasattr(obj, part):
                obj = getattr(obj, part)
            else:
                return default
        return obj


def _load_source_configs() -> Dict[str, DataSourceConfig]:
    configs = {}
    for name in KNOWN_SOURCES:
        prefix = name.upper()
        configs[name] = DataSourceConfig(
            source=name,
            max_failures=int(os.getenv(f"{prefix}_MAX_FAILURES", "3")),
            failure_reset_interval=float(os.getenv(f"{prefix}_FAILURE_RESET_MINUTES", "5")) * 60,
            enabled=_env_bool(f"{prefix}_ENABLED", name != "ths"),
        )
    return configs


def load_config() -> Config:
    """Build a fresh configuration from the environment"""
    failover_raw = os.getenv("FAILOVER_SOURCES", "eastmoney,sina")
    failover_sources = [s.strip().lower() for s in failover_raw.split(",") if s.strip()]

    provider_config = ProviderConfig(
        default_source=os.getenv("DEFAULT_SOURCE", "eastmoney").strip().lower(),
        failover_sources=failover_sources or ["eastmoney", "sina"],
        cache_ttl_minutes=float(os.getenv("CACHE_TTL_MINUTES", "5")),
        request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10")),
        data_sources=_load_source_configs(),
    )

    market_config = MarketConfig(
        timezone=os.getenv("MARKET_TIMEZONE", "Asia/Shanghai"),
        market_open_time=os.getenv("MARKET_OPEN_TIME", "09:30"),
        market_close_time=os.getenv("MARKET_CLOSE_TIME", "15:00"),
        lunch_break_start=os.getenv("LUNCH_BREAK_START", "11:30"),
        lunch_break_end=os.getenv("LUNCH_BREAK_END", "13:00"),
        poll_interval_minutes=float(os.getenv("POLL_INTERVAL_MINUTES", "5")),
    )

    notification_config = NotificationConfig(
        threshold_pct=float(os.getenv("NOTIFY_THRESHOLD_PCT", "1.0")),
        dedup_minutes=float(os.getenv("NOTIFY_DEDUP_MINUTES", "30")),
        priority=int(os.getenv("NOTIFY_PRIORITY", "2")),
    )

    log_file = os.getenv("LOG_FILE", "").strip()
    system_config = SystemConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        store_path=Path(os.getenv("STORE_PATH", str(Path("data") / "investments.json"))),
        log_file=Path(log_file) if log_file else None,
    )

    config = Config(
        providers=provider_config,
        market=market_config,
        notifications=notification_config,
        system=system_config,
    )

    # Validate critical settings
    if provider_config.default_source not in KNOWN_SOURCES + ("failover",):
        logging.warning(
            f"DEFAULT_SOURCE={provider_config.default_source!r} is not a known source - "
            f"lookups will use eastmoney"
        )

    return config


# Singleton instance
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """Get or create the configuration singleton"""
    global _config_instance

    if _config_instance is None:
        _config_instance = load_config()

    return _config_instance


def reset_config():
    """Reset the configuration singleton (mainly for testing)"""
    global _config_instance
    _config_instance = None
