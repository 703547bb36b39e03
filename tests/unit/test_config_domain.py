"""Unit tests for configuration loading and the instrument model."""

import pytest
from datetime import datetime, time

from quoteflow.config import Config, ProviderConfig, get_config, load_config, reset_config
from quoteflow.domain.instrument import Instrument, SecurityType


class TestConfig:
    """Test environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("DEFAULT_SOURCE", "FAILOVER_SOURCES", "CACHE_TTL_MINUTES", "THS_ENABLED"):
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config.providers.default_source == "eastmoney"
        assert config.providers.failover_sources == ["eastmoney", "sina"]
        assert config.providers.cache_ttl_seconds == 300
        assert config.providers.source_config("ths").enabled is False
        assert config.providers.source_config("sina").enabled is True
        assert config.market.get_open_time() == time(9, 30)
        assert config.market.get_lunch_end() == time(13, 0)
        assert config.notifications.threshold_pct == 1.0

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_SOURCE", "Sina")
        monkeypatch.setenv("FAILOVER_SOURCES", "sina, ths ,eastmoney")
        monkeypatch.setenv("THS_ENABLED", "true")
        monkeypatch.setenv("SINA_MAX_FAILURES", "5")
        monkeypatch.setenv("SINA_FAILURE_RESET_MINUTES", "1")
        monkeypatch.setenv("NOTIFY_DEDUP_MINUTES", "0")

        config = load_config()

        assert config.providers.default_source == "sina"
        assert config.providers.failover_sources == ["sina", "ths", "eastmoney"]
        assert config.providers.source_config("ths").enabled is True
        assert config.providers.source_config("sina").max_failures == 5
        assert config.providers.source_config("sina").failure_reset_interval == 60
        assert config.notifications.dedup_minutes == 0

    def test_singleton_and_reset(self):
        first = get_config()
        assert get_config() is first

        reset_config()
        assert get_config() is not first

    def test_get_and_override(self):
        config = Config()

        assert config.get("market.timezone") == "Asia/Shanghai"
        assert config.get("market.missing", "fallback") == "fallback"

        config.override("market.timezone", "Asia/Hong_Kong")
        assert config.get("market.timezone") == "Asia/Hong_Kong"

    def test_unknown_source_config_gets_defaults(self):
        config = ProviderConfig()

        source = config.source_config("custom")

        assert source.max_failures == 3
        assert source.failure_reset_interval == 300


class TestInstrument:
    """Test instrument record conversion."""

    def test_from_dict(self):
        instrument = Instrument.from_dict({
            "id": "s1", "code": "600519", "name": "贵州茅台", "type": "stock",
            "amount": "10", "targetPercentage": 25, "currentPrice": 1700.5,
            "lastUpdate": "2024-01-03T10:00:00+08:00",
        })

        assert instrument.kind is SecurityType.STOCK
        assert instrument.amount == 10.0
        assert instrument.current_price == 1700.5
        assert instrument.last_update.hour == 10
        assert instrument.market_value == pytest.approx(17005.0)

    def test_epoch_millisecond_timestamps(self):
        instrument = Instrument.from_dict({"id": "s1", "code": "600519", "name": "x", "type": "stock",
                                           "lastUpdate": 1704247200000})

        assert instrument.last_update == datetime.fromtimestamp(1704247200)

    def test_cash_price_is_always_one(self):
        instrument = Instrument.from_dict({"id": "c1", "code": "", "name": "现金", "type": "cash",
                                           "amount": 5000, "currentPrice": 7.0})

        assert instrument.current_price == 1.0
        assert instrument.market_value == 5000.0
        assert not instrument.is_tracked

    @pytest.mark.parametrize("raw,kind", [
        ("gold", SecurityType.COMMODITY),
        ("ETF", SecurityType.ETF),
        ("bond", SecurityType.BOND),
        ("mystery", SecurityType.STOCK),
        (None, SecurityType.STOCK),
    ])
    def test_type_parsing(self, raw, kind):
        assert SecurityType.parse(raw) is kind

    def test_to_dict_uses_record_keys(self):
        instrument = Instrument(
            id="s1", code="600519", name="贵州茅台", kind=SecurityType.STOCK,
            amount=10, current_price=1700.0, last_update=datetime(2024, 1, 3, 10, 0),
        )

        record = instrument.to_dict()

        assert record["type"] == "stock"
        assert record["currentPrice"] == 1700.0
        assert record["lastUpdate"] == "2024-01-03T10:00:00"
        assert "sector" not in record
