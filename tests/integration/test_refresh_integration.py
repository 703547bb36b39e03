"""Integration tests for the refresh pipeline and CLI."""

import json
import pytest
from datetime import datetime
from click.testing import CliRunner

from quoteflow.config import ProviderConfig
from quoteflow.data import FailoverProvider, ProviderRegistry, SourceName
from quoteflow.domain import MarketClock
from quoteflow.main import cli
from quoteflow.orchestration import NotificationGate, NotificationSink, RefreshScheduler
from quoteflow.persistence import InstrumentRepository, JsonFileRecordStore


class RecordingSink(NotificationSink):
    def __init__(self):
        self.delivered = []

    async def deliver(self, title, message, priority):
        self.delivered.append((title, message, priority))


INSTRUMENTS = [
    {"id": "s1", "code": "600519", "name": "贵州茅台", "type": "stock", "amount": 10, "currentPrice": 1650.0},
    {"id": "e1", "code": "510300", "name": "沪深300ETF", "type": "etf", "amount": 1000, "currentPrice": 3.50},
    {"id": "c1", "code": "CASH", "name": "现金", "type": "cash", "amount": 20000},
    {"id": "m1", "code": "", "name": "房产", "type": "stock", "amount": 1},
]


class TestRefreshPipeline:
    """End-to-end refresh through failover, store and notifications."""

    @pytest.mark.asyncio
    async def test_refresh_cycle_with_failover(self, tmp_path, stub_provider_cls, fake_clock):
        store_path = tmp_path / "data" / "investments.json"
        store = JsonFileRecordStore(store_path)
        await store.set({"investments": INSTRUMENTS})

        eastmoney = stub_provider_cls(SourceName.EASTMONEY, fail=True)
        sina = stub_provider_cls(SourceName.SINA, prices={"600519": 1700.0, "510300": 3.51})
        config = ProviderConfig(default_source="failover", cache_ttl_minutes=0)

        registry = ProviderRegistry(config, factories={
            SourceName.EASTMONEY: lambda: eastmoney,
            SourceName.SINA: lambda: sina,
            SourceName.FAILOVER: lambda: FailoverProvider(registry, config, clock=fake_clock),
        }, clock=fake_clock)

        sink = RecordingSink()
        scheduler = RefreshScheduler(
            InstrumentRepository(store),
            registry,
            clock=MarketClock(now=lambda: datetime(2024, 1, 3, 10, 0)),
            gate=NotificationGate(sink, clock=fake_clock),
        )

        assert await scheduler.refresh_prices() is True

        on_disk = {r["id"]: r for r in json.loads(store_path.read_text(encoding="utf-8"))["investments"]}
        assert on_disk["s1"]["currentPrice"] == 1700.0
        assert on_disk["e1"]["currentPrice"] == 3.51
        assert on_disk["c1"]["currentPrice"] == 1.0
        assert "currentPrice" not in on_disk["m1"]
        assert on_disk["s1"]["lastUpdate"].startswith("2024-01-03T10:00:00")

        # 1650 -> 1700 is +3.03%, 3.50 -> 3.51 is below the threshold
        assert sink.delivered == [("贵州茅台 (600519)", "上涨3.03%\n1650.00 → 1700.00", 2)]

        failover = registry.get(SourceName.FAILOVER).provider
        assert failover.current_source is SourceName.SINA
        assert sorted(scheduler.last_report.updated) == ["c1", "e1", "s1"]

        # Second cycle: same prices, no further notifications
        await scheduler.refresh_prices()
        assert len(sink.delivered) == 1


class TestCli:
    """CLI commands that need no network access."""

    @pytest.fixture
    def store_env(self, tmp_path, monkeypatch):
        store_path = tmp_path / "investments.json"
        monkeypatch.setenv("STORE_PATH", str(store_path))
        return store_path

    def test_import_then_export(self, tmp_path, store_env):
        source = tmp_path / "backup.json"
        source.write_text(json.dumps({"version": "1.0", "investments": INSTRUMENTS}, ensure_ascii=False),
                          encoding="utf-8")
        target = tmp_path / "out" / "export.json"
        runner = CliRunner()

        imported = runner.invoke(cli, ["import", str(source)])
        exported = runner.invoke(cli, ["export", str(target)])

        assert imported.exit_code == 0, imported.output
        assert "Imported 4 instruments" in imported.output
        assert exported.exit_code == 0, exported.output
        payload = json.loads(target.read_text(encoding="utf-8"))
        assert payload["version"] == "1.0"
        assert [r["id"] for r in payload["investments"]] == ["s1", "e1", "c1", "m1"]

    def test_import_rejects_invalid_file(self, tmp_path, store_env):
        source = tmp_path / "bad.json"
        source.write_text(json.dumps({"investments": [{"code": "600519"}]}), encoding="utf-8")

        result = CliRunner().invoke(cli, ["import", str(source)])

        assert result.exit_code == 1
        assert not store_env.exists()

    def test_status(self, tmp_path, store_env):
        store_env.write_text(json.dumps({"investments": INSTRUMENTS}, ensure_ascii=False), encoding="utf-8")

        result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code == 0, result.output
        assert "4 stored, 3 tracked" in result.output
        assert "Session:" in result.output
