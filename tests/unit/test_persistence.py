"""Unit tests for the record stores and instrument repository."""

import asyncio
import json
import pytest
from datetime import datetime

from quoteflow.domain.instrument import SecurityType
from quoteflow.persistence import (
    InstrumentRepository,
    JsonFileRecordStore,
    MemoryRecordStore,
)

RECORDS = [
    {"id": "s1", "code": "600519", "name": "贵州茅台", "type": "stock", "amount": 10, "targetPercentage": 20},
    {"id": "g1", "code": "518880", "name": "黄金ETF", "type": "gold", "amount": 100},
    {"id": "c1", "code": "", "name": "现金", "type": "cash", "amount": 5000},
]


class TestMemoryRecordStore:
    """Test the in-memory store."""

    @pytest.mark.asyncio
    async def test_get_returns_only_existing_keys(self):
        store = MemoryRecordStore({"a": 1})

        assert await store.get(["a", "b"]) == {"a": 1}

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        store = MemoryRecordStore()
        value = {"items": [1]}
        await store.set({"k": value})
        value["items"].append(2)

        assert (await store.get(["k"]))["k"] == {"items": [1]}


class TestJsonFileRecordStore:
    """Test the JSON document store."""

    @pytest.mark.asyncio
    async def test_missing_file_reads_empty(self, tmp_path):
        store = JsonFileRecordStore(tmp_path / "missing.json")

        assert await store.get(["investments"]) == {}

    @pytest.mark.asyncio
    async def test_set_creates_parent_and_merges_keys(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "store.json"
        store = JsonFileRecordStore(path)

        await store.set({"investments": []})
        await store.set({"settings": {"theme": "dark"}})

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert on_disk == {"investments": [], "settings": {"theme": "dark"}}

    @pytest.mark.asyncio
    async def test_non_ascii_round_trip(self, tmp_path):
        store = JsonFileRecordStore(tmp_path / "store.json")
        await store.set({"name": "贵州茅台"})

        assert await store.get(["name"]) == {"name": "贵州茅台"}


class TestInstrumentRepository:
    """Test instrument reads and patches."""

    @pytest.fixture
    def repository(self):
        return InstrumentRepository(MemoryRecordStore({"investments": RECORDS}))

    @pytest.mark.asyncio
    async def test_list_and_tracked(self, repository):
        instruments = await repository.list_instruments()
        tracked = await repository.list_tracked()

        assert [i.id for i in instruments] == ["s1", "g1", "c1"]
        assert [i.id for i in tracked] == ["s1", "g1"]
        assert instruments[1].kind is SecurityType.COMMODITY
        assert instruments[2].current_price == 1.0

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped(self):
        store = MemoryRecordStore({"investments": [{"code": "600519"}, RECORDS[0]]})
        repository = InstrumentRepository(store)

        assert [i.id for i in await repository.list_instruments()] == ["s1"]

    @pytest.mark.asyncio
    async def test_update_patches_one_record(self, repository):
        stamp = datetime(2024, 1, 3, 10, 0)

        updated = await repository.update("s1", current_price=1700.5, last_update=stamp)

        assert updated.current_price == 1700.5
        stored = await repository.get("s1")
        assert stored.current_price == 1700.5
        assert stored.last_update == stamp
        assert stored.target_percentage == 20

    @pytest.mark.asyncio
    async def test_update_keeps_unknown_record_fields(self):
        record = dict(RECORDS[0], note="long term")
        store = MemoryRecordStore({"investments": [record]})
        repository = InstrumentRepository(store)

        await repository.update("s1", current_price=1.0)

        raw = (await store.get(["investments"]))["investments"][0]
        assert raw["note"] == "long term"
        assert raw["currentPrice"] == 1.0

    @pytest.mark.asyncio
    async def test_update_unknown_id_returns_none(self, repository):
        assert await repository.update("nope", current_price=1.0) is None

    @pytest.mark.asyncio
    async def test_concurrent_updates_do_not_lose_writes(self, tmp_path):
        store = JsonFileRecordStore(tmp_path / "store.json")
        await store.set({"investments": RECORDS})
        repository = InstrumentRepository(store)

        await asyncio.gather(
            repository.update("s1", current_price=1700.0),
            repository.update("g1", current_price=4.5),
        )

        prices = {i.id: i.current_price for i in await repository.list_instruments()}
        assert prices == {"s1": 1700.0, "g1": 4.5, "c1": 1.0}

    @pytest.mark.asyncio
    async def test_export_payload(self, repository):
        payload = await repository.export_payload(now=datetime(2024, 1, 3, 18, 0))

        assert payload["version"] == "1.0"
        assert payload["exportDate"] == "2024-01-03T18:00:00"
        assert len(payload["investments"]) == 3

    @pytest.mark.asyncio
    async def test_import_merges_by_id(self, repository):
        payload = {
            "version": "1.0",
            "investments": [
                {"id": "s1", "code": "600519", "name": "茅台", "type": "stock", "amount": 20},
                {"id": "n1", "code": "000001", "name": "平安银行", "type": "stock", "amount": 100},
            ],
        }

        count = await repository.import_payload(payload)

        instruments = {i.id: i for i in await repository.list_instruments()}
        assert count == 2
        assert set(instruments) == {"s1", "g1", "c1", "n1"}
        assert instruments["s1"].amount == 20
        assert instruments["s1"].target_percentage == 20

    @pytest.mark.asyncio
    async def test_import_replace(self, repository):
        payload = {"investments": [{"id": "n1", "code": "000001", "name": "平安银行", "type": "stock"}]}

        await repository.import_payload(payload, replace=True)

        assert [i.id for i in await repository.list_instruments()] == ["n1"]

    @pytest.mark.asyncio
    async def test_import_rejects_bad_payload(self, repository):
        with pytest.raises(ValueError):
            await repository.import_payload({"investments": "nope"})

        with pytest.raises(KeyError):
            await repository.import_payload({"investments": [{"code": "600519"}]})

        assert len(await repository.list_instruments()) == 3
