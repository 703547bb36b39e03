"""Instrument repository - tracked holdings on top of a record store.

The repository never keeps its own copy between calls: every read goes to
the store, and single-instrument patches are serialized with a lock so
concurrent price updates within one refresh cycle never lose writes.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..domain.instrument import Instrument
from ..utils import get_logger
from .store import RecordStore

logger = get_logger(__name__)

INVESTMENTS_KEY = "investments"
EXPORT_VERSION = "1.0"


class InstrumentRepository:
    """Read and patch tracked instruments stored under one key."""

    def __init__(self, store: RecordStore, key: str = INVESTMENTS_KEY):
        self.store = store
        self.key = key
        self._lock = asyncio.Lock()

    async def _load_records(self) -> List[Dict[str, Any]]:
        data = await self.store.get([self.key])
        records = data.get(self.key) or []
        if not isinstance(records, list):
            logger.warning(f"Ignoring malformed '{self.key}' value in record store")
            return []
        return records

    async def list_instruments(self) -> List[Instrument]:
        """All stored instruments; malformed records are skipped"""
        instruments = []
        for record in await self._load_records():
            try:
                instruments.append(Instrument.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed instrument record {record!r}: {e}")
        return instruments

    async def list_tracked(self) -> List[Instrument]:
        """Instruments with a non-empty code"""
        return [i for i in await self.list_instruments() if i.is_tracked]

    async def get(self, instrument_id: str) -> Optional[Instrument]:
        for instrument in await self.list_instruments():
            if instrument.id == instrument_id:
                return instrument
        return None

    async def save_all(self, instruments: List[Instrument]):
        async with self._lock:
            await self.store.set({self.key: [i.to_dict() for i in instruments]})

    async def update(self, instrument_id: str, **fields) -> Optional[Instrument]:
        """Patch attributes of one instrument.

        Args:
            instrument_id: Id of the instrument to patch
            **fields: Instrument attribute names and new values

        Returns:
            The updated instrument, or None if the id is unknown
        """
        async with self._lock:
            records = await self._load_records()
            for index, record in enumerate(records):
                if str(record.get('id')) != instrument_id:
                    continue

                instrument = Instrument.from_dict(record)
                for name, value in fields.items():
                    if not hasattr(instrument, name):
                        raise AttributeError(f"Instrument has no attribute '{name}'")
                    setattr(instrument, name, value)
                # Re-apply the cash price rule after patching
                instrument.__post_init__()

                merged = dict(record)
                merged.update(instrument.to_dict())
                records[index] = merged
                await self.store.set({self.key: records})
                return instrument

        logger.warning(f"Instrument {instrument_id} not found, update skipped")
        return None

    async def export_payload(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            'version': EXPORT_VERSION,
            'exportDate': (now or datetime.now()).isoformat(),
            'investments': await self._load_records(),
        }

    async def import_payload(self, payload: Dict[str, Any], replace: bool = False) -> int:
        """Import an exported payload.

        Records are merged by id unless replace is set, in which case the
        stored list is swapped out wholesale. Returns the number of records
        imported.
        """
        if not isinstance(payload, dict) or not isinstance(payload.get('investments'), list):
            raise ValueError("Import payload must contain an 'investments' list")

        incoming = payload['investments']
        for record in incoming:
            # Validates required fields before anything is written
            Instrument.from_dict(record)

        if payload.get('version') not in (None, EXPORT_VERSION):
            logger.warning(f"Importing payload with unknown version {payload.get('version')!r}")

        async with self._lock:
            if replace:
                records = list(incoming)
            else:
                records = await self._load_records()
                positions = {str(r.get('id')): i for i, r in enumerate(records)}
                for record in incoming:
                    position = positions.get(str(record['id']))
                    if position is None:
                        positions[str(record['id'])] = len(records)
                        records.append(record)
                    else:
                        records[position] = {**records[position], **record}

            await self.store.set({self.key: records})

        logger.info(f"Imported {len(incoming)} instruments (replace={replace})")
        return len(incoming)
