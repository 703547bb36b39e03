"""Persistence layer for tracked instruments."""

from .store import RecordStore, MemoryRecordStore, JsonFileRecordStore
from .instruments import InstrumentRepository, INVESTMENTS_KEY

__all__ = [
    'RecordStore',
    'MemoryRecordStore',
    'JsonFileRecordStore',
    'InstrumentRepository',
    'INVESTMENTS_KEY',
]
