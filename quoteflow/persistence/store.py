"""Record stores - key/value persistence for tracked instruments.

Two backends share one async contract:
- MemoryRecordStore keeps values in a dict (tests, dry runs)
- JsonFileRecordStore keeps a single JSON document on disk
"""

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from ..utils import get_logger

logger = get_logger(__name__)


class RecordStore(ABC):
    """Async key/value store"""

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the stored values for the keys that exist"""
        pass

    @abstractmethod
    async def set(self, values: Dict[str, Any]) -> None:
        """Write every key in the mapping"""
        pass


class MemoryRecordStore(RecordStore):
    """In-process store; values are deep-copied in and out"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def set(self, values: Dict[str, Any]) -> None:
        self._data.update(copy.deepcopy(values))


class JsonFileRecordStore(RecordStore):
    """Single JSON document store.

    The document is re-read on every call so external edits are picked up.
    The parent directory is created on first write.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt record store at {self.path}: {e}")
            raise
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        async with self._lock:
            data = self._read()
        return {key: data[key] for key in keys if key in data}

    async def set(self, values: Dict[str, Any]) -> None:
        async with self._lock:
            data = self._read()
            data.update(values)
            self._write(data)
        logger.debug(f"Wrote {', '.join(values)} to {self.path}")
