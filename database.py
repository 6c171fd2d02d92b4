"""
Key-value persistence for the shop state.

The shop writes each collection as one JSON blob under a fixed key. Any
object with ``get``/``set``/``remove`` can back it; three backends ship here
and ``get_store()`` picks one from the environment.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from pymongo import MongoClient

_logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStore:
    """All keys in a single JSON object file, rewritten on every change.

    Blobs are stored decoded (as UTF-8 text) so the file stays readable.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError:
            _logger.warning("Ignoring corrupt state file %s", self.path)
            return {}
        if not isinstance(data, dict):
            _logger.warning("Ignoring state file %s: not a JSON object", self.path)
            return {}
        return data

    def _dump(self, data: Dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False, indent=2)
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[bytes]:
        value = self._load().get(key)
        return value.encode("utf-8") if value is not None else None

    def set(self, key: str, value: bytes) -> None:
        data = self._load()
        data[key] = value.decode("utf-8")
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class MongoStore:
    """One document per key: ``{"_id": key, "value": <bytes>}``."""

    def __init__(self, collection: Any):
        self.collection = collection

    def get(self, key: str) -> Optional[bytes]:
        doc = self.collection.find_one({"_id": key})
        if not doc:
            return None
        return bytes(doc["value"])

    def set(self, key: str, value: bytes) -> None:
        self.collection.update_one({"_id": key}, {"$set": {"value": value}}, upsert=True)

    def remove(self, key: str) -> None:
        self.collection.delete_one({"_id": key})


def get_store(backend: Optional[str] = None) -> KeyValueStore:
    backend = (backend or os.getenv("STORE_BACKEND", "memory")).lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "file":
        path = os.getenv("STORE_PATH", "shop_state.json")
        _logger.info("Using file store at %s", path)
        return JsonFileStore(path)
    if backend == "mongo":
        database_url = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
        database_name = os.getenv("DATABASE_NAME", "shop")
        client = MongoClient(database_url)
        _logger.info("Using MongoDB store in database %s", database_name)
        return MongoStore(client[database_name]["kv"])
    raise ValueError(f"Unknown store backend: {backend!r}")
