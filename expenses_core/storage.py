"""Document store backends for the expense wallet core services."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


def _matches(document: Document, criteria: Dict[str, Any]) -> bool:
    return all(document.get(key) == value for key, value in criteria.items())


class JSONStorage:
    """File-based document store, one JSON list per collection, with crash-safe writes."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def load(self, resource: str) -> List[Document]:
        path = self._base_path / resource
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {path}") from exc

        if not isinstance(payload, list):
            raise PersistenceError(f"Expected list payload in {path}")
        return payload

    def save(self, resource: str, records: Iterable[Document]) -> None:
        path = self._base_path / resource
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(list(records), handle, indent=2)
                handle.flush()
        except OSError as exc:
            logger.error("Failed writing %s: %s", temp_path, exc)
            raise PersistenceError(f"Unable to write to {temp_path}") from exc
        temp_path.replace(path)

    @property
    def base_path(self) -> Path:
        return self._base_path

    # Document operations ------------------------------------------------
    def insert(self, collection: str, document: Document) -> None:
        with self._lock:
            records = self.load(self._resource(collection))
            records.append(dict(document))
            self.save(self._resource(collection), records)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        for record in self.load(self._resource(collection)):
            if record.get("id") == doc_id:
                return record
        return None

    def find(self, collection: str, **criteria: Any) -> List[Document]:
        return [r for r in self.load(self._resource(collection)) if _matches(r, criteria)]

    def replace(self, collection: str, doc_id: str, document: Document) -> bool:
        with self._lock:
            records = self.load(self._resource(collection))
            for index, record in enumerate(records):
                if record.get("id") == doc_id:
                    records[index] = dict(document)
                    self.save(self._resource(collection), records)
                    return True
        return False

    def update_many(
        self,
        collection: str,
        criteria: Dict[str, Any],
        changes: Dict[str, Any],
        ids: Optional[Iterable[str]] = None,
    ) -> int:
        wanted = set(ids) if ids is not None else None
        modified = 0
        with self._lock:
            records = self.load(self._resource(collection))
            for record in records:
                if wanted is not None and record.get("id") not in wanted:
                    continue
                if not _matches(record, criteria):
                    continue
                if all(record.get(key) == value for key, value in changes.items()):
                    continue
                record.update(changes)
                modified += 1
            if modified:
                self.save(self._resource(collection), records)
        return modified

    def delete(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            records = self.load(self._resource(collection))
            for index, record in enumerate(records):
                if record.get("id") == doc_id:
                    removed = records.pop(index)
                    self.save(self._resource(collection), records)
                    return removed
        return None

    @staticmethod
    def _resource(collection: str) -> str:
        return f"{collection}.json"


class MongoStorage:
    """MongoDB-backed document store; record ``id`` is kept in ``_id``."""

    def __init__(self, uri: str, database: str, client: Optional[MongoClient] = None) -> None:
        self._client = client if client is not None else MongoClient(uri, serverSelectionTimeoutMS=5000)
        self._db = self._client[database]

    @staticmethod
    def _to_mongo(document: Document) -> Document:
        payload = dict(document)
        payload["_id"] = payload.pop("id")
        return payload

    @staticmethod
    def _from_mongo(document: Optional[Document]) -> Optional[Document]:
        if document is None:
            return None
        payload = dict(document)
        payload["id"] = str(payload.pop("_id"))
        return payload

    def _run(self, action: str, operation):
        try:
            return operation()
        except PyMongoError as exc:
            logger.error("MongoDB %s failed: %s", action, exc)
            raise PersistenceError(f"MongoDB {action} failed") from exc

    def insert(self, collection: str, document: Document) -> None:
        self._run("insert", lambda: self._db[collection].insert_one(self._to_mongo(document)))

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        found = self._run("read", lambda: self._db[collection].find_one({"_id": doc_id}))
        return self._from_mongo(found)

    def find(self, collection: str, **criteria: Any) -> List[Document]:
        cursor = self._run("query", lambda: list(self._db[collection].find(criteria)))
        return [self._from_mongo(doc) for doc in cursor]

    def replace(self, collection: str, doc_id: str, document: Document) -> bool:
        result = self._run(
            "update",
            lambda: self._db[collection].replace_one({"_id": doc_id}, self._to_mongo(document)),
        )
        return result.matched_count > 0

    def update_many(
        self,
        collection: str,
        criteria: Dict[str, Any],
        changes: Dict[str, Any],
        ids: Optional[Iterable[str]] = None,
    ) -> int:
        query = dict(criteria)
        if ids is not None:
            query["_id"] = {"$in": list(ids)}
        result = self._run(
            "update", lambda: self._db[collection].update_many(query, {"$set": changes})
        )
        return result.modified_count

    def delete(self, collection: str, doc_id: str) -> Optional[Document]:
        removed = self._run(
            "delete", lambda: self._db[collection].find_one_and_delete({"_id": doc_id})
        )
        return self._from_mongo(removed)


def open_store(settings) -> Union[JSONStorage, MongoStorage]:
    """Create the backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "mongodb":
        if not settings.mongodb_uri:
            raise PersistenceError("MONGODB_URI must be set for the mongodb storage backend")
        logger.info("Using MongoDB storage (database %s)", settings.mongodb_database)
        return MongoStorage(settings.mongodb_uri, settings.mongodb_database)
    logger.info("Using JSON storage in %s", settings.data_dir)
    return JSONStorage(settings.data_dir)
