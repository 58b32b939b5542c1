"""
Database access for the inventory service

Documents live in MongoDB when DATABASE_URL and DATABASE_NAME are set and the
server answers a ping, and in a process-local dict otherwise. Both backends
expose the same DocumentStore interface (get, put, update, delete, query,
transaction), so the services never branch on which one is in use.

Collection names: "product", "customer", "order".
"""

import copy
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from errors import StoreUnavailableError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore(ABC):
    """Key-indexed document persistence shared by every backend.

    Subclasses implement the underscore primitives; the public methods add
    timestamps, the ``id`` key on returned documents, and the write journal
    used by ``transaction()``.
    """

    backend = "abstract"
    name: Optional[str] = None

    def __init__(self):
        self._lock = threading.RLock()
        self._journal: Optional[List[Tuple[str, str, Optional[dict]]]] = None

    # Backend primitives

    @abstractmethod
    def new_id(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def _fetch(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    @abstractmethod
    def _write(self, collection: str, doc_id: str, doc: dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def _remove(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def _find(self, collection: str, filter_dict: Dict[str, Any], limit: Optional[int]) -> List[Tuple[str, dict]]:
        raise NotImplementedError

    @abstractmethod
    def count(self, collection: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def collection_names(self) -> List[str]:
        raise NotImplementedError

    # Public interface

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc = self._fetch(collection, doc_id)
        if doc is None:
            return None
        return {"id": doc_id, **doc}

    def put(self, collection: str, data: Union[BaseModel, dict]) -> str:
        """Insert a new document and return its id."""
        if isinstance(data, BaseModel):
            doc = data.model_dump()
        else:
            doc = copy.deepcopy(dict(data))
        doc.pop("id", None)
        now = utc_now()
        doc.setdefault("created_at", now)
        doc["updated_at"] = now
        with self._lock:
            doc_id = self.new_id()
            self._record(collection, doc_id, None)
            self._write(collection, doc_id, doc)
        return doc_id

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> Optional[dict]:
        """Merge top-level fields into a document. Returns None when it does not exist."""
        with self._lock:
            current = self._fetch(collection, doc_id)
            if current is None:
                return None
            self._record(collection, doc_id, current)
            merged = {**current, **copy.deepcopy(changes)}
            merged.pop("id", None)
            merged["updated_at"] = utc_now()
            self._write(collection, doc_id, merged)
        return {"id": doc_id, **merged}

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            current = self._fetch(collection, doc_id)
            if current is None:
                return False
            self._record(collection, doc_id, current)
            return self._remove(collection, doc_id)

    def query(self, collection: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[dict]:
        """Return documents whose top-level fields equal every filter value."""
        return [{"id": doc_id, **doc} for doc_id, doc in self._find(collection, filter_dict or {}, limit)]

    @contextmanager
    def transaction(self) -> Iterator["DocumentStore"]:
        """Run a block of writes as one unit.

        The store lock is held for the whole block, so read-check-write
        sequences of other threads cannot interleave. Every write records the
        prior state of its document; if the block raises, those states are
        restored in reverse order and the exception propagates. Nested calls
        join the outer unit.
        """
        with self._lock:
            if self._journal is not None:
                yield self
                return
            self._journal = []
            try:
                yield self
            except Exception:
                self._rollback()
                raise
            finally:
                self._journal = None

    def _record(self, collection: str, doc_id: str, previous: Optional[dict]) -> None:
        if self._journal is not None:
            self._journal.append((collection, doc_id, copy.deepcopy(previous)))

    def _rollback(self) -> None:
        journal, self._journal = self._journal or [], None
        logger.warning("Rolling back %d write(s)", len(journal))
        try:
            for collection, doc_id, previous in reversed(journal):
                if previous is None:
                    self._remove(collection, doc_id)
                else:
                    self._write(collection, doc_id, previous)
        except StoreUnavailableError:
            logger.exception("Rollback could not be completed")


class MemoryStore(DocumentStore):
    """In-process dict of collections, used when no database is configured."""

    backend = "memory"
    name = "in-memory"

    def __init__(self):
        super().__init__()
        self._collections: Dict[str, Dict[str, dict]] = {}

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def _fetch(self, collection, doc_id):
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def _write(self, collection, doc_id, doc):
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(doc)

    def _remove(self, collection, doc_id):
        return self._collections.get(collection, {}).pop(doc_id, None) is not None

    def _find(self, collection, filter_dict, limit):
        matches = []
        for doc_id, doc in self._collections.get(collection, {}).items():
            if all(doc.get(k) == v for k, v in filter_dict.items()):
                matches.append((doc_id, copy.deepcopy(doc)))
                if limit and len(matches) >= limit:
                    break
        return matches

    def count(self, collection):
        return len(self._collections.get(collection, {}))

    def collection_names(self):
        return [name for name, docs in self._collections.items() if docs]


@contextmanager
def _mongo_errors() -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        raise StoreUnavailableError(f"Database error: {str(e)[:200]}") from e


class MongoStore(DocumentStore):
    """MongoDB collections keyed by ObjectId, exposed as string ids."""

    backend = "mongodb"

    def __init__(self, database):
        super().__init__()
        self.db = database
        self.name = database.name

    def new_id(self) -> str:
        return str(ObjectId())

    def _fetch(self, collection, doc_id):
        if not ObjectId.is_valid(doc_id):
            return None
        with _mongo_errors():
            doc = self.db[collection].find_one({"_id": ObjectId(doc_id)})
        if doc is None:
            return None
        doc.pop("_id", None)
        return doc

    def _write(self, collection, doc_id, doc):
        with _mongo_errors():
            self.db[collection].replace_one({"_id": ObjectId(doc_id)}, doc, upsert=True)

    def _remove(self, collection, doc_id):
        with _mongo_errors():
            res = self.db[collection].delete_one({"_id": ObjectId(doc_id)})
        return res.deleted_count > 0

    def _find(self, collection, filter_dict, limit):
        with _mongo_errors():
            cursor = self.db[collection].find(filter_dict)
            if limit:
                cursor = cursor.limit(limit)
            return [(str(d.pop("_id")), d) for d in cursor]

    def count(self, collection):
        with _mongo_errors():
            return self.db[collection].count_documents({})

    def collection_names(self):
        with _mongo_errors():
            return self.db.list_collection_names()


def connect(url: Optional[str], name: Optional[str]) -> DocumentStore:
    """Pick the backend once at process start."""
    if url and name:
        try:
            client = MongoClient(url, serverSelectionTimeoutMS=5000, tz_aware=True)
            client.admin.command("ping")
            logger.info("Connected to MongoDB database '%s'", name)
            return MongoStore(client[name])
        except PyMongoError as e:
            logger.warning("MongoDB unavailable (%s), using in-memory store", str(e)[:80])
    else:
        logger.info("DATABASE_URL/DATABASE_NAME not set, using in-memory store")
    return MemoryStore()


store: DocumentStore = connect(DATABASE_URL, DATABASE_NAME)


def get_store() -> DocumentStore:
    return store
