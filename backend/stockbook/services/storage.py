# Overview: Durable store for whole-object JSON documents and append-only transaction files.

"""
Stockbook Durable Store Invariants (authoritative)

Documents:
- One JSON object per aggregate key ("products", "suppliers", "balances", "payables").
- Writes replace the whole document atomically (temp file, then rename).
- A missing document reads as {}. A corrupt document ALSO reads as {}: the
  failure is logged and counted on store.corrupt_reads, never raised. This
  keeps reads available at the risk of silently dropping a damaged document.

Transactions:
- One immutable file per ledger entry under transactions/.
- File names are "<13-digit zero padded ms timestamp>_<uuid hex>.json", so
  lexicographic name order equals creation order.
- Only ledger_service may rewrite an existing transaction, and only to
  decrement a purchase lot's "remaining" field.

Every method is a coroutine; each storage touch is a suspension point where
other requests may interleave. Mutual exclusion is the caller's job (see
concurrency.LockManager).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from ..amounts import json_default
from ..errors import CorruptDocumentError
from ..time_utils import MonotonicClock
from .concurrency import FileLockManager, LockManager, MemoryLockManager

logger = logging.getLogger(__name__)

TRANSACTIONS_DIR = "transactions"
LOCKS_DIR = "locks"


def dump_json(obj: Any) -> str:
    return json.dumps(obj, indent=2, default=json_default)


def transaction_file_name(timestamp: int) -> str:
    return f"{int(timestamp):013d}_{uuid.uuid4().hex}.json"


class DocumentStore:
    """Interface shared by the on-disk store and the in-memory test double."""

    kind = "abstract"

    def __init__(self):
        self.corrupt_reads = 0

    def _decode(self, text: str | None, what: str) -> dict | None:
        if text is None:
            return None
        try:
            obj = json.loads(text)
            if not isinstance(obj, dict):
                raise CorruptDocumentError(f"{what} is not a JSON object")
            return obj
        except (ValueError, CorruptDocumentError) as exc:
            self.corrupt_reads += 1
            logger.warning("Corrupt %s treated as empty (%s); corrupt_reads=%d", what, exc, self.corrupt_reads)
            return None

    async def read(self, key: str) -> dict:
        raise NotImplementedError

    async def write(self, key: str, document: Mapping) -> None:
        raise NotImplementedError

    async def append_transaction(self, record: Mapping) -> str:
        raise NotImplementedError

    async def list_transactions(self) -> list[str]:
        raise NotImplementedError

    async def read_transaction(self, name: str) -> dict | None:
        raise NotImplementedError

    async def rewrite_transaction(self, name: str, record: Mapping) -> None:
        raise NotImplementedError

    def describe(self) -> dict:
        return {"kind": self.kind, "corrupt_reads": self.corrupt_reads}


class JsonFileStore(DocumentStore):
    """
    Flat-file store under a data directory:

        data/products.json
        data/suppliers.json
        data/balances.json
        data/payables.json
        data/transactions/0001718000000000_<hex>.json
        data/locks/
    """

    kind = "file"

    def __init__(self, data_dir: str):
        super().__init__()
        self.data_dir = data_dir
        self.transactions_dir = os.path.join(data_dir, TRANSACTIONS_DIR)
        os.makedirs(self.transactions_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{key}.json")

    @staticmethod
    def _read_text(path: str) -> str | None:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    @staticmethod
    def _atomic_write(path: str, text: str) -> None:
        tmp = f"{path}.tmp.{os.getpid()}.{uuid.uuid4().hex[:8]}"
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp, path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

    async def read(self, key: str) -> dict:
        text = await asyncio.to_thread(self._read_text, self._path(key))
        return self._decode(text, f"document {key!r}") or {}

    async def write(self, key: str, document: Mapping) -> None:
        await asyncio.to_thread(self._atomic_write, self._path(key), dump_json(document))

    async def append_transaction(self, record: Mapping) -> str:
        name = transaction_file_name(record["timestamp"])
        path = os.path.join(self.transactions_dir, name)
        await asyncio.to_thread(self._atomic_write, path, dump_json(record))
        return name

    async def list_transactions(self) -> list[str]:
        names = await asyncio.to_thread(os.listdir, self.transactions_dir)
        # skips in-flight temp files ("<name>.json.tmp.<pid>.<hex>")
        return sorted(n for n in names if n.endswith(".json"))

    async def read_transaction(self, name: str) -> dict | None:
        text = await asyncio.to_thread(self._read_text, os.path.join(self.transactions_dir, name))
        return self._decode(text, f"transaction {name!r}")

    async def rewrite_transaction(self, name: str, record: Mapping) -> None:
        path = os.path.join(self.transactions_dir, name)
        await asyncio.to_thread(self._atomic_write, path, dump_json(record))

    def describe(self) -> dict:
        info = super().describe()
        info["data_dir"] = self.data_dir
        return info


class MemoryStore(DocumentStore):
    """
    In-process store with the same semantics as JsonFileStore.

    Values are kept as serialized JSON text so callers never share mutable
    state with the store, and tests can plant corrupt text directly in
    `documents` or `transactions`.
    """

    kind = "memory"

    def __init__(self):
        super().__init__()
        self.documents: dict[str, str] = {}
        self.transactions: dict[str, str] = {}
        self._mutex = threading.Lock()

    async def read(self, key: str) -> dict:
        await asyncio.sleep(0)
        with self._mutex:
            text = self.documents.get(key)
        return self._decode(text, f"document {key!r}") or {}

    async def write(self, key: str, document: Mapping) -> None:
        text = dump_json(document)
        await asyncio.sleep(0)
        with self._mutex:
            self.documents[key] = text

    async def append_transaction(self, record: Mapping) -> str:
        name = transaction_file_name(record["timestamp"])
        text = dump_json(record)
        await asyncio.sleep(0)
        with self._mutex:
            self.transactions[name] = text
        return name

    async def list_transactions(self) -> list[str]:
        await asyncio.sleep(0)
        with self._mutex:
            return sorted(self.transactions)

    async def read_transaction(self, name: str) -> dict | None:
        await asyncio.sleep(0)
        with self._mutex:
            text = self.transactions.get(name)
        return self._decode(text, f"transaction {name!r}")

    async def rewrite_transaction(self, name: str, record: Mapping) -> None:
        text = dump_json(record)
        await asyncio.sleep(0)
        with self._mutex:
            self.transactions[name] = text


@dataclass
class StorageContext:
    """
    Everything a service call needs, built once at startup and passed in
    explicitly as the first argument of every service function.
    """

    store: DocumentStore
    locks: LockManager
    clock: Callable[[], int]
    default_warehouse: str = "default"
    default_costing_method: str = "FIFO"
    recent_transactions_limit: int = 200


def build_context(settings: Mapping[str, Any]) -> StorageContext:
    """Build a StorageContext from Flask-style STOCKBOOK_* settings."""
    lock_options = dict(
        retries=int(settings.get("STOCKBOOK_LOCK_RETRIES", 5)),
        min_timeout=float(settings.get("STOCKBOOK_LOCK_MIN_TIMEOUT", 0.02)),
        factor=float(settings.get("STOCKBOOK_LOCK_FACTOR", 2)),
    )

    backend = settings.get("STOCKBOOK_STORAGE", "file")
    if backend == "memory":
        store = MemoryStore()
        locks = MemoryLockManager(**lock_options)
    elif backend == "file":
        data_dir = settings["STOCKBOOK_DATA_DIR"]
        store = JsonFileStore(data_dir)
        locks = FileLockManager(os.path.join(data_dir, LOCKS_DIR), **lock_options)
    else:
        raise ValueError(f"Unknown STOCKBOOK_STORAGE backend: {backend!r}")

    return StorageContext(
        store=store,
        locks=locks,
        clock=MonotonicClock(),
        default_warehouse=settings.get("STOCKBOOK_DEFAULT_WAREHOUSE", "default"),
        default_costing_method=settings.get("STOCKBOOK_DEFAULT_COSTING_METHOD", "FIFO"),
        recent_transactions_limit=int(settings.get("STOCKBOOK_RECENT_TRANSACTIONS_LIMIT", 200)),
    )
