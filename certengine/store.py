"""
Record store — the single source of truth for certificate records.

The engine only talks to the abstract :class:`RecordStore`. Two backends
ship with it:

  InMemoryRecordStore  dict-backed, used by tests and the API default
  JsonFileRecordStore  one JSON document on disk, used by the CLI

Concurrency policy: ``update`` holds a per-id ``asyncio.Lock`` for the whole
read-mutate-write cycle, so a revoke racing a hash bind on the same record
is serialized and each mutator sees the other's result. Writers to
different ids never block each other. Records are never deleted.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable

import pydantic

from .errors import (
    DuplicateIdError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from .schema import CertificateRecord

logger = logging.getLogger(__name__)

Mutator = Callable[[CertificateRecord], CertificateRecord]


def coerce_record(record: CertificateRecord | dict[str, Any]) -> CertificateRecord:
    """Accept a record or a raw mapping; reject anything missing required fields."""
    if isinstance(record, CertificateRecord):
        return record
    try:
        return CertificateRecord.model_validate(record)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "record"
        raise ValidationError(field, f"invalid certificate record: {first.get('msg')}") from e


class RecordStore(ABC):
    """Persistent mapping from certificate id to record, with per-key atomicity."""

    @abstractmethod
    async def check(self) -> None:
        """Raise StoreUnavailableError if the backend cannot be used."""

    @abstractmethod
    async def get(self, certificate_id: str) -> CertificateRecord | None: ...

    @abstractmethod
    async def put(self, record: CertificateRecord | dict[str, Any]) -> CertificateRecord:
        """Insert a new record. Raises DuplicateIdError if the id exists."""

    @abstractmethod
    async def update(self, certificate_id: str, mutator: Mutator) -> CertificateRecord:
        """Atomically replace a record with ``mutator(current)``.

        Raises NotFoundError for an unknown id. The mutator must keep
        ``id`` and ``signature``; returning the same object skips the write.
        """

    @abstractmethod
    async def list(self) -> list[CertificateRecord]: ...

    async def find_by_hash(self, document_hash: str) -> list[CertificateRecord]:
        """All records bound to ``document_hash`` (more than one is a collision)."""
        return [r for r in await self.list() if r.document_hash == document_hash]


class InMemoryRecordStore(RecordStore):

    def __init__(self, records: list[CertificateRecord] | None = None):
        self._records: dict[str, CertificateRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._insert_lock = asyncio.Lock()
        for r in records or []:
            self._records[r.id] = r

    async def check(self) -> None:
        return None

    async def get(self, certificate_id: str) -> CertificateRecord | None:
        return self._records.get(certificate_id)

    async def put(self, record: CertificateRecord | dict[str, Any]) -> CertificateRecord:
        record = coerce_record(record)
        async with self._insert_lock:
            if record.id in self._records:
                raise DuplicateIdError(record.id)
            self._records[record.id] = record
            await self._persist()
        return record

    async def update(self, certificate_id: str, mutator: Mutator) -> CertificateRecord:
        if certificate_id not in self._records:
            raise NotFoundError(certificate_id)
        async with self._locks.setdefault(certificate_id, asyncio.Lock()):
            current = self._records[certificate_id]
            updated = mutator(current)
            if updated is current:
                return current
            updated = coerce_record(updated.model_dump())
            if updated.id != current.id or updated.signature != current.signature:
                raise ValueError("record mutators must not change id or signature")
            self._records[certificate_id] = updated
            await self._persist()
            return updated

    async def list(self) -> list[CertificateRecord]:
        return list(self._records.values())

    async def _persist(self) -> None:
        """Hook for durable subclasses; called with the write lock held."""
        return None


class JsonFileRecordStore(InMemoryRecordStore):
    """Keeps every record in one JSON file, rewritten atomically on change."""

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self._write_lock = asyncio.Lock()
        self._loaded = False

    async def check(self) -> None:
        directory = self.path.parent if str(self.path.parent) else Path(".")
        if not directory.is_dir():
            raise StoreUnavailableError(f"store directory does not exist: {directory}")
        if not os.access(directory, os.W_OK):
            raise StoreUnavailableError(f"store directory is not writable: {directory}")
        if not self._loaded:
            await asyncio.to_thread(self._load)

    def _load(self) -> None:
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                records = [
                    CertificateRecord.model_validate(raw)
                    for raw in data.get("records", {}).values()
                ]
            except (OSError, ValueError) as e:
                raise StoreUnavailableError(f"cannot read store {self.path}: {e}") from e
            self._records = {r.id: r for r in records}
            logger.info(f"Loaded {len(records)} certificate records from {self.path}")
        self._loaded = True

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.check()

    async def get(self, certificate_id: str) -> CertificateRecord | None:
        await self._ensure_loaded()
        return await super().get(certificate_id)

    async def put(self, record: CertificateRecord | dict[str, Any]) -> CertificateRecord:
        await self._ensure_loaded()
        return await super().put(record)

    async def update(self, certificate_id: str, mutator: Mutator) -> CertificateRecord:
        await self._ensure_loaded()
        return await super().update(certificate_id, mutator)

    async def list(self) -> list[CertificateRecord]:
        await self._ensure_loaded()
        return await super().list()

    async def _persist(self) -> None:
        snapshot = {
            "records": {
                rid: r.model_dump(mode="json") for rid, r in self._records.items()
            }
        }
        async with self._write_lock:
            await asyncio.to_thread(self._write, snapshot)

    def _write(self, snapshot: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".certs-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise StoreUnavailableError(f"cannot write store {self.path}: {e}") from e
