"""
Document hash binding.

After a certificate is rendered, the SHA-256 of the exact document bytes is
attached to its record. That hash is what "verify by file" and "verify by
hash" look up, so it is written once: binding the same hash again is a
no-op, binding a different one is a conflict.
"""

from __future__ import annotations

import logging

from .crypto import sha256_hex
from .errors import HashConflictError
from .schema import CertificateRecord, utc_now
from .store import RecordStore

logger = logging.getLogger(__name__)


def hash_document(document: bytes) -> str:
    """Content hash of rendered document bytes (lower-case hex)."""
    if not isinstance(document, (bytes, bytearray, memoryview)):
        raise TypeError(f"document must be bytes, got {type(document).__name__}")
    return sha256_hex(bytes(document))


async def bind_hash(
    store: RecordStore, certificate_id: str, document: bytes
) -> CertificateRecord:
    """Attach the content hash of ``document`` to the record.

    Raises NotFoundError for an unknown id and HashConflictError when the
    record is already bound to a different hash.
    """
    return await bind_digest(store, certificate_id, hash_document(document))


async def bind_digest(
    store: RecordStore, certificate_id: str, document_hash: str
) -> CertificateRecord:
    """Like :func:`bind_hash` for a hash computed elsewhere."""
    document_hash = document_hash.strip().lower()

    def _mutate(current: CertificateRecord) -> CertificateRecord:
        if current.document_hash == document_hash:
            return current
        if current.document_hash is not None:
            raise HashConflictError(current.id, current.document_hash, document_hash)
        return current.model_copy(
            update={"document_hash": document_hash, "document_hash_bound_at": utc_now()}
        )

    try:
        record = await store.update(certificate_id, _mutate)
    except HashConflictError as e:
        logger.error(f"Refusing hash rebind: {e}")
        raise
    logger.info(f"Bound document hash {document_hash[:16]}... to {certificate_id}")
    return record
