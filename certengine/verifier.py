"""
Certificate verification.

Three entry points, all read-only:

  verify_by_id(id)          signature recomputation over the stored fields
  verify_by_hash(hash)      document hash lookup, then the same checks
  verify_by_document(bytes) hash the bytes, then verify_by_hash

Revocation always wins: a revoked record is reported invalid even when its
signature and hash still match. Not-found and tampered are ordinary
results, not exceptions. Two records sharing one document hash is an
integrity violation and raises HashCollisionError.
"""

from __future__ import annotations

import logging

from .binder import hash_document
from .errors import HashCollisionError
from .ids import normalize_certificate_id
from .schema import (
    CertificateRecord,
    VerificationMode,
    VerificationReason,
    VerificationResult,
)
from .signer import verify_record
from .store import RecordStore

logger = logging.getLogger(__name__)

_MESSAGES = {
    VerificationReason.AUTHENTIC: "Certificate is authentic",
    VerificationReason.REVOKED: "This certificate has been revoked and is no longer valid.",
    VerificationReason.TAMPERED: "Certificate data has been tampered with",
    VerificationReason.NOT_FOUND: "Certificate ID not found",
    VerificationReason.HASH_NOT_FOUND: (
        "Document hash not found in our records. This file may not be an "
        "original certificate or may have been modified."
    ),
}


def _result(
    reason: VerificationReason,
    mode: VerificationMode,
    record: CertificateRecord | None = None,
    document_hash: str | None = None,
) -> VerificationResult:
    return VerificationResult(
        valid=reason == VerificationReason.AUTHENTIC,
        reason=reason,
        message=_MESSAGES[reason],
        mode=mode,
        record=record,
        document_hash=document_hash,
    )


def check_record(record: CertificateRecord) -> VerificationReason:
    """Revocation first, then signature recomputation."""
    if record.is_revoked:
        return VerificationReason.REVOKED
    if not verify_record(record):
        return VerificationReason.TAMPERED
    return VerificationReason.AUTHENTIC


class Verifier:

    def __init__(self, store: RecordStore):
        self.store = store

    async def verify_by_id(self, certificate_id: str) -> VerificationResult:
        certificate_id = normalize_certificate_id(certificate_id)
        record = await self.store.get(certificate_id)
        if record is None:
            return _result(VerificationReason.NOT_FOUND, VerificationMode.ID)
        reason = check_record(record)
        if reason == VerificationReason.TAMPERED:
            logger.warning(f"Signature mismatch for {certificate_id}")
        return _result(reason, VerificationMode.ID, record)

    async def verify_by_hash(
        self, document_hash: str, mode: VerificationMode = VerificationMode.HASH
    ) -> VerificationResult:
        document_hash = document_hash.strip().lower()
        matches = await self.store.find_by_hash(document_hash)
        if not matches:
            return _result(
                VerificationReason.HASH_NOT_FOUND, mode, document_hash=document_hash
            )
        if len(matches) > 1:
            ids = sorted(r.id for r in matches)
            logger.error(f"Document hash collision: {document_hash} owned by {ids}")
            raise HashCollisionError(document_hash, ids)

        record = matches[0]
        reason = check_record(record)
        if reason == VerificationReason.TAMPERED:
            logger.warning(f"Signature mismatch for {record.id} (found by hash)")
        return _result(reason, mode, record, document_hash)

    async def verify_by_document(self, document: bytes) -> VerificationResult:
        return await self.verify_by_hash(
            hash_document(document), mode=VerificationMode.DOCUMENT
        )
