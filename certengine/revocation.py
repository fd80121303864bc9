"""Revocation — the only terminal mutation of a certificate record."""

from __future__ import annotations

import logging

from .ids import normalize_certificate_id
from .schema import CertificateRecord, CertificateStatus, utc_now
from .store import RecordStore

logger = logging.getLogger(__name__)


async def revoke(store: RecordStore, certificate_id: str) -> CertificateRecord:
    """Mark a certificate revoked.

    Revoking twice is a successful no-op; ``revoked_at`` keeps the time of
    the first transition. There is no way back to active. Raises
    NotFoundError for an unknown id.
    """
    certificate_id = normalize_certificate_id(certificate_id)
    transitioned = False

    def _mutate(current: CertificateRecord) -> CertificateRecord:
        nonlocal transitioned
        if current.is_revoked:
            return current
        transitioned = True
        return current.model_copy(
            update={"status": CertificateStatus.REVOKED, "revoked_at": utc_now()}
        )

    record = await store.update(certificate_id, _mutate)
    if transitioned:
        logger.info(f"Certificate {certificate_id} has been revoked")
    else:
        logger.info(f"Certificate {certificate_id} was already revoked")
    return record


class RevocationManager:

    def __init__(self, store: RecordStore):
        self.store = store

    async def revoke(self, certificate_id: str) -> bool:
        """Revoke ``certificate_id``; True once the record is revoked."""
        record = await revoke(self.store, certificate_id)
        return record.is_revoked
