"""
Certificate engine — wires store, signer, binder, verifier, revocation,
publisher and batch orchestrator together behind one object.

Only a store that is unusable at startup is fatal; everything after that
is reported per certificate or per row.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Optional, Sequence

from .batch import BatchOrchestrator, ProgressCallback, parse_issue_date
from .binder import bind_hash
from .config import EngineConfig
from .crypto import KeyPair, generate_keypair, keypair_from_hex
from .errors import NotFoundError, ValidationError
from .ids import normalize_certificate_id
from .publisher import BroadcastPublisher, PublishTransport
from .renderer import DocumentRenderer, Template, TextRenderer
from .revocation import RevocationManager
from .schema import (
    BatchReport,
    CandidateRow,
    CertificateRecord,
    PublishResult,
    VerificationResult,
)
from .store import InMemoryRecordStore, JsonFileRecordStore, RecordStore
from .verifier import Verifier

logger = logging.getLogger(__name__)


class CertificateEngine:

    def __init__(
        self,
        store: RecordStore | None = None,
        renderer: DocumentRenderer | None = None,
        config: EngineConfig | None = None,
        keypair: KeyPair | None = None,
        transport: PublishTransport | None = None,
    ):
        self.config = config or EngineConfig()
        if store is None:
            store = (
                JsonFileRecordStore(self.config.store_path)
                if self.config.store_path
                else InMemoryRecordStore()
            )
        self.store = store
        if keypair is None:
            keypair = (
                keypair_from_hex(self.config.issuer_key_hex)
                if self.config.issuer_key_hex
                else generate_keypair()
            )
        self.keypair = keypair
        self.renderer = renderer or TextRenderer(origin=self.config.verification_origin)

        self.verifier = Verifier(store)
        self.revocation = RevocationManager(store)
        self.publisher = BroadcastPublisher(
            store,
            keypair,
            self.config.publish_endpoints,
            transport=transport,
            timeout=self.config.publish_timeout,
            origin=self.config.verification_origin,
            issuer_name=self.config.issuer_name,
        )
        self.orchestrator = BatchOrchestrator(
            store,
            self.renderer,
            self.publisher,
            id_prefix=self.config.id_prefix,
            render_retries=self.config.render_retries,
            id_retries=self.config.id_retries,
            default_course=self.config.default_course,
            default_cohort=self.config.default_cohort,
        )

    async def start(self) -> None:
        """Check the store; StoreUnavailableError here is fatal."""
        await self.store.check()
        logger.info(f"Certificate engine ready ({type(self.store).__name__})")

    # ── Issuance ──────────────────────────────────────────────────────────

    async def issue(
        self,
        subject_name: str,
        course_title: str,
        cohort_label: str = "",
        certificate_class: str = "",
        issue_date: date | str | None = None,
        template: Optional[Template] = None,
        publish: bool = False,
    ) -> CertificateRecord:
        """Issue one certificate: persist, render, bind and optionally publish.

        A render failure raises RenderError; the signed record stays stored
        without a document hash.
        """
        if not subject_name or not subject_name.strip():
            raise ValidationError("subject_name", "Missing Name")
        if not course_title or not course_title.strip():
            raise ValidationError("course_title", "Missing Course")
        record = await self.orchestrator.persist_new(
            subject_name=subject_name,
            course_title=course_title,
            cohort_label=cohort_label or self.config.default_cohort,
            certificate_class=certificate_class,
            issue_date=parse_issue_date(issue_date),
            template_id=template.template_id if template else "",
        )
        record = await self.render_and_bind(record.id, template)
        if publish:
            await self.orchestrator.publish(record)
            record = await self.get(record.id)
        return record

    async def run_batch(
        self,
        rows: Sequence[CandidateRow | dict[str, Any]],
        template: Optional[Template] = None,
        publish: bool = True,
        cancel: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchReport:
        return await self.orchestrator.run(
            rows, template=template, publish=publish,
            cancel=cancel, on_progress=on_progress,
        )

    async def render(self, certificate_id: str, template: Optional[Template] = None) -> bytes:
        """Render the stored record again (deterministic, so the hash matches)."""
        record = await self.get(certificate_id)
        return await self.orchestrator.render_document(template, record)

    async def render_and_bind(
        self, certificate_id: str, template: Optional[Template] = None
    ) -> CertificateRecord:
        document = await self.render(certificate_id, template)
        return await bind_hash(self.store, normalize_certificate_id(certificate_id), document)

    async def bind_document(self, certificate_id: str, document: bytes) -> CertificateRecord:
        return await bind_hash(self.store, normalize_certificate_id(certificate_id), document)

    async def publish(self, certificate_id: str) -> PublishResult:
        return await self.publisher.publish(await self.get(certificate_id))

    # ── Lookup, verification, revocation ──────────────────────────────────

    async def get(self, certificate_id: str) -> CertificateRecord:
        certificate_id = normalize_certificate_id(certificate_id)
        record = await self.store.get(certificate_id)
        if record is None:
            raise NotFoundError(certificate_id)
        return record

    async def list(self) -> list[CertificateRecord]:
        return await self.store.list()

    async def verify_by_id(self, certificate_id: str) -> VerificationResult:
        return await self.verifier.verify_by_id(certificate_id)

    async def verify_by_hash(self, document_hash: str) -> VerificationResult:
        return await self.verifier.verify_by_hash(document_hash)

    async def verify_by_document(self, document: bytes) -> VerificationResult:
        return await self.verifier.verify_by_document(document)

    async def revoke(self, certificate_id: str) -> bool:
        return await self.revocation.revoke(certificate_id)

    async def aclose(self) -> None:
        close = getattr(self.publisher.transport, "aclose", None)
        if close is not None:
            await close()
