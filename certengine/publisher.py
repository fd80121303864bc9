"""
Broadcast publication.

A signed announcement for each hash-bound certificate is fanned out to a
fixed list of independent public log endpoints. All attempts start
together, each with its own timeout, and the publisher waits for every
one to settle; a dead endpoint never stalls or fails the others.

A record counts as published once at least one endpoint accepted the
announcement; ``publication_ref`` is then set and later calls are skipped.
Publication is advisory: endpoints do not agree with each other on
anything and nothing is retried within the same call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence

import httpx

from .canonicalize import canonicalize
from .crypto import KeyPair, sha256_hex, sign_json, verify_json, load_public_key_hex
from .errors import EndpointError, ValidationError
from .renderer import format_long_date
from .schema import (
    Announcement,
    CertificateRecord,
    EndpointOutcome,
    PublicationRef,
    PublishResult,
)
from .store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


# ---------------------------------------------------------------------------
# Announcement
# ---------------------------------------------------------------------------

def verification_url(origin: str, record: CertificateRecord) -> str:
    """``<origin>/verify/<hash-or-id>``; resolves through the verifier."""
    key = record.document_hash or record.id
    return f"{origin.rstrip('/')}/verify/{key}"


def announcement_summary(record: CertificateRecord, url: str) -> str:
    lines = [
        record.certificate_class,
        "",
        f"Issued to: {record.subject_name}",
        f"Course: {record.course_title}",
    ]
    if record.cohort_label:
        lines.append(f"Cohort: {record.cohort_label}")
    lines += [
        f"Date: {format_long_date(record.issue_date)}",
        f"Certificate ID: {record.id}",
        "",
        f"SHA256 Hash: {record.document_hash}",
        "",
        f"Verify: {url}",
    ]
    return "\n".join(lines)


def build_announcement(
    record: CertificateRecord,
    keypair: KeyPair,
    origin: str,
    issuer_name: str = "",
    created_at: Optional[datetime] = None,
) -> Announcement:
    """Build and sign the announcement for a hash-bound record."""
    if not record.document_hash:
        raise ValidationError(
            "document_hash",
            f"certificate {record.id} has no document hash; render and bind it first",
        )
    url = verification_url(origin, record)
    tags = [
        ["certificate-id", record.id],
        ["hash", record.document_hash],
        ["type", "certificate-verification"],
    ]
    if issuer_name:
        tags.append(["issuer", issuer_name])
    tags += [["student", record.subject_name], ["course", record.course_title]]
    if record.cohort_label:
        tags.append(["cohort", record.cohort_label])

    payload = {
        "certificate_id": record.id,
        "document_hash": record.document_hash,
        "issuer_public_key": keypair.public_hex,
        "human_readable_summary": announcement_summary(record, url),
        "verification_url": url,
        "created_at": (created_at or datetime.now(timezone.utc)).isoformat(),
        "tags": tags,
    }
    return Announcement(
        announcement_id=sha256_hex(canonicalize(payload)),
        signature=sign_json(payload, keypair.private_key),
        **payload,
    )


def verify_announcement(announcement: Announcement) -> bool:
    """Check the id digest and the issuer signature of an announcement."""
    payload = announcement.payload()
    if sha256_hex(canonicalize(payload)) != announcement.announcement_id:
        return False
    try:
        pk = load_public_key_hex(announcement.issuer_public_key)
    except ValueError:
        return False
    return verify_json(payload, announcement.signature, pk)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class PublishTransport(Protocol):
    """Delivers one announcement to one endpoint, raising on failure."""

    async def send(self, endpoint: str, announcement: Announcement) -> None: ...


class HttpPublishTransport:
    """POSTs the announcement JSON to each endpoint URL."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient()

    async def send(self, endpoint: str, announcement: Announcement) -> None:
        try:
            response = await self._client.post(
                endpoint, json=announcement.model_dump(mode="json")
            )
        except httpx.HTTPError as e:
            raise EndpointError(endpoint, f"{type(e).__name__}: {e}") from e
        if response.status_code >= 300:
            raise EndpointError(endpoint, f"HTTP {response.status_code}")

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Publisher
# ---------------------------------------------------------------------------

class BroadcastPublisher:

    def __init__(
        self,
        store: RecordStore,
        keypair: KeyPair,
        endpoints: Sequence[str],
        transport: PublishTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        origin: str = "http://localhost:8000",
        issuer_name: str = "",
    ):
        self.store = store
        self.keypair = keypair
        self.endpoints = tuple(endpoints)
        self.transport = transport or HttpPublishTransport()
        self.timeout = timeout
        self.origin = origin
        self.issuer_name = issuer_name
        self._in_flight: set[str] = set()

    async def publish(
        self,
        record: CertificateRecord,
        announcement: Announcement | None = None,
    ) -> PublishResult:
        """Broadcast ``record`` to every endpoint.

        Endpoint failures are reported in the result, never raised. Raises
        ValidationError if the record has no document hash.
        """
        current = await self.store.get(record.id) or record
        ref = current.publication_ref
        if ref is not None:
            logger.info(f"Certificate {current.id} already published, skipping")
            return PublishResult(
                certificate_id=current.id,
                announcement_id=ref.announcement_id,
                published_to=ref.published_to,
                total=ref.total,
                skipped=True,
            )
        if current.id in self._in_flight:
            logger.info(f"Certificate {current.id} is being published, skipping")
            return PublishResult(
                certificate_id=current.id,
                total=len(self.endpoints),
                in_progress=True,
            )

        announcement = announcement or build_announcement(
            current, self.keypair, self.origin, self.issuer_name
        )

        self._in_flight.add(current.id)
        try:
            outcomes = await asyncio.gather(
                *(self._attempt(ep, announcement) for ep in self.endpoints)
            )
            result = PublishResult(
                certificate_id=current.id,
                announcement_id=announcement.announcement_id,
                published_to=sum(1 for o in outcomes if o.success),
                total=len(self.endpoints),
                outcomes=list(outcomes),
            )
            if result.published_to >= 1:
                await self._record_publication(current.id, announcement, result)
        finally:
            self._in_flight.discard(current.id)

        logger.info(
            f"Published {current.id} to {result.published_to}/{result.total} endpoints"
        )
        return result

    async def _attempt(self, endpoint: str, announcement: Announcement) -> EndpointOutcome:
        t0 = time.perf_counter()
        try:
            await asyncio.wait_for(
                self.transport.send(endpoint, announcement), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            error = f"timed out after {self.timeout:.1f}s"
        except Exception as e:
            error = str(e) or type(e).__name__
        else:
            return EndpointOutcome(
                endpoint=endpoint,
                success=True,
                elapsed_ms=(time.perf_counter() - t0) * 1000,
            )
        logger.warning(f"Failed to publish to {endpoint}: {error}")
        return EndpointOutcome(
            endpoint=endpoint,
            success=False,
            error=error,
            elapsed_ms=(time.perf_counter() - t0) * 1000,
        )

    async def _record_publication(
        self, certificate_id: str, announcement: Announcement, result: PublishResult
    ) -> None:
        ref = PublicationRef(
            announcement_id=announcement.announcement_id,
            issuer_public_key=announcement.issuer_public_key,
            published_to=result.published_to,
            total=result.total,
        )

        def _mutate(current: CertificateRecord) -> CertificateRecord:
            if current.publication_ref is not None:
                return current
            return current.model_copy(update={"publication_ref": ref})

        await self.store.update(certificate_id, _mutate)
