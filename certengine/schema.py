"""
Certificate schema — Pydantic v2 models.

  CertificateRecord  the stored, signed certificate (one per id)
  VerificationResult answer of every verifier entry point
  Announcement       signed note broadcast to public log endpoints
  BatchReport        per-row outcomes of a batch issuance

Hashes are lower-case SHA-256 hex digests. Timestamps are timezone-aware
UTC datetimes; ``issue_date`` is a calendar date because it is signed.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .crypto import is_sha256_hex
from .ids import ID_PATTERN

DEFAULT_CERTIFICATE_CLASS = "Certificate of Completion"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CertificateStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


class VerificationReason(str, Enum):
    AUTHENTIC = "Certificate is authentic"
    REVOKED = "revoked"
    TAMPERED = "tampered"
    NOT_FOUND = "not found"
    HASH_NOT_FOUND = "hash not found"


class VerificationMode(str, Enum):
    ID = "id"
    HASH = "hash"
    DOCUMENT = "document"


# ---------------------------------------------------------------------------
# Certificate record
# ---------------------------------------------------------------------------

class PublicationRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    announcement_id: str
    issuer_public_key: str  # hex Ed25519 public key
    published_at: datetime = Field(default_factory=utc_now)
    published_to: int = 0
    total: int = 0


class CertificateRecord(BaseModel):
    """A signed certificate.

    ``id``, the display fields and ``issue_date`` are sealed by
    ``signature``; editing any of them makes the record verify as tampered.
    ``document_hash`` is attached once after the first successful render.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    subject_name: str
    course_title: str
    cohort_label: str = ""
    certificate_class: str = DEFAULT_CERTIFICATE_CLASS
    issue_date: date
    signature: str
    document_hash: Optional[str] = None
    document_hash_bound_at: Optional[datetime] = None
    status: CertificateStatus = CertificateStatus.ACTIVE
    revoked_at: Optional[datetime] = None
    publication_ref: Optional[PublicationRef] = None
    template_id: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("id")
    @classmethod
    def _check_id(cls, v: str) -> str:
        if not ID_PATTERN.match(v):
            raise ValueError(f"malformed certificate id: {v!r}")
        return v

    @field_validator("subject_name", "course_title")
    @classmethod
    def _required_text(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("signature")
    @classmethod
    def _check_signature(cls, v: str) -> str:
        if not is_sha256_hex(v):
            raise ValueError("signature must be a SHA-256 hex digest")
        return v

    @field_validator("document_hash")
    @classmethod
    def _check_hash(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_sha256_hex(v):
            raise ValueError("document_hash must be a SHA-256 hex digest")
        return v

    @property
    def is_revoked(self) -> bool:
        return self.status == CertificateStatus.REVOKED

    @property
    def is_published(self) -> bool:
        return self.publication_ref is not None


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

class VerificationResult(BaseModel):
    valid: bool
    reason: VerificationReason
    message: str = ""
    mode: VerificationMode = VerificationMode.ID
    record: Optional[CertificateRecord] = None
    document_hash: Optional[str] = None  # hash that was looked up


# ---------------------------------------------------------------------------
# Publication
# ---------------------------------------------------------------------------

class Announcement(BaseModel):
    """Signed note sent to every broadcast endpoint."""

    announcement_id: str  # SHA-256 of the canonical payload
    certificate_id: str
    document_hash: str
    issuer_public_key: str
    human_readable_summary: str
    verification_url: str
    created_at: str
    tags: list[list[str]] = Field(default_factory=list)
    signature: str  # base64 Ed25519 over the canonical payload

    def payload(self) -> dict:
        """The signed part (everything except id and signature)."""
        return self.model_dump(mode="json", exclude={"announcement_id", "signature"})


class EndpointOutcome(BaseModel):
    endpoint: str
    success: bool
    error: str = ""
    elapsed_ms: float = 0.0


class PublishResult(BaseModel):
    certificate_id: str
    announcement_id: str = ""
    published_to: int = 0
    total: int = 0
    outcomes: list[EndpointOutcome] = Field(default_factory=list)
    skipped: bool = False  # record was already published
    in_progress: bool = False  # another call is publishing this record

    @property
    def published(self) -> bool:
        return self.skipped or self.published_to >= 1

    @property
    def errors(self) -> list[EndpointOutcome]:
        return [o for o in self.outcomes if not o.success]


# ---------------------------------------------------------------------------
# Batch issuance
# ---------------------------------------------------------------------------

class BatchPhase(str, Enum):
    VALIDATING = "validating"
    ISSUING = "issuing"
    DONE = "done"


class RowStage(str, Enum):
    VALIDATE = "validate"
    MINT = "mint"
    PERSIST = "persist"
    RENDER = "render"
    BIND = "bind"
    PUBLISH = "publish"
    COMPLETE = "complete"


class CandidateRow(BaseModel):
    row_index: int
    name: str = ""
    email: str = ""
    course: str = ""
    cohort: str = ""
    certificate_class: str = ""
    issue_date: str = ""  # ISO date; empty means "today"


class RowOutcome(BaseModel):
    row_index: int
    ok: bool
    stage: RowStage
    certificate_id: Optional[str] = None
    document_hash: Optional[str] = None
    attempted: bool = False  # passed validation and issuance started
    error: str = ""
    publish: Optional[PublishResult] = None


class BatchReport(BaseModel):
    phase: BatchPhase = BatchPhase.DONE
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    rows: list[RowOutcome] = Field(default_factory=list)

    @property
    def issued_ids(self) -> list[str]:
        return [r.certificate_id for r in self.rows if r.ok and r.certificate_id]


class ProgressEvent(BaseModel):
    sequence: int
    phase: BatchPhase
    row_index: Optional[int] = None
    stage: Optional[RowStage] = None
    status: str  # "started" | "completed" | "failed" | "info"
    message: str = ""
