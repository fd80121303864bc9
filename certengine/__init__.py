"""Certificate engine — canonical signing, hash binding, verification,
revocation, batch issuance and broadcast publication."""

from .schema import (
    Announcement,
    BatchPhase,
    BatchReport,
    CandidateRow,
    CertificateRecord,
    CertificateStatus,
    PublicationRef,
    PublishResult,
    RowOutcome,
    VerificationReason,
    VerificationResult,
)
from .errors import (
    CertificateError,
    ConflictError,
    ExternalFailure,
    HashCollisionError,
    HashConflictError,
    NotFoundError,
    RenderError,
    StoreUnavailableError,
    ValidationError,
)
from .config import EngineConfig
from .engine import CertificateEngine
from .store import InMemoryRecordStore, JsonFileRecordStore, RecordStore

__all__ = [
    "Announcement",
    "BatchPhase",
    "BatchReport",
    "CandidateRow",
    "CertificateRecord",
    "CertificateStatus",
    "PublicationRef",
    "PublishResult",
    "RowOutcome",
    "VerificationReason",
    "VerificationResult",
    "CertificateError",
    "ConflictError",
    "ExternalFailure",
    "HashCollisionError",
    "HashConflictError",
    "NotFoundError",
    "RenderError",
    "StoreUnavailableError",
    "ValidationError",
    "EngineConfig",
    "CertificateEngine",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "RecordStore",
]
