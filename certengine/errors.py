"""
Error hierarchy for the certificate engine.

  ValidationError   missing/malformed input; per-row in batches, never fatal
  NotFoundError     unknown id or hash; verification turns it into a result
  ConflictError     data-integrity concern, logged loudly
  ExternalFailure   renderer, store or publish endpoint misbehaved

Tamper detection is not an error: the verifier reports it as an ordinary
invalid result.
"""

from __future__ import annotations


class CertificateError(RuntimeError):
    """Base for all engine errors."""


class ValidationError(CertificateError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class NotFoundError(CertificateError):
    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(message or f"certificate not found: {key}")
        self.key = key


class ConflictError(CertificateError):
    """Base for integrity conflicts that need manual attention."""


class DuplicateIdError(ConflictError):
    def __init__(self, certificate_id: str) -> None:
        super().__init__(f"certificate id already exists: {certificate_id}")
        self.certificate_id = certificate_id


class HashConflictError(ConflictError):
    """A different document hash was offered for an already-bound record."""

    def __init__(self, certificate_id: str, bound_hash: str, offered_hash: str) -> None:
        super().__init__(
            f"certificate {certificate_id} is bound to {bound_hash[:16]}..., "
            f"refusing to rebind to {offered_hash[:16]}..."
        )
        self.certificate_id = certificate_id
        self.bound_hash = bound_hash
        self.offered_hash = offered_hash


class HashCollisionError(ConflictError):
    """More than one record claims the same document hash."""

    def __init__(self, document_hash: str, certificate_ids: list[str]) -> None:
        super().__init__(
            f"document hash {document_hash[:16]}... is owned by "
            f"{len(certificate_ids)} records: {', '.join(certificate_ids)}"
        )
        self.document_hash = document_hash
        self.certificate_ids = certificate_ids


class ExternalFailure(CertificateError):
    """Base for failures of collaborators outside the engine."""


class RenderError(ExternalFailure):
    pass


class StoreUnavailableError(ExternalFailure):
    pass


class EndpointError(ExternalFailure):
    def __init__(self, endpoint: str, message: str) -> None:
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint


class BatchCancelled(CertificateError):
    """Raised inside a batch row when the cancellation signal is set."""
