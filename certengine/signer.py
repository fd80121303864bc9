"""
Canonical signer.

The signature of a certificate is SHA-256 over a fixed-order compact JSON
encoding of exactly these fields:

    id, studentName, cohort, courseType, certificateType, issueDate

Key names and order are part of the signed contract: every certificate
issued so far was sealed with them, so they cannot be renamed or reordered.
An empty certificate class is replaced by ``"Certificate of Completion"``
before encoding, at signing and at verification time alike.

This is tamper evidence, not authentication. Anyone can recompute the
digest; what it detects is a stored record whose sealed fields changed
after issuance. A wholly fabricated record written straight into the store
with a matching digest is not detected.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from .canonicalize import canonicalize_ordered
from .crypto import sha256_hex
from .schema import DEFAULT_CERTIFICATE_CLASS, CertificateRecord


@dataclass(frozen=True)
class SignedFields:
    """The sealed subset of a certificate."""
    id: str
    subject_name: str
    course_title: str
    cohort_label: str
    certificate_class: str
    issue_date: date

    @classmethod
    def from_record(cls, record: CertificateRecord) -> "SignedFields":
        return cls(
            id=record.id,
            subject_name=record.subject_name,
            course_title=record.course_title,
            cohort_label=record.cohort_label,
            certificate_class=record.certificate_class,
            issue_date=record.issue_date,
        )


def canonical_payload(fields: SignedFields) -> bytes:
    """Return the exact bytes that get hashed into the signature."""
    pairs: list[tuple[str, Any]] = [
        ("id", fields.id),
        ("studentName", fields.subject_name),
        ("cohort", fields.cohort_label),
        ("courseType", fields.course_title),
        ("certificateType", fields.certificate_class or DEFAULT_CERTIFICATE_CLASS),
        ("issueDate", fields.issue_date.isoformat()),
    ]
    return canonicalize_ordered(pairs)


def sign(fields: SignedFields) -> str:
    return sha256_hex(canonical_payload(fields))


def verify(fields: SignedFields, signature: str) -> bool:
    return sign(fields) == signature


def sign_record(record: CertificateRecord) -> str:
    return sign(SignedFields.from_record(record))


def verify_record(record: CertificateRecord) -> bool:
    """Recompute the signature over the stored fields and compare."""
    return verify(SignedFields.from_record(record), record.signature)
