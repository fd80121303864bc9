"""
Tamper harness — post-issuance modifications of stored certificate records
and rendered documents, used to exercise the verifier.

  T1: field edit       rewrite a sealed display field
  T2: character flip   change one character of a sealed field
  T3: date shift       move the issue date
  T4: un-revoke        reset a revoked record to active
  T5: hash swap        point a record at another document's hash
  T6: document edit    flip bytes inside a rendered document
  T7: re-sealed forgery  edit fields AND recompute the signature

T1-T3, T5 and T6 are detected. Status is not sealed, so a T4 copy reads as
active; only the store itself says whether a certificate is revoked. T7 is
the known limit of hash-based sealing: anyone can recompute the digest, so
a forged record written straight into the store verifies as authentic.
"""

from __future__ import annotations

import copy
import random
from datetime import date, timedelta

SEALED_TEXT_FIELDS = ("subject_name", "course_title", "cohort_label", "certificate_class")


def t1_field_edit(record: dict, field: str = "subject_name", value: str = "Mallory") -> dict:
    """T1: overwrite one sealed text field, keeping the stored signature."""
    if field not in SEALED_TEXT_FIELDS:
        raise ValueError(f"not a sealed text field: {field}")
    tampered = copy.deepcopy(record)
    tampered[field] = value
    return tampered


def t2_char_flip(record: dict, field: str = "subject_name", seed: int = 42) -> dict:
    """T2: replace a single character of ``field`` with a different one."""
    tampered = copy.deepcopy(record)
    original = str(tampered.get(field) or "")
    rng = random.Random(seed)
    if not original:
        tampered[field] = "x"
        return tampered
    pos = rng.randrange(len(original))
    ch = original[pos]
    replacement = chr(ord(ch) + 1) if ch != "\U0010ffff" else "a"
    tampered[field] = original[:pos] + replacement + original[pos + 1:]
    return tampered


def t3_date_shift(record: dict, days: int = 1) -> dict:
    """T3: move the issue date by ``days``."""
    tampered = copy.deepcopy(record)
    issued = tampered["issue_date"]
    if isinstance(issued, str):
        issued = date.fromisoformat(issued)
    tampered["issue_date"] = issued + timedelta(days=days)
    return tampered


def t4_unrevoke(record: dict) -> dict:
    """T4: flip a revoked record back to active, as if revocation never happened."""
    tampered = copy.deepcopy(record)
    tampered["status"] = "active"
    tampered["revoked_at"] = None
    return tampered


def t5_hash_swap(record: dict, other_hash: str) -> dict:
    """T5: rebind the record to a different document's hash."""
    tampered = copy.deepcopy(record)
    tampered["document_hash"] = other_hash
    return tampered


def t6_document_edit(document: bytes, offset: int | None = None) -> bytes:
    """T6: flip one byte of the rendered document (default: middle byte)."""
    if not document:
        return b"\x00"
    data = bytearray(document)
    idx = len(data) // 2 if offset is None else offset % len(data)
    data[idx] ^= 0x01
    return bytes(data)


def t7_resealed_forgery(record: dict, field: str = "subject_name", value: str = "Mallory") -> dict:
    """T7: edit a field and recompute the signature over the edited fields."""
    from certengine.schema import CertificateRecord
    from certengine.signer import sign_record

    tampered = t1_field_edit(record, field, value)
    tampered["signature"] = sign_record(CertificateRecord.model_validate(tampered))
    return tampered


# ---------------------------------------------------------------------------
# Attack registry
# ---------------------------------------------------------------------------

# Record-level attacks that the verifier must detect by id
RECORD_ATTACKS = {
    "T1_name_edit": lambda r: t1_field_edit(r, "subject_name"),
    "T1_course_edit": lambda r: t1_field_edit(r, "course_title", "Advanced Cryptography"),
    "T1_cohort_edit": lambda r: t1_field_edit(r, "cohort_label", "Cohort 1999-01"),
    "T1_class_edit": lambda r: t1_field_edit(r, "certificate_class", "Certificate of Excellence"),
    "T2_name_char": lambda r: t2_char_flip(r, "subject_name"),
    "T2_course_char": lambda r: t2_char_flip(r, "course_title"),
    "T3_date_shift": lambda r: t3_date_shift(r),
}


def run_record_attacks(record: dict) -> dict[str, dict]:
    """Apply every record-level attack and return {attack_name: tampered_record}."""
    return {name: fn(record) for name, fn in RECORD_ATTACKS.items()}
