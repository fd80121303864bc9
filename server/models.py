"""Request/response models for the certificate API."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from certengine.schema import CertificateRecord


# ---------------------------------------------------------------------------
# POST /certificates
# ---------------------------------------------------------------------------

class IssueRequest(BaseModel):
    subject_name: str = Field(..., min_length=1, max_length=200)
    course_title: str = Field(..., min_length=1, max_length=200)
    cohort_label: str = Field(default="", max_length=200)
    certificate_class: str = Field(default="", max_length=200)
    issue_date: Optional[date] = None
    publish: bool = False


class CertificateResponse(BaseModel):
    certificate: CertificateRecord
    verification_url: str


# ---------------------------------------------------------------------------
# POST /certificates/{id}/revoke
# ---------------------------------------------------------------------------

class RevokeResponse(BaseModel):
    certificate_id: str
    revoked: bool


# ---------------------------------------------------------------------------
# POST /batches
# ---------------------------------------------------------------------------

class BatchRow(BaseModel):
    name: str = ""
    email: str = ""
    course: str = ""
    cohort: str = ""
    certificate_class: str = ""
    issue_date: str = ""


class BatchRequest(BaseModel):
    rows: list[BatchRow] = Field(..., min_length=1, max_length=5000)
    publish: bool = True
