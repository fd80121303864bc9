"""
Certificate verification & issuance API.

Endpoints:
  GET  /verify/{id_or_hash}            verify by certificate id or document hash
  POST /verify/document                verify raw document bytes (request body)
  POST /certificates                   issue one certificate
  GET  /certificates                   list records
  GET  /certificates/{id}              fetch one record
  GET  /certificates/{id}/document     re-render the document
  POST /certificates/{id}/revoke       revoke
  POST /certificates/{id}/publish      broadcast announcement
  POST /batches                        batch issuance
"""

from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from certengine.config import EngineConfig
from certengine.crypto import is_sha256_hex
from certengine.engine import CertificateEngine
from certengine.errors import (
    ConflictError,
    ExternalFailure,
    NotFoundError,
    ValidationError,
)
from certengine.ids import is_certificate_id, normalize_certificate_id
from certengine.publisher import verification_url
from certengine.schema import (
    BatchReport,
    CandidateRow,
    CertificateRecord,
    PublishResult,
    VerificationResult,
)

from .models import (
    BatchRequest,
    CertificateResponse,
    IssueRequest,
    RevokeResponse,
)

app = FastAPI(
    title="Certificate Verification",
    description="Issue, revoke and verify tamper-evident certificates",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Global state (one engine per process)
# ---------------------------------------------------------------------------
_engine: CertificateEngine | None = None


async def get_engine() -> CertificateEngine:
    global _engine
    if _engine is None:
        engine = CertificateEngine(config=EngineConfig.from_env())
        await engine.start()
        _engine = engine
    return _engine


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def _conflict(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def _invalid(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422, content={"detail": exc.message, "field": exc.field}
    )


@app.exception_handler(ExternalFailure)
async def _external(request: Request, exc: ExternalFailure):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def _response(engine: CertificateEngine, record: CertificateRecord) -> CertificateResponse:
    return CertificateResponse(
        certificate=record,
        verification_url=verification_url(engine.config.verification_origin, record),
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

@app.get("/verify/{key}", response_model=VerificationResult)
async def verify(key: str):
    """Verify by document hash (64 hex chars) or by certificate id."""
    engine = await get_engine()
    candidate = key.strip().lower()
    if is_sha256_hex(candidate):
        result = await engine.verify_by_hash(candidate)
    elif is_certificate_id(normalize_certificate_id(key)):
        result = await engine.verify_by_id(key)
    else:
        raise HTTPException(
            status_code=422, detail="expected a certificate id or a SHA-256 hex hash"
        )
    return result


@app.post("/verify/document", response_model=VerificationResult)
async def verify_document(request: Request):
    """Verify the raw bytes of a rendered certificate document."""
    body = await request.body()
    if not body:
        raise HTTPException(status_code=422, detail="empty document")
    engine = await get_engine()
    result = await engine.verify_by_document(body)
    return result


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------

@app.post("/certificates", response_model=CertificateResponse, status_code=201)
async def issue(req: IssueRequest):
    engine = await get_engine()
    record = await engine.issue(
        subject_name=req.subject_name,
        course_title=req.course_title,
        cohort_label=req.cohort_label,
        certificate_class=req.certificate_class,
        issue_date=req.issue_date,
        publish=req.publish,
    )
    return _response(engine, record)


@app.get("/certificates", response_model=list[CertificateRecord])
async def list_certificates():
    engine = await get_engine()
    return sorted(await engine.list(), key=lambda r: r.created_at)


@app.get("/certificates/{certificate_id}", response_model=CertificateResponse)
async def get_certificate(certificate_id: str):
    engine = await get_engine()
    return _response(engine, await engine.get(certificate_id))


@app.get("/certificates/{certificate_id}/document")
async def get_document(certificate_id: str):
    engine = await get_engine()
    document = await engine.render(certificate_id)
    return Response(content=document, media_type="text/plain; charset=utf-8")


@app.post("/certificates/{certificate_id}/revoke", response_model=RevokeResponse)
async def revoke(certificate_id: str):
    engine = await get_engine()
    revoked = await engine.revoke(certificate_id)
    return RevokeResponse(
        certificate_id=normalize_certificate_id(certificate_id), revoked=revoked
    )


@app.post("/certificates/{certificate_id}/publish", response_model=PublishResult)
async def publish(certificate_id: str):
    engine = await get_engine()
    return await engine.publish(certificate_id)


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

@app.post("/batches", response_model=BatchReport)
async def run_batch(req: BatchRequest):
    engine = await get_engine()
    rows = [
        CandidateRow(row_index=i, **row.model_dump())
        for i, row in enumerate(req.rows, start=1)
    ]
    return await engine.run_batch(rows, publish=req.publish)
