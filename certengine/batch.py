"""
Batch issuance.

Drives an ordered list of candidate rows through

    validate → mint id → sign → persist → render → bind hash → publish

one row at a time. Rows are independent: whatever goes wrong in row n is
recorded as row n's outcome and row n+1 still runs. A row that fails after
persisting leaves its signed, un-hashed record in the store; it can be
re-rendered and bound later and is never rolled back.

Rows run strictly in order because progress reporting depends on it and
renderers are not assumed to be reentrant.
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Optional, Sequence

import pydantic

from .binder import bind_hash
from .errors import (
    BatchCancelled,
    CertificateError,
    ConflictError,
    DuplicateIdError,
    ExternalFailure,
    RenderError,
    ValidationError,
)
from .ids import new_certificate_id
from .publisher import BroadcastPublisher
from .renderer import DocumentRenderer, Template
from .schema import (
    BatchPhase,
    BatchReport,
    CandidateRow,
    CertificateRecord,
    ProgressEvent,
    PublishResult,
    RowOutcome,
    RowStage,
)
from .signer import SignedFields, sign
from .store import RecordStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]

_NAME_KEYS = ("Name", "name", "StudentName", "studentName")
_EMAIL_KEYS = ("Email", "email")
_COURSE_KEYS = ("Course", "course", "CourseType", "courseType")
_COHORT_KEYS = ("Cohort", "cohort")
_DATE_KEYS = ("IssueDate", "issueDate", "issue_date", "Date", "date")


# ---------------------------------------------------------------------------
# Row import & validation
# ---------------------------------------------------------------------------

def _first(row: dict[str, Any], keys: Iterable[str]) -> str:
    for k in keys:
        value = row.get(k)
        if value:
            return str(value).strip()
    return ""


def rows_from_csv(text: str, default_course: str = "") -> list[CandidateRow]:
    """Read candidate rows from CSV text with a header line.

    Header aliases follow the import screen (``Name``/``StudentName``,
    ``Email``, ``Course``/``CourseType``, ``Cohort``). Rows are numbered
    from 1 in file order; blank lines are skipped.
    """
    reader = csv.DictReader(io.StringIO(text))
    rows = []
    for raw in reader:
        if not any((v or "").strip() for v in raw.values() if isinstance(v, str)):
            continue
        rows.append(CandidateRow(
            row_index=len(rows) + 1,
            name=_first(raw, _NAME_KEYS),
            email=_first(raw, _EMAIL_KEYS),
            course=_first(raw, _COURSE_KEYS) or default_course,
            cohort=_first(raw, _COHORT_KEYS),
            issue_date=_first(raw, _DATE_KEYS),
        ))
    return rows


def parse_issue_date(value: str | date | None) -> date:
    """ISO date, or today (UTC) when empty."""
    if isinstance(value, date):
        return value
    if not value:
        return datetime.now(timezone.utc).date()
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("issue_date", "Invalid Date") from None


def to_candidate(row_index: int, raw: CandidateRow | dict[str, Any]) -> CandidateRow:
    """Coerce one input row; a malformed mapping is a per-row ValidationError."""
    if isinstance(raw, CandidateRow):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("row", f"row must be a mapping, got {type(raw).__name__}")
    try:
        return CandidateRow.model_validate({**raw, "row_index": row_index})
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "row"
        raise ValidationError(field, f"Invalid {field}: {first.get('msg')}") from e


def validate_row(row: CandidateRow) -> None:
    """Raise ValidationError for a row that cannot be issued."""
    if not row.name.strip():
        raise ValidationError("name", "Missing Name")
    if not row.email.strip():
        raise ValidationError("email", "Missing Email")
    if not row.course.strip():
        raise ValidationError("course", "Missing Course")
    parse_issue_date(row.issue_date)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class BatchOrchestrator:
    """
    Issues certificates one row at a time.

    Also exposes the single-row steps (:meth:`persist_new`,
    :meth:`render_document`) so the one-off issue flow shares them.
    """

    def __init__(
        self,
        store: RecordStore,
        renderer: DocumentRenderer,
        publisher: BroadcastPublisher | None = None,
        id_prefix: str = "DD",
        render_retries: int = 1,
        id_retries: int = 5,
        default_course: str = "",
        default_cohort: str = "",
    ):
        self.store = store
        self.renderer = renderer
        self.publisher = publisher
        self.id_prefix = id_prefix
        self.render_retries = render_retries
        self.id_retries = id_retries
        self.default_course = default_course
        self.default_cohort = default_cohort

    # ── Single-row steps ───────────────────────────────────────────────────

    async def persist_new(
        self,
        subject_name: str,
        course_title: str,
        cohort_label: str = "",
        certificate_class: str = "",
        issue_date: date | None = None,
        template_id: str = "",
    ) -> CertificateRecord:
        """Mint an id, sign, and insert; re-mint when the id is taken."""
        issue_date = issue_date or parse_issue_date(None)
        for attempt in range(1, self.id_retries + 1):
            fields = SignedFields(
                id=new_certificate_id(self.id_prefix),
                subject_name=subject_name.strip(),
                course_title=course_title.strip(),
                cohort_label=cohort_label.strip(),
                certificate_class=certificate_class.strip(),
                issue_date=issue_date,
            )
            record_data = {
                "id": fields.id,
                "subject_name": fields.subject_name,
                "course_title": fields.course_title,
                "cohort_label": fields.cohort_label,
                "issue_date": fields.issue_date,
                "signature": sign(fields),
                "template_id": template_id,
            }
            if fields.certificate_class:
                record_data["certificate_class"] = fields.certificate_class
            try:
                record = await self.store.put(record_data)
            except DuplicateIdError as e:
                logger.warning(
                    f"Id collision on {e.certificate_id} "
                    f"(attempt {attempt}/{self.id_retries}), minting a new one"
                )
                continue
            logger.info(f"Issued certificate {record.id} for {record.subject_name}")
            return record
        raise ConflictError(f"no free certificate id after {self.id_retries} attempts")

    async def render_document(
        self, template: Optional[Template], record: CertificateRecord
    ) -> bytes:
        """Render, retrying up to ``render_retries`` extra times."""
        attempts = 1 + self.render_retries
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                document = await self.renderer.render(template, record)
            except Exception as e:
                last_error = e
                if attempt < attempts:
                    logger.warning(
                        f"Render failed for {record.id} "
                        f"(attempt {attempt}/{attempts}): {e}"
                    )
                continue
            if not isinstance(document, (bytes, bytearray)):
                raise RenderError(
                    f"renderer returned {type(document).__name__}, expected bytes"
                )
            return bytes(document)
        if isinstance(last_error, RenderError):
            raise last_error
        raise RenderError(f"render failed for {record.id}: {last_error}") from last_error

    async def publish(self, record: CertificateRecord) -> PublishResult | None:
        """Best-effort publication; failures are logged, never raised."""
        if self.publisher is None or not self.publisher.endpoints:
            return None
        try:
            return await self.publisher.publish(record)
        except (ValidationError, ExternalFailure) as e:
            logger.warning(f"Publication of {record.id} failed: {e}")
            return None

    # ── Batch ─────────────────────────────────────────────────────────────

    async def run(
        self,
        rows: Sequence[CandidateRow | dict[str, Any]],
        template: Optional[Template] = None,
        publish: bool = True,
        cancel: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchReport:
        sequence = 0

        def emit(phase: BatchPhase, status: str, message: str = "",
                 row_index: int | None = None, stage: RowStage | None = None) -> None:
            nonlocal sequence
            if on_progress is None:
                return
            sequence += 1
            on_progress(ProgressEvent(
                sequence=sequence, phase=phase, row_index=row_index,
                stage=stage, status=status, message=message,
            ))

        candidates: list[CandidateRow] = []
        errors: dict[int, ValidationError] = {}
        for i, r in enumerate(rows, start=1):
            try:
                row = to_candidate(i, r)
            except ValidationError as e:
                errors[len(candidates)] = e
                row = CandidateRow(row_index=i)
            if not row.course.strip() and self.default_course:
                row = row.model_copy(update={"course": self.default_course})
            candidates.append(row)

        # Validating
        emit(BatchPhase.VALIDATING, "started", f"Validating {len(candidates)} rows")
        for pos, row in enumerate(candidates):
            if pos in errors:
                continue
            try:
                validate_row(row)
            except ValidationError as e:
                errors[pos] = e
        emit(
            BatchPhase.VALIDATING, "completed",
            f"{len(candidates) - len(errors)} valid, {len(errors)} invalid",
        )

        # Issuing
        emit(BatchPhase.ISSUING, "started")
        outcomes: list[RowOutcome] = []
        cancelled = False
        for pos, row in enumerate(candidates):
            if pos in errors:
                err = errors[pos]
                outcomes.append(RowOutcome(
                    row_index=row.row_index, ok=False,
                    stage=RowStage.VALIDATE, error=err.message,
                ))
                emit(BatchPhase.ISSUING, "failed", err.message,
                     row.row_index, RowStage.VALIDATE)
                continue

            if cancelled or (cancel is not None and cancel.is_set()):
                cancelled = True
                outcomes.append(RowOutcome(
                    row_index=row.row_index, ok=False,
                    stage=RowStage.MINT, error="cancelled",
                ))
                emit(BatchPhase.ISSUING, "failed", "cancelled",
                     row.row_index, RowStage.MINT)
                continue

            outcome = await self._process_row(row, template, publish, cancel, emit)
            if outcome.error == "cancelled":
                cancelled = True
            outcomes.append(outcome)

        succeeded = sum(1 for o in outcomes if o.ok)
        report = BatchReport(
            phase=BatchPhase.DONE,
            total=len(candidates),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            rows=outcomes,
        )
        emit(BatchPhase.DONE, "completed",
             f"{report.succeeded}/{report.total} certificates issued")
        logger.info(
            f"Batch finished: {report.succeeded} succeeded, {report.failed} failed "
            f"of {report.total}"
        )
        return report

    async def _process_row(
        self,
        row: CandidateRow,
        template: Optional[Template],
        publish: bool,
        cancel: Optional[asyncio.Event],
        emit,
    ) -> RowOutcome:
        stage = RowStage.MINT
        record: CertificateRecord | None = None
        document_hash: str | None = None
        publish_result: PublishResult | None = None

        emit(BatchPhase.ISSUING, "started", row.name, row.row_index, stage)
        try:
            stage = RowStage.PERSIST
            record = await self.persist_new(
                subject_name=row.name,
                course_title=row.course,
                cohort_label=row.cohort or self.default_cohort,
                certificate_class=row.certificate_class,
                issue_date=parse_issue_date(row.issue_date),
                template_id=template.template_id if template else "",
            )

            if cancel is not None and cancel.is_set():
                raise BatchCancelled("cancelled")

            stage = RowStage.RENDER
            document = await self.render_document(template, record)

            stage = RowStage.BIND
            record = await bind_hash(self.store, record.id, document)
            document_hash = record.document_hash

            if publish:
                stage = RowStage.PUBLISH
                publish_result = await self.publish(record)
        except BatchCancelled:
            logger.warning(f"Row {row.row_index} cancelled before {stage.value}")
            emit(BatchPhase.ISSUING, "failed", "cancelled", row.row_index, stage)
            return RowOutcome(
                row_index=row.row_index, ok=False, stage=stage, attempted=True,
                certificate_id=record.id if record else None, error="cancelled",
            )
        except CertificateError as e:
            logger.warning(f"Row {row.row_index} failed at {stage.value}: {e}")
            emit(BatchPhase.ISSUING, "failed", str(e), row.row_index, stage)
            return RowOutcome(
                row_index=row.row_index, ok=False, stage=stage, attempted=True,
                certificate_id=record.id if record else None, error=str(e),
            )
        except Exception as e:
            logger.exception(f"Row {row.row_index} failed at {stage.value}")
            emit(BatchPhase.ISSUING, "failed", str(e), row.row_index, stage)
            return RowOutcome(
                row_index=row.row_index, ok=False, stage=stage, attempted=True,
                certificate_id=record.id if record else None,
                error=f"{type(e).__name__}: {e}",
            )

        emit(BatchPhase.ISSUING, "completed", record.id, row.row_index, RowStage.COMPLETE)
        return RowOutcome(
            row_index=row.row_index,
            ok=True,
            stage=RowStage.COMPLETE,
            attempted=True,
            certificate_id=record.id,
            document_hash=document_hash,
            publish=publish_result,
        )
