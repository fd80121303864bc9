"""
Document rendering seam.

Layout and painting live outside the engine; all it needs is a renderer
that turns (template, record) into bytes, byte-identical for identical
inputs. Anything that stamps render time, random object ids or unordered
metadata into the output breaks hash verification.

:class:`TextRenderer` is a small deterministic renderer used by the CLI,
the API and the tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from .errors import RenderError
from .schema import CertificateRecord


@dataclass(frozen=True)
class Template:
    template_id: str
    body: str


class DocumentRenderer(Protocol):
    """Protocol for certificate document renderers."""

    async def render(self, template: Optional[Template], record: CertificateRecord) -> bytes:
        """Return the rendered document bytes."""
        ...


DEFAULT_TEMPLATE = Template(
    template_id="plain-v1",
    body=(
        "{certificate_class}\n"
        "\n"
        "This certifies that\n"
        "{subject_name}\n"
        "has completed\n"
        "{course_title}\n"
        "{cohort_line}"
        "Issued {issue_date_long}\n"
        "\n"
        "Certificate ID: {id}\n"
        "Signature: {signature}\n"
        "Verify: {verify_url}\n"
    ),
)


@dataclass
class TextRenderer:
    """Fills a text template with the record's fields. UTF-8, LF newlines."""

    origin: str = "http://localhost:8000"
    templates: dict[str, Template] = field(default_factory=dict)

    def resolve(self, template: Optional[Template], record: CertificateRecord) -> Template:
        if template is not None:
            return template
        if record.template_id:
            try:
                return self.templates[record.template_id]
            except KeyError:
                raise RenderError(f"unknown template: {record.template_id}") from None
        return DEFAULT_TEMPLATE

    async def render(self, template: Optional[Template], record: CertificateRecord) -> bytes:
        tpl = self.resolve(template, record)
        values = {
            "id": record.id,
            "subject_name": record.subject_name,
            "course_title": record.course_title,
            "cohort_label": record.cohort_label,
            "cohort_line": f"{record.cohort_label}\n" if record.cohort_label else "",
            "certificate_class": record.certificate_class,
            "issue_date": record.issue_date.isoformat(),
            "issue_date_long": format_long_date(record.issue_date),
            "signature": record.signature,
            "verify_url": f"{self.origin.rstrip('/')}/verify/{record.id}",
        }
        try:
            text = tpl.body.format(**values)
        except (KeyError, IndexError, ValueError) as e:
            raise RenderError(f"template {tpl.template_id} is malformed: {e}") from e
        return text.encode("utf-8")


def format_long_date(d) -> str:
    """``January 15, 2025`` without relying on the process locale."""
    months = (
        "January", "February", "March", "April", "May", "June", "July",
        "August", "September", "October", "November", "December",
    )
    return f"{months[d.month - 1]} {d.day}, {d.year}"
