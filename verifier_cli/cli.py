"""
Certificate CLI — issue, revoke and independently verify certificates.

Usage:
    python -m verifier_cli.cli verify DD-2025-8F32C1
    python -m verifier_cli.cli verify --file certificate.txt
    python -m verifier_cli.cli issue recipients.csv --out ./certificates
    python -m verifier_cli.cli revoke DD-2025-8F32C1
    python -m verifier_cli.cli inspect DD-2025-8F32C1

Records live in a JSON file (``--store``, default ``$CERT_STORE_PATH`` or
``certificates.json``).
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from certengine.batch import rows_from_csv
from certengine.config import EngineConfig
from certengine.crypto import is_sha256_hex
from certengine.engine import CertificateEngine
from certengine.errors import CertificateError, StoreUnavailableError
from certengine.schema import VerificationResult


console = Console()


def _make_engine(store_path: str) -> CertificateEngine:
    try:
        config = EngineConfig.from_env()
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")
    config = dataclasses.replace(config, store_path=store_path)
    return CertificateEngine(config=config)


def _run(store_path: str, action):
    """Start an engine on ``store_path`` and run ``action(engine)`` to completion."""
    async def _main():
        engine = _make_engine(store_path)
        try:
            await engine.start()
            return await action(engine)
        finally:
            await engine.aclose()

    try:
        return asyncio.run(_main())
    except StoreUnavailableError as e:
        raise click.ClickException(f"Record store unavailable: {e}")
    except CertificateError as e:
        raise click.ClickException(str(e))


def _print_result(result: VerificationResult) -> None:
    record = result.record
    if result.valid:
        console.print(f"  [green]✓ {result.message}[/green]")
    else:
        console.print(f"  [red]✗ {result.message}[/red] ({result.reason.value})")
    if result.document_hash:
        console.print(f"  Hash:      {result.document_hash}")
    if record is not None:
        console.print(f"  ID:        {record.id}")
        console.print(f"  Recipient: {record.subject_name}")
        console.print(f"  Course:    {record.course_title}")
        console.print(f"  Issued:    {record.issue_date.isoformat()}")
        console.print(f"  Status:    {record.status.value}")


@click.group()
@click.option(
    "--store", "store_path", envvar="CERT_STORE_PATH", default="certificates.json",
    show_default=True, help="JSON file holding the certificate records",
)
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity")
@click.pass_context
def main(ctx: click.Context, store_path: str, verbose: bool):
    """Certificate tool — issue, revoke and verify tamper-evident certificates."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = store_path


@main.command()
@click.argument("key", required=False)
@click.option("--file", "-f", "document", type=click.Path(exists=True, dir_okay=False),
              help="Verify a rendered certificate document")
@click.pass_obj
def verify(store_path: str, key: str | None, document: str | None):
    """Verify a certificate by ID, by document hash, or by file."""
    if (key is None) == (document is None):
        raise click.UsageError("give exactly one of KEY or --file")

    async def action(engine: CertificateEngine) -> VerificationResult:
        if document is not None:
            return await engine.verify_by_document(Path(document).read_bytes())
        if is_sha256_hex(key.strip().lower()):
            return await engine.verify_by_hash(key)
        return await engine.verify_by_id(key)

    console.print(Panel("Certificate Verification", style="bold blue"))
    result = _run(store_path, action)
    _print_result(result)
    if result.valid:
        console.print("\n[bold green]✓ CERTIFICATE VERIFIED SUCCESSFULLY[/bold green]")
    else:
        console.print("\n[bold red]✗ CERTIFICATE VERIFICATION FAILED[/bold red]")
        sys.exit(1)


@main.command()
@click.argument("certificate_id")
@click.pass_obj
def inspect(store_path: str, certificate_id: str):
    """Show a stored certificate without verifying it."""
    record = _run(store_path, lambda engine: engine.get(certificate_id))

    console.print(Panel("Certificate Inspection", style="bold cyan"))
    console.print(f"  ID:        {record.id}")
    console.print(f"  Recipient: {record.subject_name}")
    console.print(f"  Course:    {record.course_title}")
    console.print(f"  Cohort:    {record.cohort_label or '-'}")
    console.print(f"  Type:      {record.certificate_class}")
    console.print(f"  Issued:    {record.issue_date.isoformat()}")
    console.print(f"  Status:    {record.status.value}")
    console.print(f"  Signature: {record.signature}")
    console.print(f"  Doc hash:  {record.document_hash or '-'}")
    if record.revoked_at:
        console.print(f"  Revoked:   {record.revoked_at.isoformat()}")
    if record.publication_ref:
        ref = record.publication_ref
        console.print(
            f"  Published: {ref.announcement_id[:16]}... "
            f"({ref.published_to}/{ref.total} endpoints)"
        )


@main.command()
@click.argument("certificate_id")
@click.pass_obj
def revoke(store_path: str, certificate_id: str):
    """Revoke a certificate. There is no way to undo this."""
    _run(store_path, lambda engine: engine.revoke(certificate_id))
    console.print(f"[yellow]Certificate {certificate_id.upper()} has been revoked[/yellow]")


@main.command()
@click.argument("certificate_id")
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def bind(store_path: str, certificate_id: str, document: str):
    """Attach the hash of a rendered DOCUMENT to a certificate."""
    data = Path(document).read_bytes()
    record = _run(store_path, lambda engine: engine.bind_document(certificate_id, data))
    console.print(f"[green]✓ Bound {record.document_hash} to {record.id}[/green]")


def _document_name(subject_name: str, certificate_id: str) -> str:
    safe = re.sub(r"[^a-z0-9]", "_", subject_name, flags=re.IGNORECASE).lower()
    return f"Certificate_{safe}_{certificate_id}.txt"


@main.command()
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--out", "out_dir", type=click.Path(file_okay=False),
              help="Write rendered documents into this directory")
@click.option("--publish/--no-publish", default=True, help="Broadcast announcements")
@click.pass_obj
def issue(store_path: str, csv_file: str, out_dir: str | None, publish: bool):
    """Issue certificates for every valid row of CSV_FILE."""
    text = Path(csv_file).read_text(encoding="utf-8-sig")

    async def action(engine: CertificateEngine):
        rows = rows_from_csv(text, default_course=engine.config.default_course)
        report = await engine.run_batch(rows, publish=publish)
        written: list[Path] = []
        if out_dir:
            target = Path(out_dir)
            target.mkdir(parents=True, exist_ok=True)
            for outcome in report.rows:
                if not outcome.ok:
                    continue
                record = await engine.get(outcome.certificate_id)
                path = target / _document_name(record.subject_name, record.id)
                path.write_bytes(await engine.render(record.id))
                written.append(path)
        return report, written

    report, written = _run(store_path, action)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Row", width=5)
    table.add_column("Certificate", width=16)
    table.add_column("Status", width=8)
    table.add_column("Published", width=10)
    table.add_column("Detail")
    for outcome in report.rows:
        status = "[green]OK[/green]" if outcome.ok else "[red]FAILED[/red]"
        published = "-"
        if outcome.publish is not None:
            published = f"{outcome.publish.published_to}/{outcome.publish.total}"
        table.add_row(
            str(outcome.row_index),
            outcome.certificate_id or "-",
            status,
            published,
            outcome.error or "",
        )
    console.print(table)
    console.print(
        f"\n  Issued: {report.succeeded}/{report.total}  |  Failed: {report.failed}/{report.total}"
    )
    if written:
        console.print(f"  Documents written to {out_dir}: {len(written)}")
    if report.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
