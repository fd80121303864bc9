"""End-to-end tests through the CertificateEngine facade."""

from datetime import date, datetime, timezone

import pytest

from certengine.config import EngineConfig
from certengine.crypto import generate_keypair, private_key_hex
from certengine.engine import CertificateEngine
from certengine.errors import (
    HashConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from certengine.schema import VerificationReason
from certengine.store import JsonFileRecordStore


class RecordingTransport:
    def __init__(self):
        self.sent = []

    async def send(self, endpoint, announcement):
        self.sent.append(endpoint)


def _engine(**config) -> CertificateEngine:
    return CertificateEngine(config=EngineConfig(**config), transport=RecordingTransport())


class TestIssue:
    @pytest.mark.asyncio
    async def test_issue_verify_revoke(self):
        engine = _engine(id_prefix="BD")
        await engine.start()
        record = await engine.issue("Alice Johnson", "Bitcoin Fundamentals",
                                    issue_date=date(2025, 1, 15))
        assert record.id.startswith(f"BD-{datetime.now(timezone.utc).year}-")
        assert record.document_hash is not None

        assert (await engine.verify_by_id(record.id)).valid
        assert (await engine.verify_by_hash(record.document_hash)).valid
        document = await engine.render(record.id)
        assert (await engine.verify_by_document(document)).valid

        assert await engine.revoke(record.id) is True
        result = await engine.verify_by_document(document)
        assert result.reason == VerificationReason.REVOKED

    @pytest.mark.asyncio
    async def test_backdated_certificate_id_uses_current_year(self):
        record = await _engine().issue("Alice", "Bitcoin", issue_date="2019-03-01")
        assert record.issue_date == date(2019, 3, 1)
        assert record.id.split("-")[1] == str(datetime.now(timezone.utc).year)

    @pytest.mark.asyncio
    async def test_issue_requires_name(self):
        with pytest.raises(ValidationError):
            await _engine().issue("  ", "Bitcoin Fundamentals")

    @pytest.mark.asyncio
    async def test_default_cohort(self):
        record = await _engine(default_cohort="Cohort 2025-01").issue("Ada", "Mining")
        assert record.cohort_label == "Cohort 2025-01"

    @pytest.mark.asyncio
    async def test_issue_and_publish(self):
        engine = _engine(publish_endpoints=("https://a.example", "https://b.example"))
        record = await engine.issue("Ada", "Mining", publish=True)
        assert record.publication_ref is not None
        assert record.publication_ref.published_to == 2

    @pytest.mark.asyncio
    async def test_bind_document_conflict(self):
        engine = _engine()
        record = await engine.issue("Ada", "Mining")
        with pytest.raises(HashConflictError):
            await engine.bind_document(record.id, b"some other file")

    @pytest.mark.asyncio
    async def test_get_unknown(self):
        with pytest.raises(NotFoundError):
            await _engine().get("DD-2025-000000")


class TestEngineWiring:
    @pytest.mark.asyncio
    async def test_configured_issuer_key(self):
        kp = generate_keypair()
        engine = _engine(issuer_key_hex=private_key_hex(kp.private_key))
        assert engine.keypair.public_hex == kp.public_hex

    @pytest.mark.asyncio
    async def test_store_path_selects_json_store(self, tmp_path):
        engine = _engine(store_path=str(tmp_path / "certs.json"))
        assert isinstance(engine.store, JsonFileRecordStore)
        await engine.start()
        record = await engine.issue("Ada", "Mining")

        reopened = _engine(store_path=str(tmp_path / "certs.json"))
        assert (await reopened.verify_by_id(record.id)).valid

    @pytest.mark.asyncio
    async def test_unusable_store_is_fatal(self, tmp_path):
        engine = _engine(store_path=str(tmp_path / "missing" / "certs.json"))
        with pytest.raises(StoreUnavailableError):
            await engine.start()

    @pytest.mark.asyncio
    async def test_run_batch(self):
        engine = _engine()
        report = await engine.run_batch([
            {"name": "Ada", "email": "ada@example.com"},
            {"name": "", "email": "x@example.com"},
        ])
        assert report.succeeded == 1
        assert report.failed == 1
        assert len(await engine.list()) == 1
