"""Tests for the certificate CLI."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from verifier_cli.cli import main

GOLDEN_DIR = Path(__file__).parent.parent / "golden"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CERT_STORE_PATH", "CERT_PUBLISH_ENDPOINTS", "CERT_ISSUER_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store_file(tmp_path):
    """A record store holding the golden Alice certificate."""
    golden = json.loads((GOLDEN_DIR / "golden_certificate.json").read_text(encoding="utf-8"))
    record = golden["record"]
    path = tmp_path / "certs.json"
    path.write_text(json.dumps({"records": {record["id"]: record}}), encoding="utf-8")
    return path


@pytest.fixture
def document_file():
    return GOLDEN_DIR / "alice_document.txt"


def _invoke(store_file, *args):
    return CliRunner().invoke(main, ["--store", str(store_file), *args])


class TestVerify:
    def test_by_id(self, store_file):
        result = _invoke(store_file, "verify", "BD-2025-AB12CD")
        assert result.exit_code == 0, result.output
        assert "VERIFIED SUCCESSFULLY" in result.output
        assert "Alice Johnson" in result.output

    def test_by_hash(self, store_file):
        result = _invoke(
            store_file, "verify",
            "6657ed27ca7fea14322969c0c774f3730dfa3654ed4eaee430b5e86b8d638bcb",
        )
        assert result.exit_code == 0, result.output

    def test_by_file(self, store_file, document_file):
        result = _invoke(store_file, "verify", "--file", str(document_file))
        assert result.exit_code == 0, result.output

    def test_edited_file_fails(self, store_file, tmp_path, document_file):
        edited = tmp_path / "edited.txt"
        edited.write_bytes(document_file.read_bytes().replace(b"Alice", b"Alicia"))
        result = _invoke(store_file, "verify", "--file", str(edited))
        assert result.exit_code == 1
        assert "VERIFICATION FAILED" in result.output

    def test_unknown_id_fails(self, store_file):
        result = _invoke(store_file, "verify", "BD-2025-000000")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_tampered_store_fails(self, store_file):
        data = json.loads(store_file.read_text(encoding="utf-8"))
        data["records"]["BD-2025-AB12CD"]["subject_name"] = "Mallory"
        store_file.write_text(json.dumps(data), encoding="utf-8")
        result = _invoke(store_file, "verify", "BD-2025-AB12CD")
        assert result.exit_code == 1
        assert "tampered" in result.output

    def test_needs_exactly_one_input(self, store_file):
        assert _invoke(store_file, "verify").exit_code != 0


class TestRevokeAndInspect:
    def test_revoke_then_verify(self, store_file):
        result = _invoke(store_file, "revoke", "bd-2025-ab12cd")
        assert result.exit_code == 0, result.output
        assert "has been revoked" in result.output

        result = _invoke(store_file, "verify", "BD-2025-AB12CD")
        assert result.exit_code == 1
        assert "revoked" in result.output

    def test_inspect(self, store_file):
        result = _invoke(store_file, "inspect", "BD-2025-AB12CD")
        assert result.exit_code == 0, result.output
        assert "1faff46df5d3ac528dc15b5780d8bc7e04cf0eb0ce7b96284e7a2fcfaa7255fa" in result.output

    def test_inspect_unknown(self, store_file):
        result = _invoke(store_file, "inspect", "BD-2025-000000")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_unusable_store(self, tmp_path):
        result = _invoke(tmp_path / "missing" / "certs.json", "verify", "BD-2025-AB12CD")
        assert result.exit_code == 1
        assert "unavailable" in result.output


class TestIssue:
    def test_issue_csv(self, tmp_path):
        csv_file = tmp_path / "recipients.csv"
        csv_file.write_text(
            "Name,Email,Course\n"
            "Ada Lovelace,ada@example.com,Mining\n"
            ",nobody@example.com,Mining\n",
            encoding="utf-8",
        )
        store = tmp_path / "certs.json"
        out = tmp_path / "out"
        result = _invoke(store, "issue", str(csv_file), "--out", str(out), "--no-publish")

        assert result.exit_code == 1  # one row failed
        assert "Missing Name" in result.output
        documents = list(out.iterdir())
        assert len(documents) == 1
        assert documents[0].name.startswith("Certificate_ada_lovelace_DD-")

        verified = _invoke(store, "verify", "--file", str(documents[0]))
        assert verified.exit_code == 0, verified.output

    def test_bind(self, tmp_path):
        csv_file = tmp_path / "recipients.csv"
        csv_file.write_text("Name,Email,Course\nAda,ada@example.com,Mining\n", encoding="utf-8")
        store = tmp_path / "certs.json"
        assert _invoke(store, "issue", str(csv_file)).exit_code == 0

        cid = next(iter(json.loads(store.read_text(encoding="utf-8"))["records"]))
        other = tmp_path / "other.txt"
        other.write_bytes(b"not the rendered certificate")
        result = _invoke(store, "bind", cid, str(other))
        assert result.exit_code == 1
        assert "refusing to rebind" in result.output
