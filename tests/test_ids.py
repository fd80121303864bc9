"""Tests for certificate identifiers."""

import re

import pytest

from certengine.ids import (
    ID_PATTERN,
    is_certificate_id,
    new_certificate_id,
    normalize_certificate_id,
)


class TestNewId:
    def test_format(self):
        cid = new_certificate_id("DD", 2025)
        assert ID_PATTERN.match(cid)
        assert cid.startswith("DD-2025-")

    def test_current_year_by_default(self):
        cid = new_certificate_id("BD")
        assert re.match(r"^BD-\d{4}-[0-9A-F]{6}$", cid)

    def test_ids_differ(self):
        ids = {new_certificate_id("DD", 2025) for _ in range(200)}
        assert len(ids) > 190

    @pytest.mark.parametrize("prefix", ["D", "dd", "ABCDE", "D1", ""])
    def test_bad_prefix(self, prefix):
        with pytest.raises(ValueError):
            new_certificate_id(prefix)


class TestIdFormat:
    @pytest.mark.parametrize("value", ["BD-2025-AB12CD", "DD-2025-8F32C1", "ABCD-1999-000000"])
    def test_valid(self, value):
        assert is_certificate_id(value)

    @pytest.mark.parametrize(
        "value",
        ["bd-2025-ab12cd", "BD-25-AB12CD", "BD-2025-AB12C", "BD-2025-AB12CG", "B-2025-AB12CD"],
    )
    def test_invalid(self, value):
        assert not is_certificate_id(value)

    def test_normalize(self):
        assert normalize_certificate_id("  bd-2025-ab12cd ") == "BD-2025-AB12CD"
