"""Tests for the canonical signer."""

from dataclasses import replace
from datetime import date, timedelta

from hypothesis import assume, given, strategies as st

from certengine.schema import DEFAULT_CERTIFICATE_CLASS
from certengine.signer import SignedFields, canonical_payload, sign, verify

ALICE = SignedFields(
    id="BD-2025-AB12CD",
    subject_name="Alice Johnson",
    course_title="Bitcoin Fundamentals",
    cohort_label="",
    certificate_class="",
    issue_date=date(2025, 1, 15),
)

ALICE_SIGNATURE = "1faff46df5d3ac528dc15b5780d8bc7e04cf0eb0ce7b96284e7a2fcfaa7255fa"


class TestCanonicalPayload:
    def test_fixed_field_order(self):
        assert canonical_payload(ALICE) == (
            b'{"id":"BD-2025-AB12CD","studentName":"Alice Johnson","cohort":"",'
            b'"courseType":"Bitcoin Fundamentals",'
            b'"certificateType":"Certificate of Completion","issueDate":"2025-01-15"}'
        )

    def test_default_class_substituted(self):
        explicit = replace(ALICE, certificate_class=DEFAULT_CERTIFICATE_CLASS)
        assert canonical_payload(explicit) == canonical_payload(ALICE)
        assert sign(explicit) == sign(ALICE)

    def test_other_class_changes_signature(self):
        other = replace(ALICE, certificate_class="Certificate of Attendance")
        assert sign(other) != sign(ALICE)


class TestSign:
    def test_known_signature(self):
        assert sign(ALICE) == ALICE_SIGNATURE

    def test_deterministic(self):
        again = SignedFields(**{f: getattr(ALICE, f) for f in ALICE.__dataclass_fields__})
        assert sign(again) == sign(ALICE)

    def test_verify(self):
        assert verify(ALICE, ALICE_SIGNATURE) is True
        assert verify(ALICE, "0" * 64) is False

    def test_cohort_is_sealed(self):
        assert sign(replace(ALICE, cohort_label="Cohort 2025-01")) == (
            "3261a1a7c5d922a14aacf614d3ed8da0a417bdc6fb33473d0626c4d4cb9f4dcd"
        )

    def test_date_is_sealed(self):
        assert not verify(replace(ALICE, issue_date=date(2025, 1, 16)), ALICE_SIGNATURE)


# ---------------------------------------------------------------------------
# Property-based
# ---------------------------------------------------------------------------

text = st.text(min_size=1, max_size=60)

signed_fields = st.builds(
    SignedFields,
    id=st.from_regex(r"\A[A-Z]{2,4}-\d{4}-[0-9A-F]{6}\Z"),
    subject_name=text,
    course_title=text,
    cohort_label=st.text(max_size=30),
    certificate_class=text,
    issue_date=st.dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)),
)

TEXT_FIELDS = ["id", "subject_name", "course_title", "cohort_label", "certificate_class"]


class TestPropertyBased:
    @given(signed_fields)
    def test_sign_then_verify(self, fields):
        assert verify(fields, sign(fields)) is True

    @given(signed_fields, st.sampled_from(TEXT_FIELDS), st.data())
    def test_single_char_mutation_detected(self, fields, field, data):
        original = getattr(fields, field)
        assume(len(original) > 0)
        pos = data.draw(st.integers(min_value=0, max_value=len(original) - 1))
        new_char = data.draw(st.characters(blacklist_categories=("Cs",)))
        assume(new_char != original[pos])
        mutated_value = original[:pos] + new_char + original[pos + 1:]
        mutated = replace(fields, **{field: mutated_value})
        assert verify(mutated, sign(fields)) is False

    @given(signed_fields, st.integers(min_value=1, max_value=3650))
    def test_date_shift_detected(self, fields, days):
        shifted = replace(fields, issue_date=fields.issue_date + timedelta(days=days))
        assert verify(shifted, sign(fields)) is False
