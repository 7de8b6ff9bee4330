"""
Tests for text redaction: category coverage, overlap handling, idempotence,
offset stability and redaction options.
"""
import re
import time

import pytest

from safe_harbor.core.definitions import IdentifierCategory
from safe_harbor.core.domain import (
    CustomPattern,
    PrefixPreservingReplacement,
    RedactionOptions,
)
from safe_harbor.core.exceptions import PipelineError, ValidationError
from safe_harbor.engine.redactor import apply_custom_patterns, redact_spans
from safe_harbor.engine.resolver import resolve
from safe_harbor.service.pipeline import redact


C = IdentifierCategory

# (input, expected redacted text, category)
COVERAGE = [
    ("Seen by Dr. Smith today", "Seen by [NAME] today", C.NAMES),
    ("Lives at 1600 Maple Avenue", "Lives at [ADDRESS]", C.GEOGRAPHIC_SUBDIVISION),
    ("ZIP 90210", "ZIP [ZIP]", C.GEOGRAPHIC_SUBDIVISION),
    ("Admitted on 03/15/2024", "Admitted on [DATE]", C.DATES),
    ("Call 555-123-4567", "Call [PHONE]", C.TELEPHONE),
    ("Fax: 555-123-4567", "Fax: [FAX]", C.FAX),
    ("Email jane.doe@example.com", "Email [EMAIL]", C.EMAIL),
    ("SSN 123-45-6789", "SSN [SSN]", C.SSN),
    ("MRN: 12345678", "MRN: [MRN]", C.MEDICAL_RECORD_NUMBER),
    ("Member ID: ABC123456", "Member ID: [HEALTH_PLAN_ID]", C.HEALTH_PLAN_BENEFICIARY_NUMBER),
    ("Account number: 987654321", "Account number: [ACCOUNT_NUM]", C.ACCOUNT_NUMBER),
    ("License #: D1234567", "License #: [LICENSE]", C.CERTIFICATE_LICENSE_NUMBER),
    ("VIN: 1HGCM82633A004352", "VIN: [VEHICLE_ID]", C.VEHICLE_IDENTIFIER),
    ("Pacemaker serial number: PM-449812", "Pacemaker serial number: [DEVICE_ID]", C.DEVICE_IDENTIFIER),
    ("Portal https://portal.example.org/patients/4411", "Portal [URL]", C.URL),
    ("Login from 192.168.10.25", "Login from [IP_ADDRESS]", C.IP_ADDRESS),
    ("Fingerprint ID: FP-88213", "Fingerprint ID: [BIOMETRIC_ID]", C.BIOMETRIC_IDENTIFIER),
    ("See photograph of patient attached", "See [PHOTO_REFERENCE] attached", C.FULL_FACE_PHOTOGRAPH),
    ("Subject ID: 7781-22", "Subject ID: [ID]", C.OTHER_UNIQUE_IDENTIFIER),
    ("Patient is 95 years old", "Patient is 90 or older", C.AGE_OVER_89),
]


class TestCategoryCoverage:
    def test_table_covers_every_category(self):
        assert {category for _, _, category in COVERAGE} == set(IdentifierCategory)

    @pytest.mark.parametrize("text, expected, category", COVERAGE)
    def test_single_identifier_is_replaced(self, text, expected, category):
        result = redact(text)
        assert result.redacted_text == expected
        assert result.phi_detected is True
        assert result.items_redacted == 1
        assert result.categories == frozenset({category})
        assert [item.category for item in result.detected_items] == [category]


class TestOverlap:
    def test_health_plan_id_with_ssn_shape_yields_one_token(self):
        result = redact("Member ID: 555-12-3456")
        assert result.redacted_text == "[SSN]"
        assert result.items_redacted == 1
        assert result.categories == frozenset({C.SSN})

    def test_labelled_fax_beats_bare_phone(self):
        result = redact("Fax: 555-123-4567")
        assert result.redacted_text == "Fax: [FAX]"
        assert result.detected_items[0].rule == "fax_number"

    def test_identifier_containing_zip_shape(self):
        result = redact("Fingerprint ID: FP-88213")
        assert "[ZIP]" not in result.redacted_text
        assert result.items_redacted == 1


class TestUnseparatedSsn:
    @pytest.mark.parametrize("text", [
        "ssn is 123456789",
        "SSN no. 123456789",
        "SSN #: 123456789",
        "Social security number is 123456789",
    ])
    def test_labelled_nine_digit_ssn(self, text):
        result = redact(text)
        assert result.redacted_text == "[SSN]"
        assert [item.rule for item in result.detected_items] == ["ssn_labeled"]

    def test_bare_nine_digits_are_treated_as_ssn(self):
        result = redact("Ref 123456789 on file")
        assert result.redacted_text == "Ref [SSN] on file"
        assert [item.rule for item in result.detected_items] == ["ssn_unseparated"]

    def test_labelled_account_outranks_bare_ssn_shape(self):
        result = redact("Account number: 987654321")
        assert result.redacted_text == "Account number: [ACCOUNT_NUM]"
        assert result.categories == frozenset({C.ACCOUNT_NUMBER})

    def test_url_keeps_embedded_nine_digits(self):
        result = redact("Visit https://example.org/r/123456789")
        assert result.redacted_text == "Visit [URL]"
        assert result.categories == frozenset({C.URL})

    def test_ten_digits_are_not_an_ssn(self):
        result = redact("Call 5551234567")
        assert result.redacted_text == "Call [PHONE]"


class TestHashLabels:
    @pytest.mark.parametrize("text, expected", [
        ("Subject #: 1234", "Subject #: [ID]"),
        ("Account #: 98765", "Account #: [ACCOUNT_NUM]"),
        ("Member #: 55512", "Member #: [HEALTH_PLAN_ID]"),
        ("Serial #: PM-449812", "Serial #: [DEVICE_ID]"),
        ("Fax #: 555-123-4567", "Fax #: [FAX]"),
    ])
    def test_hash_label_is_kept(self, text, expected):
        result = redact(text)
        assert result.redacted_text == expected
        assert result.items_redacted == 1


class TestNamesAndMonths:
    @pytest.mark.parametrize("text, expected", [
        ("Born March 5th, 1931", "Born [DATE]"),
        ("Admitted Jan 3, 2020", "Admitted [DATE]"),
    ])
    def test_capitalized_word_before_month_is_not_a_name(self, text, expected):
        result = redact(text)
        assert result.redacted_text == expected
        assert result.categories == frozenset({C.DATES})


class TestIdempotence:
    @pytest.mark.parametrize("text", [t for t, _, _ in COVERAGE] + [
        "Seen by Dr. Smith on 03/15/2024, MRN: 12345678, call 555-123-4567",
        "Patient aged 95, SSN 123-45-6789, lives at 1600 Maple Avenue, ZIP 90210",
    ])
    def test_redacting_twice_changes_nothing(self, text):
        once = redact(text)
        twice = redact(once.redacted_text)
        assert twice.redacted_text == once.redacted_text
        assert twice.items_redacted == 0


class TestOffsetStability:
    def test_joined_substitution_matches_independent_substitution(self, detector):
        text = "SSN 123-45-6789, email jane@example.com, call 555-123-4567, ZIP 90210"
        resolved = resolve(detector.detect(text))
        assert len(resolved) == 4

        pieces, cursor = [], 0
        for span in resolved:
            pieces.append(text[cursor : span.start])
            pieces.append(span.rule.replacement.apply(text[span.start : span.end]))
            cursor = span.end
        pieces.append(text[cursor:])

        assert redact(text).redacted_text == "".join(pieces)
        assert redact(text).redacted_text == "SSN [SSN], email [EMAIL], call [PHONE], ZIP [ZIP]"


class TestScaling:
    @staticmethod
    def best_time(text, runs=3):
        timings = []
        for _ in range(runs):
            started = time.perf_counter()
            redact(text)
            timings.append(time.perf_counter() - started)
        return min(timings)

    def test_dense_matches_scale_linearly(self):
        redact("Aa " * 100)
        small = self.best_time("Aa " * 5000)
        large = self.best_time("Aa " * 20000)
        # 4x the input; quadratic growth would be ~16x
        assert large / small < 8


class TestAgeRule:
    def test_age_89_is_untouched(self):
        result = redact("Patient is 89 years old")
        assert result.redacted_text == "Patient is 89 years old"
        assert result.phi_detected is False

    @pytest.mark.parametrize("text, expected", [
        ("Patient aged 95", "Patient aged 90 or older"),
        ("age: 102", "age: 90 or older"),
        ("A 91-year-old man", "A 90 or older man"),
    ])
    def test_labelled_ages_are_aggregated(self, text, expected):
        assert redact(text).redacted_text == expected

    def test_young_ages_redacted_when_not_preserved(self):
        result = redact("Patient is 45 years old", RedactionOptions(preserve_age_under_90=False))
        assert result.redacted_text == "Patient is [AGE]"
        assert result.categories == frozenset({C.AGE_OVER_89})

    def test_old_ages_still_aggregated_when_not_preserved(self):
        result = redact("Patient is 95 years old", RedactionOptions(preserve_age_under_90=False))
        assert result.redacted_text == "Patient is 90 or older"


class TestOptions:
    @pytest.mark.parametrize("text, expected", [
        ("Admitted on 03/15/2024", "Admitted on [DATE] 2024"),
        ("Admitted on March 5, 2024", "Admitted on [DATE] 2024"),
        ("Admitted on 2024-03-15", "Admitted on [DATE] 2024"),
    ])
    def test_preserve_years(self, text, expected):
        assert redact(text, RedactionOptions(preserve_years=True)).redacted_text == expected

    def test_options_may_be_a_mapping(self):
        assert redact("Admitted on 03/15/2024", {"preserve_years": True}).redacted_text == (
            "Admitted on [DATE] 2024"
        )

    def test_unknown_option_is_rejected(self):
        with pytest.raises(ValidationError):
            redact("text", {"aggressive": True})

    def test_custom_patterns_run_after_builtin_rules(self):
        options = RedactionOptions(
            custom_patterns=(CustomPattern(r"\bPROJ-\d+\b", "[PROJECT]"),)
        )
        result = redact("Study PROJ-42 enrolled, SSN 123-45-6789", options)
        assert result.redacted_text == "Study [PROJECT] enrolled, SSN [SSN]"
        assert result.items_redacted == 1
        assert result.custom_substitutions == 1

    def test_invalid_custom_regex_is_rejected(self):
        with pytest.raises(ValidationError):
            CustomPattern("(unclosed", "[X]")

    def test_custom_patterns_must_be_custom_pattern(self):
        with pytest.raises(ValidationError):
            RedactionOptions(custom_patterns=("not a pattern",))

    def test_bad_group_reference_is_skipped(self):
        patterns = [CustomPattern("foo", r"\9"), CustomPattern("bar", "[BAR]")]
        text, count = apply_custom_patterns("foo bar", patterns)
        assert text == "foo [BAR]"
        assert count == 1


class TestBadInput:
    @pytest.mark.parametrize("value", [None, 42, 3.5, ["SSN 123-45-6789"]])
    def test_non_string_input_is_fail_soft(self, value):
        result = redact(value)
        assert result.phi_detected is False
        assert result.items_redacted == 0
        assert result.redacted_text == ""

    def test_empty_string(self):
        result = redact("")
        assert result.redacted_text == ""
        assert result.items_redacted == 0

    def test_text_without_phi_is_unchanged(self):
        text = "the patient reports mild headache after exercise"
        result = redact(text)
        assert result.redacted_text == text
        assert result.phi_detected is False

    def test_unexpected_engine_failure_raises_pipeline_error(self, monkeypatch):
        def explode(spans):
            raise RuntimeError("boom")

        monkeypatch.setattr("safe_harbor.service.pipeline.resolve", explode)
        with pytest.raises(PipelineError):
            redact("SSN 123-45-6789")


class TestReplacements:
    def test_prefix_preserving_keeps_label(self):
        replacement = PrefixPreservingReplacement("[MRN]", re.compile("MRN", re.IGNORECASE))
        assert replacement.apply("mrn #12345678") == "mrn: [MRN]"

    def test_prefix_preserving_without_label_falls_back_to_token(self):
        replacement = PrefixPreservingReplacement("[MRN]", re.compile("MRN"))
        assert replacement.apply("12345678") == "[MRN]"

    def test_redact_spans_on_empty_resolution(self):
        result = redact_spans("nothing here", [])
        assert result.redacted_text == "nothing here"
        assert result.phi_detected is False

    def test_to_dict_is_json_friendly(self):
        data = redact("SSN 123-45-6789").to_dict()
        assert data["categories"] == ["SSN"]
        assert data["detected_items"] == [{"category": "SSN", "rule": "ssn_separated"}]
