"""Tests for ccdafold.status mapping tables."""

import pytest

from ccdafold.errors import UnrecognizedValueError
from ccdafold.status import (
    ADMINISTRATIVE_GENDER_CODES,
    LANGUAGE_DISPLAY,
    MEDICATION_REQUEST_STATUS,
    immunization_status,
    lookup,
    normalize_status,
)


class TestNormalizeStatus:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("aborted", "resolved"),
            ("completed", "resolved"),
            ("suspended", "inactive"),
            ("active", "active"),
        ],
    )
    def test_known(self, value, expected):
        assert normalize_status(value) == expected

    @pytest.mark.parametrize("value", ["new", "held", "", None, "ACTIVE"])
    def test_unknown_is_loud(self, value):
        with pytest.raises(UnrecognizedValueError):
            normalize_status(value)

    def test_error_carries_target(self, fragment):
        el = fragment('<statusCode code="new"/>')
        with pytest.raises(UnrecognizedValueError) as exc:
            normalize_status("new", el, "AllergyIntolerance.clinicalStatus")
        assert exc.value.value == "new"
        assert exc.value.source_path == "/wrapper/statusCode[@code]"
        assert exc.value.target_path == "AllergyIntolerance.clinicalStatus"


class TestLookup:
    def test_gender(self):
        assert lookup(ADMINISTRATIVE_GENDER_CODES, "UN") == "other"

    def test_language(self):
        assert lookup(LANGUAGE_DISPLAY, "en-us") == "English (United States)"

    def test_miss(self):
        with pytest.raises(UnrecognizedValueError) as exc:
            lookup(LANGUAGE_DISPLAY, "tlh", attribute="code", target_path="Patient.communication")
        assert "'tlh' is unrecognized" in str(exc.value)


class TestImmunizationStatus:
    def test_completed(self):
        assert immunization_status("completed") == "completed"

    @pytest.mark.parametrize("value", ["active", "aborted", "new", "held", "cancelled", None])
    def test_everything_else_is_not_done(self, value):
        assert immunization_status(value) == "not-done"


class TestMedicationRequestStatus:
    def test_literals_map_to_themselves(self):
        assert lookup(MEDICATION_REQUEST_STATUS, "on-hold") == "on-hold"
        assert lookup(MEDICATION_REQUEST_STATUS, "entered-in-error") == "entered-in-error"

    def test_act_status_is_not_a_request_status(self):
        with pytest.raises(UnrecognizedValueError):
            lookup(MEDICATION_REQUEST_STATUS, "aborted")
