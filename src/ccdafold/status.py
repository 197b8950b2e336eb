"""Closed mapping tables from CDA codes to record field codes.

Each table is total over its declared domain. Values outside the domain raise
UnrecognizedValueError instead of passing through.
"""

from __future__ import annotations

from lxml import etree

from ccdafold.errors import UnrecognizedValueError

# Act status (statusCode/@code) -> clinical status of a concern
CLINICAL_STATUS = {
    "aborted": "resolved",
    "completed": "resolved",
    "suspended": "inactive",
    "active": "active",
}

ADDRESS_USE = {
    "H": "home",
    "HP": "home",
    "WP": "work",
    "TMP": "temp",
    "BAD": "old",
}

NAME_USE = {
    "C": "usual",
    "L": "usual",
    "P": "nickname",
}

TELECOM_USE = {
    "H": "home",
    "HP": "home",
    "MC": "mobile",
    "WP": "work",
    "TMP": "temp",
    "BAD": "old",
}

ADMINISTRATIVE_GENDER = {
    "male": "male",
    "female": "female",
    "other": "other",
    "unknown": "unknown",
    "undifferentiated": "other",
}

ADMINISTRATIVE_GENDER_CODES = {
    "M": "male",
    "F": "female",
    "UN": "other",
}

LANGUAGE_DISPLAY = {
    "en": "English",
    "en-au": "English (Australia)",
    "en-ca": "English (Canada)",
    "en-in": "English (India)",
    "en-gb": "English (Great Britain)",
    "en-nz": "English (New Zealand)",
    "en-sg": "English (Singapore)",
    "en-us": "English (United States)",
    "es": "Spanish",
    "de": "German",
    "da": "Danish",
    "fr": "French",
}

# Only a completed administration counts as given; every other act status
# (active, aborted, new, held, ...) means the dose was not given.
IMMUNIZATION_COMPLETED = "completed"

# FHIR medication request status literals, matched case-insensitively
MEDICATION_REQUEST_STATUS = {
    code: code
    for code in (
        "active",
        "on-hold",
        "cancelled",
        "completed",
        "entered-in-error",
        "stopped",
        "draft",
        "unknown",
    )
}

# Severity observation displayName (lower-cased) -> reaction severity
ALLERGY_SEVERITY = {
    "mild": "mild",
    "moderate": "moderate",
    "severe": "severe",
}


def lookup(
    table: dict[str, str],
    value: str | None,
    element: etree._Element | None = None,
    attribute: str | None = None,
    xpath: str | None = None,
    target_path: str | None = None,
) -> str:
    """Map ``value`` through ``table`` or raise UnrecognizedValueError."""
    try:
        return table[value]
    except KeyError:
        raise UnrecognizedValueError(
            element, value, xpath=xpath, attribute=attribute, target_path=target_path
        ) from None


def normalize_status(
    value: str | None,
    element: etree._Element | None = None,
    target_path: str | None = None,
) -> str:
    """Map an act status code onto the clinical status lifecycle.

    ``aborted`` and ``completed`` become ``resolved``, ``suspended`` becomes
    ``inactive`` and ``active`` stays ``active``.
    """
    return lookup(CLINICAL_STATUS, value, element, attribute="code", target_path=target_path)


def immunization_status(value: str | None) -> str:
    """Map an act status code onto an immunization status. Total: never raises."""
    return "completed" if value == IMMUNIZATION_COMPLETED else "not-done"
