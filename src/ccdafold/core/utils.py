"""Timestamp conversion between CDA TS values and FHIR date/dateTime strings."""

from __future__ import annotations

import re
from datetime import datetime

# YYYY[MM[DD[HH[MM[SS[.S+]]]]]][+/-ZZZZ]
_CDA_TS = re.compile(
    r"^(?P<year>\d{4})"
    r"(?:(?P<month>\d{2})"
    r"(?:(?P<day>\d{2})"
    r"(?:(?P<hour>\d{2})"
    r"(?:(?P<minute>\d{2})"
    r"(?:(?P<second>\d{2})(?:\.(?P<fraction>\d+))?)?)?)?)?)?"
    r"(?P<tz>[+-]\d{4})?$"
)


def _match(value: str) -> re.Match:
    m = _CDA_TS.match(value.strip()) if value else None
    if not m:
        raise ValueError(f"Not a CDA timestamp: {value!r}")
    parts = m.groupdict()
    # Range-check whatever precision was supplied.
    datetime(
        int(parts["year"]),
        int(parts["month"] or 1),
        int(parts["day"] or 1),
        int(parts["hour"] or 0),
        int(parts["minute"] or 0),
        int(parts["second"] or 0),
    )
    return m


def parse_cda_datetime(value: str) -> str:
    """Convert a CDA TS value to a FHIR dateTime string, keeping its precision.

    Examples:
        "2021" -> "2021"
        "20211123" -> "2021-11-23"
        "20220201073445-0600" -> "2022-02-01T07:34:45-06:00"
        "202202010734" -> "2022-02-01T07:34:00+00:00"

    Times without an offset are taken as UTC. Raises ValueError for anything
    that is not a well-formed TS value.
    """
    p = _match(value).groupdict()
    result = p["year"]
    if p["month"]:
        result += f"-{p['month']}"
    if p["day"]:
        result += f"-{p['day']}"
    if p["hour"]:
        result += f"T{p['hour']}:{p['minute'] or '00'}:{p['second'] or '00'}"
        if p["fraction"]:
            result += f".{p['fraction']}"
        tz = p["tz"] or "+0000"
        result += f"{tz[:3]}:{tz[3:]}"
    return result


def parse_cda_date(value: str) -> str:
    """Convert a CDA TS value to a FHIR date string, dropping any time portion."""
    p = _match(value).groupdict()
    result = p["year"]
    if p["month"]:
        result += f"-{p['month']}"
    if p["day"]:
        result += f"-{p['day']}"
    return result
