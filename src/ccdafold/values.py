"""Decoders from CDA data types to record value shapes.

The central entry point is ``to_typed_value``, which decodes a ``value``
element by its explicit ``xsi:type``. The remaining helpers decode the data
types converters read directly (CD, II, AD, PN, TEL, TS, IVL_TS, PQ).
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from lxml import etree

from ccdafold.core.cda import XSI_NS, attr, child, children, first_text, local_name, select_one
from ccdafold.core.utils import parse_cda_date, parse_cda_datetime
from ccdafold.errors import (
    RequiredValueNotFoundError,
    UnexpectedTypeError,
    UnrecognizedValueError,
)
from ccdafold.models import (
    Address,
    CodeableConcept,
    Coding,
    ContactPoint,
    DateTime,
    HumanName,
    Identifier,
    Period,
    Quantity,
    Reference,
    String,
    TypedValue,
)
from ccdafold.status import ADDRESS_USE, NAME_USE, TELECOM_USE, lookup

# https://terminology.hl7.org/ValueSet-v3-NullFlavor.html
NULL_FLAVORS = frozenset({
    "NI", "INV", "DER", "OTH", "NINF", "PINF", "UNC", "MSK",
    "NA", "UNK", "ASKU", "NAV", "NASK", "NAVU", "QS", "TRC", "NP",
})

KNOWN_SYSTEM_OIDS = {
    "2.16.840.1.113883.6.1": "http://loinc.org",
    "2.16.840.1.113883.6.96": "http://snomed.info/sct",
    "2.16.840.1.113883.6.88": "http://www.nlm.nih.gov/research/umls/rxnorm",
    "2.16.840.1.113883.3.88.12.3221.8.9": "http://snomed.info/sct",
    "2.16.840.1.113883.5.4": "http://terminology.hl7.org/CodeSystem/v3-ActCode",
    "2.16.840.1.113883.5.83": "http://terminology.hl7.org/CodeSystem/v3-ObservationInterpretation",
    "2.16.840.1.113883.4.1": "http://hl7.org/fhir/sid/us-ssn",
    "2.16.840.1.113883.4.6": "http://hl7.org/fhir/sid/us-npi",
    "2.16.840.1.113883.4.572": "http://hl7.org/fhir/sid/us-medicare",
    "2.16.840.1.113883.4.927": "http://hl7.org/fhir/sid/us-mbi",
    "2.16.840.1.113883.6.59": "http://hl7.org/fhir/sid/cvx",
    "2.16.840.1.113883.6.101": "http://nucc.org/provider-taxonomy",
    "2.16.840.1.113883.6.12": "http://www.ama-assn.org/go/cpt",
    "2.16.840.1.113883.6.90": "http://hl7.org/fhir/sid/icd-10-cm",
}

CODED_TYPES = {"cd", "ce", "cv", "co"}
TEXT_TYPES = {"st"}
QUANTITY_TYPES = {"pq"}
TEMPORAL_TYPES = {"ts", "ivl_ts"}


def convert_known_system_oid(system: str | None) -> str | None:
    """Map a known code system OID to its canonical URI; pass anything else through."""
    return KNOWN_SYSTEM_OIDS.get(system, system)


def to_coding(el: etree._Element) -> Coding:
    return Coding(
        system=convert_known_system_oid(el.get("codeSystem")),
        code=el.get("code"),
        display=el.get("displayName"),
    )


def to_codeable_concept(el: etree._Element, target_path: str | None = None) -> CodeableConcept:
    """Build a concept from a CD-like element.

    Without a code, a recognized ``nullFlavor`` is carried as an extension on
    the coding; an unrecognized one is an error.
    """
    code = el.get("code")
    coding = Coding(
        system=convert_known_system_oid(el.get("codeSystem")),
        code=code.strip() if code is not None else None,
        display=el.get("displayName"),
    )
    if not coding.code:
        coding.code = None
        null_flavor = attr(el, "nullFlavor")
        if null_flavor is not None:
            if null_flavor not in NULL_FLAVORS:
                raise UnrecognizedValueError(
                    el, null_flavor, attribute="nullFlavor", target_path=target_path
                )
            coding.null_flavor = null_flavor
    return CodeableConcept(coding=[coding])


def find_code_element(
    el: etree._Element,
    xpath: str | None = None,
    code_element: str = "code",
    translation_only: bool = False,
) -> etree._Element | None:
    """Find the code to use for ``el``, preferring its translation.

    Looks at ``<code_element>/translation`` under ``el`` (or under the element
    selected by ``xpath`` relative to ``el``). If there is no translation the
    code element itself is returned, unless ``translation_only`` is set.
    """
    start = select_one(el, xpath) if xpath else el
    if start is None:
        return None
    code_el = child(start, code_element)
    found = child(code_el, "translation")
    if found is None and not translation_only:
        found = code_el
    return found


def to_quantity(el: etree._Element, target_path: str | None = None) -> Quantity:
    value = attr(el, "value")
    if value is None:
        raise RequiredValueNotFoundError(el, xpath="[@value]", target_path=_sub(target_path, "value"))
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise UnrecognizedValueError(el, value, attribute="value", target_path=target_path) from None
    if not amount.is_finite():
        raise UnrecognizedValueError(el, value, attribute="value", target_path=target_path)
    return Quantity(value=amount, unit=el.get("unit"))


def _timestamp(el: etree._Element, value: str, parse, target_path: str | None) -> str:
    try:
        return parse(value)
    except ValueError:
        raise UnrecognizedValueError(el, value, attribute="value", target_path=target_path) from None


def to_interval(el: etree._Element, target_path: str | None = None) -> Period | None:
    """Decode an IVL_TS into a period, only when both bounds carry values."""
    low_el = child(el, "low")
    high_el = child(el, "high")
    low = attr(low_el, "value")
    high = attr(high_el, "value")
    if low is None or high is None:
        return None
    return Period(
        start=_timestamp(low_el, low, parse_cda_datetime, target_path),
        end=_timestamp(high_el, high, parse_cda_datetime, target_path),
    )


def _point_in_time(el: etree._Element) -> tuple[etree._Element, str] | tuple[None, None]:
    low_el = child(el, "low")
    if attr(low_el, "value") is not None:
        return low_el, low_el.get("value")
    if attr(el, "value") is not None:
        return el, el.get("value")
    return None, None


def to_datetime(el: etree._Element, target_path: str | None = None) -> DateTime | None:
    """Decode a TS, or the low bound of an IVL_TS, into a point in time."""
    source, value = _point_in_time(el)
    if source is None:
        return None
    return DateTime(_timestamp(source, value, parse_cda_datetime, target_path))


def to_date(el: etree._Element, target_path: str | None = None) -> str | None:
    """Like to_datetime but truncated to a FHIR date."""
    source, value = _point_in_time(el)
    if source is None:
        return None
    return _timestamp(source, value, parse_cda_date, target_path)


def to_datetime_element(el: etree._Element, target_path: str | None = None) -> Period | DateTime | None:
    """Decode a time as a period when both bounds exist, else as a point in time."""
    return to_interval(el, target_path) or to_datetime(el, target_path)


def to_typed_value(
    el: etree._Element,
    expected_types: list[str] | None = None,
    target_path: str | None = None,
) -> TypedValue:
    """Decode a ``value`` element according to its ``xsi:type``.

    Args:
        el: The ``value`` element.
        expected_types: Optional allow-list of types (case-insensitive).
        target_path: Field the value is destined for, used in errors.

    Raises:
        RequiredValueNotFoundError: no ``xsi:type`` attribute.
        UnexpectedTypeError: type outside ``expected_types``.
        UnrecognizedValueError: type this decoder does not know, with no
            ``expected_types`` given.
    """
    if local_name(el) != "value":
        raise ValueError("Only 'value' elements can be decoded as typed values")

    raw = attr(el, f"{{{XSI_NS}}}type")
    if raw is None:
        raise RequiredValueNotFoundError(el, xpath="[@type]", target_path=target_path)
    value_type = raw.split(":")[-1].lower()
    # An allow-list rejects everything outside it, known type or not.
    if expected_types and value_type not in {t.lower() for t in expected_types}:
        raise UnexpectedTypeError(el, raw, target_path=target_path)
    if value_type not in CODED_TYPES | TEXT_TYPES | QUANTITY_TYPES | TEMPORAL_TYPES:
        raise UnrecognizedValueError(el, raw, attribute="type", target_path=target_path)

    if value_type in CODED_TYPES:
        return to_codeable_concept(el, target_path)
    if value_type in TEXT_TYPES:
        return String(first_text(el))
    if value_type in QUANTITY_TYPES:
        return to_quantity(el, target_path)
    result = to_datetime_element(el, target_path)
    if result is None:
        raise RequiredValueNotFoundError(el, xpath="[@value]", target_path=target_path)
    return result


def to_identifier(
    el: etree._Element,
    required: bool = False,
    target_path: str | None = None,
) -> Identifier:
    """Decode an II element; ``root`` becomes the system, ``extension`` the value."""
    system = attr(el, "root")
    if required and system is None:
        raise RequiredValueNotFoundError(el, xpath="[@root]", target_path=_sub(target_path, "system"))
    value = attr(el, "extension")
    if required and value is None:
        raise RequiredValueNotFoundError(el, xpath="[@extension]", target_path=_sub(target_path, "value"))

    identifier = Identifier(system=convert_known_system_oid(system), value=value)
    authority = attr(el, "assigningAuthorityName")
    if authority is not None:
        identifier.assigner = Reference(display=authority)
    return identifier


def to_address(el: etree._Element, target_path: str | None = None) -> Address:
    use = el.get("use")
    return Address(
        use=lookup(ADDRESS_USE, use, el, attribute="use", target_path=_sub(target_path, "use"))
        if use is not None else None,
        line=[first_text(line) or "" for line in children(el, "streetAddressLine")],
        city=_text(child(el, "city")),
        state=_text(child(el, "state")),
        postal_code=_text(child(el, "postalCode")),
        country=_text(child(el, "country")),
    )


def to_human_name(el: etree._Element, target_path: str | None = None) -> HumanName:
    use = el.get("use")
    return HumanName(
        use=lookup(NAME_USE, use, el, attribute="use", target_path=_sub(target_path, "use"))
        if use is not None else None,
        family=_text(child(el, "family")),
        given=[_text(g) or "" for g in children(el, "given")],
        prefix=[_text(p) or "" for p in children(el, "prefix")],
        suffix=[_text(s) or "" for s in children(el, "suffix")],
    )


def to_contact_point(el: etree._Element, target_path: str | None = None) -> ContactPoint:
    value = attr(el, "value")
    if value is None:
        raise RequiredValueNotFoundError(el, xpath="[@value]", target_path=_sub(target_path, "value"))

    use = el.get("use")
    if use is not None:
        use = lookup(TELECOM_USE, use, el, attribute="use", target_path=_sub(target_path, "use"))

    system = "phone"
    if value.startswith("tel:"):
        value = value[len("tel:"):]
    elif value.startswith("mailto:"):
        system = "email"
        value = value[len("mailto:"):]
    return ContactPoint(system=system, value=value, use=use)


def _text(el: etree._Element | None) -> str | None:
    if el is None or el.text is None:
        return None
    return el.text.strip() or None


def _sub(target_path: str | None, name: str) -> str | None:
    return f"{target_path}.{name}" if target_path else None
