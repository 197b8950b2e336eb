"""Record and value shapes produced by the converters.

Records follow FHIR R4 resource naming. The engine only relies on a record's
kind, id and identifiers; everything else lives in ``Record.data`` and is owned
by the converter that built it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Union

NULL_FLAVOR_EXTENSION = "http://hl7.org/fhir/StructureDefinition/iso21090-nullFlavor"


class RecordKind(str, Enum):
    ALLERGY_INTOLERANCE = "AllergyIntolerance"
    CONDITION = "Condition"
    DEVICE = "Device"
    DIAGNOSTIC_REPORT = "DiagnosticReport"
    ENCOUNTER = "Encounter"
    GOAL = "Goal"
    IMMUNIZATION = "Immunization"
    LOCATION = "Location"
    MEDICATION = "Medication"
    MEDICATION_REQUEST = "MedicationRequest"
    MEDICATION_STATEMENT = "MedicationStatement"
    OBSERVATION = "Observation"
    ORGANIZATION = "Organization"
    PATIENT = "Patient"
    PRACTITIONER = "Practitioner"
    PRACTITIONER_ROLE = "PractitionerRole"
    PROCEDURE = "Procedure"
    PROVENANCE = "Provenance"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def serialize(value: Any) -> Any:
    """Turn value shapes into plain JSON-compatible data, dropping empty fields."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value):
        out = {}
        for f in fields(value):
            item = serialize(getattr(value, f.name))
            if item is None or item == [] or item == {}:
                continue
            out[_camel(f.name)] = item
        return out
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items() if v is not None}
    return value


@dataclass
class Coding:
    system: str | None = None
    code: str | None = None
    display: str | None = None
    null_flavor: str | None = None  # set instead of code when the source says nullFlavor

    def to_dict(self) -> dict:
        out = serialize({"system": self.system, "code": self.code, "display": self.display})
        if self.null_flavor:
            out["_code"] = {
                "extension": [{"url": NULL_FLAVOR_EXTENSION, "valueCode": self.null_flavor}]
            }
        return out


@dataclass
class CodeableConcept:
    coding: list[Coding] = field(default_factory=list)
    text: str | None = None

    @classmethod
    def of(cls, system: str, code: str, display: str | None = None) -> CodeableConcept:
        return cls(coding=[Coding(system=system, code=code, display=display)])

    @property
    def first(self) -> Coding | None:
        return self.coding[0] if self.coding else None


@dataclass
class String:
    value: str | None

    def to_dict(self):
        return self.value


@dataclass
class Quantity:
    value: Decimal
    unit: str | None = None


@dataclass
class DateTime:
    """A point in time as a FHIR dateTime string."""

    value: str

    def to_dict(self):
        return self.value


@dataclass
class Period:
    start: str | None = None
    end: str | None = None


TypedValue = Union[CodeableConcept, String, Quantity, DateTime, Period]

# Suffix used when a typed value fills a FHIR choice element such as value[x].
CHOICE_SUFFIX = {
    CodeableConcept: "CodeableConcept",
    String: "String",
    Quantity: "Quantity",
    DateTime: "DateTime",
    Period: "Period",
}


@dataclass
class Reference:
    reference: str | None = None
    display: str | None = None


@dataclass
class Identifier:
    system: str | None = None
    value: str | None = None
    assigner: Reference | None = None


@dataclass
class Address:
    use: str | None = None
    line: list[str] = field(default_factory=list)
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


@dataclass
class HumanName:
    use: str | None = None
    family: str | None = None
    given: list[str] = field(default_factory=list)
    prefix: list[str] = field(default_factory=list)
    suffix: list[str] = field(default_factory=list)


@dataclass
class ContactPoint:
    system: str
    value: str
    use: str | None = None


@dataclass
class Extension:
    url: str
    value: Any = None
    extension: list[Extension] = field(default_factory=list)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"url": self.url}
        if self.extension:
            out["extension"] = [e.to_dict() for e in self.extension]
        if self.value is not None:
            suffix = CHOICE_SUFFIX.get(type(self.value))
            if suffix is None:
                suffix = {Coding: "Coding", Address: "Address"}.get(type(self.value), "String")
            out[f"value{suffix}"] = serialize(self.value)
        return out


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(eq=False)
class Record:
    """One converted record.

    ``id`` is assigned once at construction and is the key every other record
    uses to refer to this one (see ``reference``).
    """

    kind: RecordKind
    id: str = field(default_factory=new_id)
    profile: list[str] = field(default_factory=list)
    identifier: list[Identifier] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def reference(self) -> str:
        return f"urn:uuid:{self.id}"

    def ref(self, display: str | None = None) -> Reference:
        return Reference(reference=self.reference, display=display)

    def set_choice(self, name: str, value: TypedValue | None) -> None:
        """Store a typed value under a FHIR choice element, e.g. onset[x]."""
        for suffix in CHOICE_SUFFIX.values():
            self.data.pop(f"{name}{suffix}", None)
        if value is not None:
            self.data[f"{name}{CHOICE_SUFFIX[type(value)]}"] = value

    def get_choice(self, name: str) -> TypedValue | None:
        for suffix in CHOICE_SUFFIX.values():
            if f"{name}{suffix}" in self.data:
                return self.data[f"{name}{suffix}"]
        return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"resourceType": self.kind.value, "id": self.id}
        if self.profile:
            out["meta"] = {"profile": list(self.profile)}
        if self.identifier:
            out["identifier"] = serialize(self.identifier)
        for key, value in self.data.items():
            item = serialize(value)
            if item is None or item == [] or item == {}:
                continue
            out[key] = item
        return out


@dataclass
class Bundle:
    """The outcome of converting one document."""

    records: list[Record] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def of_kind(self, kind: RecordKind) -> list[Record]:
        return [r for r in self.records if r.kind is kind]

    def counts(self) -> dict[str, int]:
        """Return record counts per kind, in first-seen order."""
        result: dict[str, int] = {}
        for r in self.records:
            result[r.kind.value] = result.get(r.kind.value, 0) + 1
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "resourceType": "Bundle",
            "type": "collection",
            "timestamp": self.timestamp,
            "entry": [
                {"fullUrl": r.reference, "resource": r.to_dict()} for r in self.records
            ],
        }
