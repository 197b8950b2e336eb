"""Condition records from the problem list, health concerns and encounter diagnoses.

All three share one record kind, so a problem that is also listed as an
encounter diagnosis under the same id collapses to a single condition.
"""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.converters.provenance import add_provenance
from ccdafold.core.cda import child, select_one
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import CodeableConcept, Record, RecordKind, Reference
from ccdafold.values import find_code_element, to_codeable_concept, to_datetime_element, to_typed_value

CATEGORY_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-category"
CLINICAL_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-clinical"
VERIFICATION_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-ver-status"


def new_condition(subject: Reference, category: str, category_display: str) -> Record:
    """An active, confirmed condition of ``category`` about ``subject``."""
    return new_record(
        RecordKind.CONDITION,
        f"{US_CORE}/us-core-condition",
        subject=subject,
        clinicalStatus=CodeableConcept.of(CLINICAL_SYSTEM, "active", "Active"),
        verificationStatus=CodeableConcept.of(VERIFICATION_SYSTEM, "confirmed", "Confirmed"),
        category=[CodeableConcept.of(CATEGORY_SYSTEM, category, category_display)],
    )


def read_value_code(element: etree._Element) -> CodeableConcept:
    """The condition code from the observation's ``value``, translation first."""
    code_el = find_code_element(element, code_element="value")
    if code_el is None:
        raise RequiredValueNotFoundError(element, xpath="value", target_path="Condition.code")
    return to_codeable_concept(code_el, "Condition.code")


def set_onset(element: etree._Element, condition: Record, context: ConversionContext) -> None:
    effective_el = child(element, "effectiveTime")
    if effective_el is not None:
        with context.collect():
            condition.set_choice("onset", to_datetime_element(effective_el, "Condition.onset"))


class ProblemListConditionConverter(SectionConverter):
    query = (
        "//cda:section/cda:code[@code='11450-4']/.."
        "/cda:entry/cda:act/cda:entryRelationship/cda:observation"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        condition = new_condition(self.subject, "problem-list-item", "Problem List Item")
        cached = set_identifiers(element, condition, context)
        if cached is not None:
            return cached

        condition.data["code"] = read_value_code(element)
        set_onset(element, condition, context)

        context.commit(condition)
        add_provenance(element, condition, context)
        return condition


class HealthConcernConditionConverter(SectionConverter):
    query = "//cda:section/cda:code[@code='75310-3']/../cda:entry/cda:act"

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        condition = new_condition(self.subject, "health-concern", "Health Concern")
        cached = set_identifiers(element, condition, context)
        if cached is not None:
            return cached

        # The concern act itself is uncoded; the concern is in its observation's value.
        with context.collect():
            value_el = select_one(element, "cda:entryRelationship/cda:observation/cda:value")
            if value_el is None:
                raise RequiredValueNotFoundError(
                    element, xpath="entryRelationship/observation/value", target_path="Condition.code"
                )
            condition.data["code"] = to_typed_value(value_el, ["co", "cd"], "Condition.code")
        set_onset(element, condition, context)

        return context.commit(condition)


class EncounterDiagnosisConditionConverter(SectionConverter):
    """Diagnoses recorded on an encounter; invoked by the encounter converter."""

    query = (
        "//cda:section/cda:code[@code='46240-8']/.."
        "/cda:entry/cda:encounter/cda:entryRelationship/cda:act/cda:entryRelationship/cda:observation"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        condition = new_condition(self.subject, "encounter-diagnosis", "Encounter Diagnosis")
        cached = set_identifiers(element, condition, context)
        if cached is not None:
            return cached

        condition.data["code"] = read_value_code(element)
        set_onset(element, condition, context)

        return context.commit(condition)
