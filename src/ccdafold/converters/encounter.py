"""Encounter records from the encounters section (46240-8), with their diagnoses."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.converters.condition import EncounterDiagnosisConditionConverter
from ccdafold.converters.location import LocationConverter
from ccdafold.converters.practitioner import PractitionerConverter
from ccdafold.core.cda import child, select, select_one
from ccdafold.models import Coding, DateTime, Period, Record, RecordKind
from ccdafold.values import (
    convert_known_system_oid,
    find_code_element,
    to_codeable_concept,
    to_coding,
    to_datetime_element,
)

ACT_CODE_SYSTEM = convert_known_system_oid("2.16.840.1.113883.5.4")


class EncounterConverter(SectionConverter):
    """Encounters, with the document author as participant.

    The author is resolved once per converter, so an author that cannot be
    converted is reported once rather than for every encounter.
    """

    query = "//cda:section/cda:code[@code='46240-8']/../cda:entry/cda:encounter"

    def __init__(self, patient_id: str):
        super().__init__(patient_id)
        self._author_resolved = False
        self._author: Record | None = None

    def _document_author(self, element: etree._Element, context: ConversionContext) -> Record | None:
        if not self._author_resolved:
            self._author_resolved = True
            author_el = select_one(element, "/cda:ClinicalDocument/cda:author/cda:assignedAuthor")
            if author_el is not None:
                with context.collect():
                    self._author = PractitionerConverter().convert(author_el, context)
        return self._author

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        encounter = new_record(
            RecordKind.ENCOUNTER,
            f"{US_CORE}/us-core-encounter",
            subject=self.subject,
            status="finished",
        )
        cached = set_identifiers(element, encounter, context)
        if cached is not None:
            return cached

        # Class comes from the code's translation only; the code itself is the type.
        translation_el = find_code_element(element, translation_only=True)
        if translation_el is not None and translation_el.get("code"):
            coding = to_coding(translation_el)
            encounter.data["class"] = Coding(system=coding.system, code=coding.code)
        else:
            encounter.data["class"] = Coding(system=ACT_CODE_SYSTEM, code="AMB")

        code_el = child(element, "code")
        if code_el is not None:
            with context.collect():
                encounter.data["type"] = [to_codeable_concept(code_el, "Encounter.type")]

        effective_el = child(element, "effectiveTime")
        if effective_el is not None:
            with context.collect():
                period = to_datetime_element(effective_el, "Encounter.period")
                if isinstance(period, DateTime):
                    period = Period(start=period.value)
                encounter.data["period"] = period

        diagnoses = []
        diagnosis_converter = EncounterDiagnosisConditionConverter(self.patient_id)
        for observation in select(
            element, "cda:entryRelationship/cda:act/cda:entryRelationship/cda:observation"
        ):
            with context.collect():
                condition = diagnosis_converter.convert(observation, context)
                diagnoses.append({"condition": condition.ref()})
        encounter.data["diagnosis"] = diagnoses

        author = self._document_author(element, context)
        if author is not None:
            encounter.data["participant"] = [{"individual": author.ref()}]

        facility_el = select_one(
            element,
            "/cda:ClinicalDocument/cda:componentOf/cda:encompassingEncounter"
            "/cda:location/cda:healthCareFacility",
        )
        if facility_el is not None:
            with context.collect():
                location = LocationConverter().convert(facility_el, context)
                encounter.data["location"] = [{"location": location.ref()}]

        return context.commit(encounter)
