"""Observation records: laboratory results, vital signs, smoking status and
functional, mental and health-concern status observations."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.core.cda import child
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import CodeableConcept, DateTime, Period, Record, RecordKind, Reference
from ccdafold.values import find_code_element, to_codeable_concept, to_datetime_element, to_typed_value

CATEGORY_SYSTEM = "http://terminology.hl7.org/CodeSystem/observation-category"

RESULT_QUERY = (
    "//cda:section/cda:code[@code='30954-2']/.."
    "/cda:entry/cda:organizer/cda:component/cda:observation"
)


def new_observation(subject: Reference, category: str, profile: str | None = None) -> Record:
    """A final observation of ``category`` about ``subject``."""
    return new_record(
        RecordKind.OBSERVATION,
        profile,
        status="final",
        subject=subject,
        category=[CodeableConcept.of(CATEGORY_SYSTEM, category)],
    )


def read_observation(
    element: etree._Element,
    observation: Record,
    context: ConversionContext,
    value_types: list[str] | None = None,
) -> None:
    """Fill code, effective[x] and value[x]; decode failures are collected."""
    with context.collect():
        code_el = find_code_element(element)
        if code_el is None:
            raise RequiredValueNotFoundError(element, xpath="code", target_path="Observation.code")
        observation.data["code"] = to_codeable_concept(code_el, "Observation.code")

    effective_el = child(element, "effectiveTime")
    if effective_el is not None:
        with context.collect():
            observation.set_choice("effective", to_datetime_element(effective_el, "Observation.effective"))

    value_el = child(element, "value")
    if value_el is not None:
        with context.collect():
            observation.set_choice("value", to_typed_value(value_el, value_types, "Observation.value"))


class ResultObservationConverter(SectionConverter):
    query = RESULT_QUERY

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        observation = new_observation(self.subject, "laboratory", f"{US_CORE}/us-core-observation-lab")
        cached = set_identifiers(element, observation, context)
        if cached is not None:
            return cached

        read_observation(element, observation, context)
        return context.commit(observation)


class VitalSignObservationConverter(SectionConverter):
    query = (
        "//cda:section/cda:code[@code='8716-3']/.."
        "/cda:entry/cda:organizer/cda:component/cda:observation"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        observation = new_observation(
            self.subject, "vital-signs", "http://hl7.org/fhir/StructureDefinition/vitalsigns"
        )
        cached = set_identifiers(element, observation, context)
        if cached is not None:
            return cached

        read_observation(element, observation, context)
        if observation.get_choice("effective") is None:
            raise RequiredValueNotFoundError(
                element, xpath="effectiveTime", target_path="Observation.effective"
            )
        return context.commit(observation)


class SmokingStatusObservationConverter(SectionConverter):
    """Smoking status is reported with ``issued`` instead of ``effective``."""

    query = (
        "//cda:section/cda:code[@code='29762-2']/.."
        "/cda:entry/cda:observation/cda:code[@code='72166-2']/.."
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        observation = new_observation(
            self.subject, "social-history", f"{US_CORE}/us-core-smokingstatus"
        )
        cached = set_identifiers(element, observation, context)
        if cached is not None:
            return cached

        read_observation(element, observation, context, ["cd", "ce", "cv", "co"])
        if child(element, "value") is None:
            context.add_error(
                RequiredValueNotFoundError(element, xpath="value", target_path="Observation.value")
            )

        effective = observation.get_choice("effective")
        observation.set_choice("effective", None)
        if isinstance(effective, DateTime):
            observation.data["issued"] = effective.value
        elif isinstance(effective, Period):
            observation.data["issued"] = effective.start
        else:
            context.add_error(
                RequiredValueNotFoundError(
                    element, xpath="effectiveTime", target_path="Observation.effective"
                )
            )
        return context.commit(observation)


class StatusObservationConverter(SectionConverter):
    """Functional status, mental status and health concern observations."""

    query = (
        "//cda:section/cda:code[@code='47420-5']/../cda:entry/cda:observation"
        " | //cda:section/cda:code[@code='10190-7']/../cda:entry/cda:observation"
        " | //cda:section/cda:code[@code='75310-3']/../cda:entry/cda:observation"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        observation = new_observation(self.subject, "exam")
        cached = set_identifiers(element, observation, context)
        if cached is not None:
            return cached

        read_observation(element, observation, context)
        return context.commit(observation)
