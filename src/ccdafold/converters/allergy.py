"""AllergyIntolerance records from the allergies section (48765-2)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.converters.provenance import add_provenance
from ccdafold.core.cda import attr, child, children
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import CodeableConcept, Record, RecordKind
from ccdafold.status import ALLERGY_SEVERITY, lookup, normalize_status
from ccdafold.values import find_code_element, to_codeable_concept, to_datetime_element

CLINICAL_SYSTEM = "http://terminology.hl7.org/CodeSystem/allergyintolerance-clinical"
VERIFICATION_SYSTEM = "http://terminology.hl7.org/CodeSystem/allergyintolerance-verification"
NO_KNOWN_ALLERGY = CodeableConcept.of("http://snomed.info/sct", "716186003", "No known allergy")

REACTION_TEMPLATE = "2.16.840.1.113883.10.20.22.4.9"
SEVERITY_TEMPLATE = "2.16.840.1.113883.10.20.22.4.8"


class AllergyIntoleranceConverter(SectionConverter):
    query = (
        "//cda:section/cda:code[@code='48765-2']/.."
        "/cda:entry/cda:act/cda:entryRelationship/cda:observation"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        allergy = new_record(
            RecordKind.ALLERGY_INTOLERANCE,
            f"{US_CORE}/us-core-allergyintolerance",
            patient=self.subject,
        )
        cached = set_identifiers(element, allergy, context)
        if cached is not None:
            return cached

        # negationInd="true" asserts the absence of any known allergy
        if (attr(element, "negationInd") or "").lower() == "true":
            allergy.data["code"] = NO_KNOWN_ALLERGY
            allergy.data["verificationStatus"] = CodeableConcept.of(VERIFICATION_SYSTEM, "unconfirmed")
            return context.commit(allergy)

        effective_el = child(element, "effectiveTime")
        if effective_el is not None:
            with context.collect():
                allergy.set_choice("onset", to_datetime_element(effective_el, "AllergyIntolerance.onset"))

        status_el = child(element, "statusCode")
        if status_el is not None:
            with context.collect():
                status = normalize_status(
                    attr(status_el, "code"), status_el, "AllergyIntolerance.clinicalStatus.coding.code"
                )
                allergy.data["clinicalStatus"] = CodeableConcept.of(CLINICAL_SYSTEM, status)
                allergy.data["verificationStatus"] = CodeableConcept.of(VERIFICATION_SYSTEM, "confirmed")

        with context.collect():
            substance_el = find_code_element(element, "cda:participant/cda:participantRole/cda:playingEntity")
            if substance_el is None:
                raise RequiredValueNotFoundError(
                    element,
                    xpath="participant/participantRole/playingEntity/code",
                    target_path="AllergyIntolerance.code",
                )
            allergy.data["code"] = to_codeable_concept(substance_el, "AllergyIntolerance.code")

        with context.collect():
            reaction = self._reaction(element, context)
            if reaction is not None:
                allergy.data["reaction"] = [reaction]

        context.commit(allergy)
        add_provenance(element, allergy, context)
        return allergy

    def _reaction(self, element: etree._Element, context: ConversionContext) -> dict | None:
        """Gather manifestations and severity from the reaction observations.

        Returns None when the allergy has no reaction or severity observation.
        """
        reaction = None
        manifestations = []
        for relationship in children(element, "entryRelationship"):
            observation = child(relationship, "observation")
            template = attr(child(observation, "templateId"), "root")
            if template not in (REACTION_TEMPLATE, SEVERITY_TEMPLATE):
                continue
            if reaction is None:
                reaction = {"manifestation": manifestations}

            with context.collect():
                code_el = find_code_element(relationship, "cda:observation", "value")
                if code_el is None:
                    continue
                if template == REACTION_TEMPLATE:
                    manifestations.append(
                        to_codeable_concept(code_el, "AllergyIntolerance.reaction.manifestation")
                    )
                else:
                    display = attr(code_el, "displayName")
                    reaction["severity"] = lookup(
                        ALLERGY_SEVERITY, display.lower() if display else None, code_el,
                        attribute="displayName", target_path="AllergyIntolerance.reaction.severity",
                    )

        if reaction is not None and not manifestations:
            raise RequiredValueNotFoundError(
                element, xpath="entryRelationship/observation/value",
                target_path="AllergyIntolerance.reaction.manifestation",
            )
        return reaction
