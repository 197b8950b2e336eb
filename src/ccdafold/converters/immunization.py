"""Immunization records from the immunizations section (11369-6)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.core.cda import attr, child, first_text, select_one
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.status import immunization_status
from ccdafold.values import to_codeable_concept, to_datetime


class ImmunizationConverter(SectionConverter):
    query = "//cda:section/cda:code[@code='11369-6']/../cda:entry/cda:substanceAdministration"

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        immunization = new_record(
            RecordKind.IMMUNIZATION,
            f"{US_CORE}/us-core-immunization",
            patient=self.subject,
            primarySource=True,
        )
        cached = set_identifiers(element, immunization, context)
        if cached is not None:
            return cached

        immunization.data["status"] = immunization_status(attr(child(element, "statusCode"), "code"))

        with context.collect():
            effective_el = child(element, "effectiveTime")
            occurrence = to_datetime(effective_el, "Immunization.occurrence") if effective_el is not None else None
            if occurrence is None:
                raise RequiredValueNotFoundError(
                    element, xpath="effectiveTime", target_path="Immunization.occurrence"
                )
            immunization.set_choice("occurrence", occurrence)

        material_el = select_one(
            element, "cda:consumable/cda:manufacturedProduct/cda:manufacturedMaterial"
        )
        code_el = child(material_el, "code")
        with context.collect():
            if code_el is None:
                raise RequiredValueNotFoundError(
                    element,
                    xpath="consumable/manufacturedProduct/manufacturedMaterial/code",
                    target_path="Immunization.vaccineCode",
                )
            immunization.data["vaccineCode"] = to_codeable_concept(code_el, "Immunization.vaccineCode")

        lot_el = child(material_el, "lotNumberText")
        if lot_el is not None:
            immunization.data["lotNumber"] = first_text(lot_el)

        reason_el = select_one(element, "cda:entryRelationship/cda:observation/cda:code")
        if reason_el is not None:
            with context.collect():
                immunization.data["statusReason"] = to_codeable_concept(
                    reason_el, "Immunization.statusReason"
                )

        return context.commit(immunization)
