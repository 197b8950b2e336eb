"""Medication records from consumable/manufacturedProduct elements."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, new_record
from ccdafold.core.cda import child
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import find_code_element, to_codeable_concept


class MedicationConverter:
    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        code_el = find_code_element(element, "cda:manufacturedMaterial")
        if code_el is None:
            code_el = child(element, "code")
        if code_el is None:
            raise RequiredValueNotFoundError(
                element, xpath="manufacturedMaterial/code", target_path="Medication.code"
            )
        medication = new_record(
            RecordKind.MEDICATION,
            f"{US_CORE}/us-core-medication",
            code=to_codeable_concept(code_el, "Medication.code"),
        )
        return context.commit(medication)
