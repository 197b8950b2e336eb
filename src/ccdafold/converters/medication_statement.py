"""MedicationStatement records from the medications section (10160-0)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import SectionConverter, new_record, set_identifiers
from ccdafold.converters.medication import MedicationConverter
from ccdafold.converters.provenance import add_provenance
from ccdafold.core.cda import child, select_one
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import to_datetime_element


class MedicationStatementConverter(SectionConverter):
    query = (
        "//cda:section/cda:code[@code='10160-0']/.."
        "/cda:entry/cda:substanceAdministration[@moodCode='EVN']"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        statement = new_record(
            RecordKind.MEDICATION_STATEMENT,
            subject=self.subject,
            status="active",
        )
        cached = set_identifiers(element, statement, context)
        if cached is not None:
            return cached

        effective_el = child(element, "effectiveTime")
        if effective_el is not None:
            with context.collect():
                statement.set_choice(
                    "effective", to_datetime_element(effective_el, "MedicationStatement.effective")
                )

        with context.collect():
            product_el = select_one(element, "cda:consumable/cda:manufacturedProduct")
            if product_el is None:
                raise RequiredValueNotFoundError(
                    element,
                    xpath="consumable/manufacturedProduct",
                    target_path="MedicationStatement.medication",
                )
            medication = MedicationConverter().convert(product_el, context)
            statement.data["medicationReference"] = medication.ref()

        context.commit(statement)
        add_provenance(element, statement, context)
        return statement
