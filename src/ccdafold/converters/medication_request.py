"""MedicationRequest records from intended (moodCode INT) medication entries."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record, set_identifiers
from ccdafold.converters.medication import MedicationConverter
from ccdafold.converters.practitioner import PractitionerConverter
from ccdafold.core.cda import attr, child, select_one
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.status import MEDICATION_REQUEST_STATUS, lookup
from ccdafold.values import to_datetime


class MedicationRequestConverter(SectionConverter):
    query = (
        "//cda:section/cda:code[@code='10160-0']/.."
        "/cda:entry/cda:substanceAdministration[@moodCode='INT']"
    )

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        request = new_record(
            RecordKind.MEDICATION_REQUEST,
            f"{US_CORE}/us-core-medicationrequest",
            intent="order",
            subject=self.subject,
        )
        cached = set_identifiers(element, request, context)
        if cached is not None:
            return cached

        status_el = child(element, "statusCode")
        status = attr(status_el, "code")
        if not status:
            raise RequiredValueNotFoundError(
                element, xpath="statusCode[@code]", target_path="MedicationRequest.status"
            )
        request.data["status"] = lookup(
            MEDICATION_REQUEST_STATUS,
            status.lower(),
            status_el,
            attribute="code",
            target_path="MedicationRequest.status",
        )

        author_el = child(element, "author")
        if author_el is None:
            raise RequiredValueNotFoundError(
                element, xpath="author", target_path="MedicationRequest.requester"
            )
        time_el = child(author_el, "time")
        authored = to_datetime(time_el, "MedicationRequest.authoredOn") if time_el is not None else None
        if authored is None:
            raise RequiredValueNotFoundError(
                author_el, xpath="time[@value]", target_path="MedicationRequest.authoredOn"
            )
        request.data["authoredOn"] = authored

        assigned_el = child(author_el, "assignedAuthor")
        if assigned_el is None:
            raise RequiredValueNotFoundError(
                author_el, xpath="assignedAuthor", target_path="MedicationRequest.requester"
            )
        with context.collect():
            request.data["requester"] = PractitionerConverter().convert(assigned_el, context).ref()

        with context.collect():
            product_el = select_one(element, "cda:consumable/cda:manufacturedProduct")
            if product_el is None:
                raise RequiredValueNotFoundError(
                    element,
                    xpath="consumable/manufacturedProduct",
                    target_path="MedicationRequest.medication",
                )
            medication = MedicationConverter().convert(product_el, context)
            request.data["medicationReference"] = medication.ref()

        return context.commit(request)
