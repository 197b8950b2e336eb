"""Provenance records describing who authored a converted record."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, new_record
from ccdafold.converters.organization import OrganizationConverter
from ccdafold.converters.practitioner import PractitionerConverter
from ccdafold.core.cda import child
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import CodeableConcept, Record, RecordKind
from ccdafold.values import to_datetime

PARTICIPANT_TYPE_SYSTEM = "http://terminology.hl7.org/CodeSystem/provenance-participant-type"


class ProvenanceConverter:
    """Converts an ``author`` element into a provenance for ``target``.

    The author's assignedAuthor becomes a practitioner and its
    representedOrganization an organization; both are deduplicated through
    the identity cache like any other record.
    """

    def __init__(self, target: Record):
        self.target = target

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        time_el = child(element, "time")
        recorded = to_datetime(time_el, "Provenance.recorded") if time_el is not None else None
        if recorded is None:
            raise RequiredValueNotFoundError(
                element, xpath="time[@value]", target_path="Provenance.recorded"
            )

        assigned = child(element, "assignedAuthor")
        if assigned is None:
            raise RequiredValueNotFoundError(
                element, xpath="assignedAuthor", target_path="Provenance.agent.who"
            )

        practitioner = PractitionerConverter().convert(assigned, context)
        agent = {
            "type": CodeableConcept.of(PARTICIPANT_TYPE_SYSTEM, "author", "Author"),
            "who": practitioner.ref(),
        }
        org_el = child(assigned, "representedOrganization")
        if org_el is not None:
            organization = OrganizationConverter().convert(org_el, context)
            agent["onBehalfOf"] = organization.ref()

        provenance = new_record(
            RecordKind.PROVENANCE,
            f"{US_CORE}/us-core-provenance",
            target=[self.target.ref()],
            recorded=recorded,
            agent=[agent],
        )
        return context.commit(provenance)


def add_provenance(element: etree._Element, target: Record, context: ConversionContext) -> Record | None:
    """Convert the first ``author`` of ``element`` into a provenance for ``target``.

    Errors are collected on the context; the target record is unaffected.
    """
    author = child(element, "author")
    if author is None:
        return None
    with context.collect():
        return ProvenanceConverter(target).convert(author, context)
    return None
