"""PractitionerRole records linking each document author to the organization
they act for."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, SectionConverter, new_record
from ccdafold.converters.organization import OrganizationConverter
from ccdafold.converters.practitioner import PractitionerConverter
from ccdafold.core.cda import child
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import to_contact_point


class PractitionerRoleConverter(SectionConverter):
    query = "/cda:ClinicalDocument/cda:author/cda:assignedAuthor"

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        role = new_record(RecordKind.PRACTITIONER_ROLE, f"{US_CORE}/us-core-practitionerrole")

        with context.collect():
            role.data["practitioner"] = PractitionerConverter().convert(element, context).ref()

        with context.collect():
            org_el = child(element, "representedOrganization")
            if org_el is None:
                raise RequiredValueNotFoundError(
                    element, xpath="representedOrganization", target_path="PractitionerRole.organization"
                )
            role.data["organization"] = OrganizationConverter().convert(org_el, context).ref()

        with context.collect():
            telecom_el = child(element, "telecom")
            if telecom_el is None:
                raise RequiredValueNotFoundError(
                    element, xpath="telecom", target_path="PractitionerRole.telecom"
                )
            role.data["telecom"] = [to_contact_point(telecom_el, "PractitionerRole.telecom")]

        return context.commit(role)
