"""Organization records, for the document's primary organization and any
represented organization met along the way (e.g. an author's employer)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, new_record, set_identifiers
from ccdafold.core.cda import child, children, el_text, select_one
from ccdafold.errors import ProfileRelatedError, RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import to_address, to_contact_point

MAX_ADDRESS_LINES = 4


class OrganizationConverter:
    query = "/cda:ClinicalDocument/cda:author/cda:assignedAuthor/cda:representedOrganization"

    def select_one(self, root: etree._Element) -> etree._Element | None:
        return select_one(root, self.query)

    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        organization = new_record(
            RecordKind.ORGANIZATION,
            f"{US_CORE}/us-core-organization",
            active=True,
        )
        cached = set_identifiers(element, organization, context)
        if cached is not None:
            return cached

        name = el_text(child(element, "name"))
        with context.collect():
            if not name:
                raise RequiredValueNotFoundError(element, xpath="name", target_path="Organization.name")
        if name:
            organization.data["name"] = name

        telecoms = []
        for telecom_el in children(element, "telecom"):
            with context.collect():
                telecoms.append(to_contact_point(telecom_el, "Organization.telecom"))
        organization.data["telecom"] = telecoms

        addresses = []
        for addr_el in children(element, "addr"):
            with context.collect():
                addresses.append(to_organization_address(addr_el, "Organization.address"))
        organization.data["address"] = addresses

        return context.commit(organization)


def to_organization_address(addr_el: etree._Element, target_path: str):
    """Decode an address, enforcing the US Core limit on street lines."""
    address = to_address(addr_el, target_path)
    if len(address.line) > MAX_ADDRESS_LINES:
        raise ProfileRelatedError(
            addr_el,
            f"More than {MAX_ADDRESS_LINES} address lines were provided",
            xpath="streetAddressLine",
            target_path=f"{target_path}.line",
        )
    return address
