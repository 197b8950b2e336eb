"""Location records from service delivery location participants (participantRole
with classCode SDLOC, or healthCareFacility)."""

from __future__ import annotations

from lxml import etree

from ccdafold.context import ConversionContext
from ccdafold.converters.base import US_CORE, claim_identity, new_record, read_identifiers
from ccdafold.core.cda import child, el_text
from ccdafold.errors import RequiredValueNotFoundError
from ccdafold.models import Record, RecordKind
from ccdafold.values import to_address, to_codeable_concept


class LocationConverter:
    def convert(self, element: etree._Element, context: ConversionContext) -> Record:
        location = new_record(RecordKind.LOCATION, f"{US_CORE}/us-core-location")

        identifiers = read_identifiers(element, required=True, target_path="Location.identifier")
        if not identifiers:
            raise RequiredValueNotFoundError(element, xpath="id", target_path="Location.identifier")
        cached = claim_identity(location, identifiers, context)
        if cached is not None:
            return cached

        place = child(element, "location")
        if place is None:
            place = child(element, "playingEntity")
        name = el_text(child(place, "name"))
        if not name:
            raise RequiredValueNotFoundError(element, xpath="location/name", target_path="Location.name")
        location.data["name"] = name

        code_el = child(element, "code")
        if code_el is not None:
            location.data["type"] = [to_codeable_concept(code_el, "Location.type")]

        addr_el = child(element, "addr")
        if addr_el is None:
            addr_el = child(place, "addr")
        if addr_el is not None:
            location.data["address"] = to_address(addr_el, "Location.address")

        return context.commit(location)
